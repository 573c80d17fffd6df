"""Tests for Xero payload mapping."""
from datetime import datetime
from decimal import Decimal

import pytest

from tests.factories import account_payload, bank_transaction_payload, contact_payload, invoice_payload
from xero_sync.infrastructure.integrations.xero import mappers


class TestParseXeroDatetime:
    def test_microsoft_json_date(self):
        assert mappers.parse_xero_datetime("/Date(1518685950940+0000)/") == datetime(
            2018, 2, 15, 9, 12, 30, 940000
        )

    def test_iso_with_z_is_naive_utc(self):
        assert mappers.parse_xero_datetime("2024-03-01T10:00:00Z") == datetime(2024, 3, 1, 10, 0)

    def test_iso_with_offset_is_converted(self):
        assert mappers.parse_xero_datetime("2024-03-01T10:00:00+10:00") == datetime(2024, 3, 1, 0, 0)

    def test_empty_is_none(self):
        assert mappers.parse_xero_datetime(None) is None
        assert mappers.parse_xero_datetime("") is None

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            mappers.parse_xero_datetime("not-a-date")


def test_map_account():
    record = mappers.map_account(account_payload("200", account_id="acc-xyz"))

    assert record.external_id == "acc-xyz"
    assert record.values["code"] == "200"
    assert record.values["account_class"] == "EXPENSE"
    assert record.values["updated_date_utc"] == datetime(2023, 11, 14, 22, 13, 20)


def test_map_account_requires_id():
    payload = account_payload("200")
    del payload["AccountID"]
    with pytest.raises(ValueError, match="AccountID"):
        mappers.map_account(payload)


def test_map_contact_payment_terms():
    record = mappers.map_contact(contact_payload("c-1", name="Acme"))

    assert record.values["name"] == "Acme"
    assert record.values["payment_terms_bills_day"] == 30
    assert record.values["payment_terms_sales_day"] is None
    assert record.values["is_supplier"] is True


def test_map_bank_transaction_keeps_references_unresolved():
    record = mappers.map_bank_transaction(bank_transaction_payload("bt-1", contact_id="c-9"))

    assert record.contact_ref == "c-9"
    assert "contact_id" not in record.values
    assert record.values["total"] == Decimal("110.0")
    assert record.values["date"] == datetime(2024, 3, 5)
    assert record.lines[0]["account_code"] == "400"
    assert "account_id" not in record.lines[0]


def test_map_invoice_and_bill():
    invoice = mappers.map_invoice_or_bill(invoice_payload("i-1"))
    bill = mappers.map_invoice_or_bill(invoice_payload("b-1", invoice_type="ACCPAY"))

    assert invoice.values["xero_invoice_id"] == "i-1"
    assert invoice.values["type"] == "ACCREC"
    assert invoice.lines[0]["item_code"] == "CONSULT"
    assert bill.values["xero_bill_id"] == "b-1"
    assert "type" not in bill.values
    assert "sent_to_contact" not in bill.values


def test_map_invoice_rejects_other_types():
    with pytest.raises(ValueError, match="unsupported invoice type"):
        mappers.map_invoice_or_bill(invoice_payload("x-1", invoice_type="ACCRECCREDIT"))


def test_invalid_amount_raises():
    with pytest.raises(ValueError, match="Invalid amount"):
        mappers.map_bank_transaction(bank_transaction_payload("bt-1", Total="lots"))


def test_records_without_a_date_are_rejected():
    with pytest.raises(ValueError, match="missing Date"):
        mappers.map_bank_transaction(bank_transaction_payload("bt-1", DateString=None, Date=None))
    with pytest.raises(ValueError, match="missing Date"):
        mappers.map_invoice_or_bill(invoice_payload("i-1", DateString=""))


def test_date_falls_back_to_json_date():
    record = mappers.map_bank_transaction(bank_transaction_payload("bt-1", DateString=None))

    assert record.values["date"] == datetime(2024, 3, 5)
