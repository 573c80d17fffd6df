"""Translate raw Xero payloads into local column values.

Xero's JSON uses PascalCase keys and serializes dates either as
Microsoft JSON dates ("/Date(1518685950940+0000)/") or ISO strings.
Nothing in here touches the database.
"""
import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from xero_sync.core.clock import to_naive_utc
from xero_sync.infrastructure.integrations.xero.models import MappedRecord

_MS_DATE = re.compile(r"^/Date\((-?\d+)([+-]\d{4})?\)/$")

INVOICE_TYPE = "ACCREC"
BILL_TYPE = "ACCPAY"


def parse_xero_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a Xero date value to naive UTC.

    Args:
        value: "/Date(ms+zzzz)/" or ISO 8601 string

    Returns:
        Naive UTC datetime, or None for empty values

    Raises:
        ValueError: If the value is not a recognised date
    """
    if not value:
        return None

    match = _MS_DATE.match(value)
    if match:
        millis = int(match.group(1))
        # The offset is informational; the milliseconds are already UTC
        return datetime(1970, 1, 1) + timedelta(milliseconds=millis)

    ts_str = value
    if ts_str.endswith("Z"):
        ts_str = ts_str.replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(ts_str)
    except ValueError:
        raise ValueError(f"Invalid date value: {value!r}")
    if parsed.tzinfo is not None:
        parsed = to_naive_utc(parsed.astimezone(timezone.utc))
    return parsed


def _decimal(value: Any, default: Optional[Decimal] = None) -> Optional[Decimal]:
    if value is None or value == "":
        return default
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")


def _require(payload: Dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not value:
        raise ValueError(f"missing {key}")
    return value


def _required_date(payload: Dict[str, Any], key: str) -> datetime:
    """Read a date preferring its "{key}String" form; records without one are rejected."""
    value = parse_xero_datetime(payload.get(f"{key}String") or payload.get(key))
    if value is None:
        raise ValueError(f"missing {key}")
    return value


def _text(value: Any) -> Optional[str]:
    return str(value) if value not in (None, "") else None


def map_account(payload: Dict[str, Any]) -> MappedRecord:
    account_id = _require(payload, "AccountID")
    return MappedRecord(
        external_id=account_id,
        values={
            "xero_account_id": account_id,
            "code": _text(payload.get("Code")),
            "name": payload.get("Name") or "",
            "type": payload.get("Type") or "",
            "status": payload.get("Status") or "ACTIVE",
            "description": _text(payload.get("Description")),
            "tax_type": _text(payload.get("TaxType")),
            "bank_account_number": _text(payload.get("BankAccountNumber")),
            "bank_account_type": _text(payload.get("BankAccountType")),
            "currency_code": _text(payload.get("CurrencyCode")),
            "system_account": _text(payload.get("SystemAccount")),
            "enable_payments": bool(payload.get("EnablePaymentsToAccount", False)),
            "show_in_expense_claims": bool(payload.get("ShowInExpenseClaims", False)),
            "account_class": _text(payload.get("Class")),
            "reporting_code": _text(payload.get("ReportingCode")),
            "reporting_code_name": _text(payload.get("ReportingCodeName")),
            "has_attachments": bool(payload.get("HasAttachments", False)),
            "add_to_watchlist": bool(payload.get("AddToWatchlist", False)),
            "updated_date_utc": parse_xero_datetime(payload.get("UpdatedDateUTC")),
        }
    )


def map_contact(payload: Dict[str, Any]) -> MappedRecord:
    contact_id = _require(payload, "ContactID")
    terms = payload.get("PaymentTerms") or {}
    bills = terms.get("Bills") or {}
    sales = terms.get("Sales") or {}

    return MappedRecord(
        external_id=contact_id,
        values={
            "xero_contact_id": contact_id,
            "name": payload.get("Name") or "",
            "first_name": _text(payload.get("FirstName")),
            "last_name": _text(payload.get("LastName")),
            "email_address": _text(payload.get("EmailAddress")),
            "is_supplier": bool(payload.get("IsSupplier", False)),
            "is_customer": bool(payload.get("IsCustomer", False)),
            "default_currency": _text(payload.get("DefaultCurrency")),
            "tax_number": _text(payload.get("TaxNumber")),
            "accounts_receivable_tax_type": _text(payload.get("AccountsReceivableTaxType")),
            "accounts_payable_tax_type": _text(payload.get("AccountsPayableTaxType")),
            "payment_terms_bills_day": bills.get("Day"),
            "payment_terms_bills_type": _text(bills.get("Type")),
            "payment_terms_sales_day": sales.get("Day"),
            "payment_terms_sales_type": _text(sales.get("Type")),
            "contact_status": payload.get("ContactStatus") or "ACTIVE",
            "has_attachments": bool(payload.get("HasAttachments", False)),
            "has_validation_errors": bool(payload.get("HasValidationErrors", False)),
            "updated_date_utc": parse_xero_datetime(payload.get("UpdatedDateUTC")),
        }
    )


def _map_lines(payload: Dict[str, Any], with_item_code: bool) -> List[Dict[str, Any]]:
    lines = []
    for line in payload.get("LineItems") or []:
        mapped = {
            "xero_line_id": _text(line.get("LineItemID")),
            "account_code": _text(line.get("AccountCode")),
            "description": _text(line.get("Description")),
            "quantity": _decimal(line.get("Quantity")),
            "unit_amount": _decimal(line.get("UnitAmount")),
            "line_amount": _decimal(line.get("LineAmount"), Decimal("0")),
            "tax_type": _text(line.get("TaxType")),
            "tax_amount": _decimal(line.get("TaxAmount")),
        }
        if with_item_code:
            mapped["item_code"] = _text(line.get("ItemCode"))
        lines.append(mapped)
    return lines


def _contact_ref(payload: Dict[str, Any]) -> Optional[str]:
    return (payload.get("Contact") or {}).get("ContactID")


def map_bank_transaction(payload: Dict[str, Any]) -> MappedRecord:
    transaction_id = _require(payload, "BankTransactionID")
    bank_account = payload.get("BankAccount") or {}

    return MappedRecord(
        external_id=transaction_id,
        contact_ref=_contact_ref(payload),
        values={
            "xero_bank_transaction_id": transaction_id,
            "type": payload.get("Type") or "",
            "bank_account_id": bank_account.get("AccountID") or "",
            "bank_account_code": _text(bank_account.get("Code")),
            "date": _required_date(payload, "Date"),
            "reference": _text(payload.get("Reference")),
            "currency_code": _text(payload.get("CurrencyCode")),
            "currency_rate": _decimal(payload.get("CurrencyRate")),
            "url": _text(payload.get("Url")),
            "status": payload.get("Status") or "AUTHORISED",
            "line_amount_types": _text(payload.get("LineAmountTypes")),
            "sub_total": _decimal(payload.get("SubTotal"), Decimal("0")),
            "total_tax": _decimal(payload.get("TotalTax"), Decimal("0")),
            "total": _decimal(payload.get("Total"), Decimal("0")),
            "is_reconciled": bool(payload.get("IsReconciled", False)),
            "has_attachments": bool(payload.get("HasAttachments", False)),
            "updated_date_utc": parse_xero_datetime(payload.get("UpdatedDateUTC")),
        },
        lines=_map_lines(payload, with_item_code=False)
    )


def map_invoice_or_bill(payload: Dict[str, Any]) -> MappedRecord:
    """
    Map an /Invoices record. ACCREC rows become invoices, ACCPAY rows bills.

    Raises:
        ValueError: If the record is missing its ID or has another type
    """
    invoice_id = _require(payload, "InvoiceID")
    invoice_type = payload.get("Type")
    if invoice_type not in (INVOICE_TYPE, BILL_TYPE):
        raise ValueError(f"unsupported invoice type {invoice_type!r}")

    date = _required_date(payload, "Date")
    values = {
        "invoice_number": _text(payload.get("InvoiceNumber")),
        "reference": _text(payload.get("Reference")),
        "date": date,
        "due_date": parse_xero_datetime(payload.get("DueDateString") or payload.get("DueDate")) or date,
        "expected_payment_date": parse_xero_datetime(payload.get("ExpectedPaymentDate")),
        "planned_payment_date": parse_xero_datetime(payload.get("PlannedPaymentDate")),
        "status": payload.get("Status") or "DRAFT",
        "line_amount_types": _text(payload.get("LineAmountTypes")),
        "sub_total": _decimal(payload.get("SubTotal"), Decimal("0")),
        "total_tax": _decimal(payload.get("TotalTax"), Decimal("0")),
        "total": _decimal(payload.get("Total"), Decimal("0")),
        "amount_due": _decimal(payload.get("AmountDue"), Decimal("0")),
        "amount_paid": _decimal(payload.get("AmountPaid"), Decimal("0")),
        "amount_credited": _decimal(payload.get("AmountCredited"), Decimal("0")),
        "currency_code": _text(payload.get("CurrencyCode")),
        "currency_rate": _decimal(payload.get("CurrencyRate")),
        "fully_paid_on_date": parse_xero_datetime(payload.get("FullyPaidOnDate")),
        "url": _text(payload.get("Url")),
        "has_attachments": bool(payload.get("HasAttachments", False)),
        "has_errors": bool(payload.get("HasErrors", False)),
        "updated_date_utc": parse_xero_datetime(payload.get("UpdatedDateUTC")),
    }

    if invoice_type == INVOICE_TYPE:
        values["xero_invoice_id"] = invoice_id
        values["type"] = invoice_type
        values["sent_to_contact"] = bool(payload.get("SentToContact", False))
    else:
        values["xero_bill_id"] = invoice_id

    return MappedRecord(
        external_id=invoice_id,
        contact_ref=_contact_ref(payload),
        values=values,
        lines=_map_lines(payload, with_item_code=True)
    )
