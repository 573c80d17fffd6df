"""Test data builders and an in-memory fake of the Xero API client."""
from datetime import timedelta
from typing import Any, Dict, List, Optional

from xero_sync.core.clock import utcnow
from xero_sync.domain.models.connection import Credentials


def make_credentials(expires_in: int = 1800, access_token: str = "access-1") -> Credentials:
    return Credentials(
        access_token=access_token,
        refresh_token="refresh-1",
        expires_at=utcnow() + timedelta(seconds=expires_in)
    )


class FakeXeroClient:
    """
    In-memory stand-in for XeroAPIClient.

    Serves pages of the configured payloads and records every call as
    (resource, page, modified_since, from_date).
    """

    def __init__(
        self,
        accounts: Optional[List[Dict[str, Any]]] = None,
        contacts: Optional[List[Dict[str, Any]]] = None,
        bank_transactions: Optional[List[Dict[str, Any]]] = None,
        invoices: Optional[List[Dict[str, Any]]] = None,
        page_size: int = 100
    ):
        self.data = {
            "accounts": accounts or [],
            "contacts": contacts or [],
            "bank_transactions": bank_transactions or [],
            "invoices": invoices or [],
        }
        self.page_size = page_size
        self.calls = []
        # resource -> (page, exception) raised when that page is requested
        self.failures = {}

    def calls_for(self, resource: str):
        return [call for call in self.calls if call[0] == resource]

    def _serve(self, resource, page, modified_since=None, from_date=None):
        self.calls.append((resource, page, modified_since, from_date))
        failure = self.failures.get(resource)
        if failure and failure[0] == page:
            raise failure[1]
        start = (page - 1) * self.page_size
        return list(self.data[resource][start:start + self.page_size])

    async def fetch_accounts(self, page=1, modified_since=None):
        self.calls.append(("accounts", page, modified_since, None))
        failure = self.failures.get("accounts")
        if failure and failure[0] == page:
            raise failure[1]
        return list(self.data["accounts"]) if page == 1 else []

    async def fetch_contacts(self, page=1, modified_since=None):
        return self._serve("contacts", page, modified_since)

    async def fetch_bank_transactions(self, page=1, modified_since=None, from_date=None):
        return self._serve("bank_transactions", page, modified_since, from_date)

    async def fetch_invoices(self, page=1, modified_since=None, from_date=None):
        return self._serve("invoices", page, modified_since, from_date)


def account_payload(code: str, account_id: Optional[str] = None, **extra) -> Dict[str, Any]:
    payload = {
        "AccountID": account_id or f"acc-{code}",
        "Code": code,
        "Name": f"Account {code}",
        "Type": "EXPENSE",
        "Status": "ACTIVE",
        "Class": "EXPENSE",
        "TaxType": "INPUT",
        "UpdatedDateUTC": "/Date(1700000000000+0000)/",
    }
    payload.update(extra)
    return payload


def contact_payload(contact_id: str, name: Optional[str] = None, **extra) -> Dict[str, Any]:
    payload = {
        "ContactID": contact_id,
        "Name": name or f"Contact {contact_id}",
        "EmailAddress": f"{contact_id}@example.com",
        "IsSupplier": True,
        "IsCustomer": False,
        "ContactStatus": "ACTIVE",
        "PaymentTerms": {"Bills": {"Day": 30, "Type": "DAYSAFTERBILLDATE"}},
        "UpdatedDateUTC": "2024-03-01T10:00:00Z",
    }
    payload.update(extra)
    return payload


def bank_transaction_payload(
    transaction_id: str,
    contact_id: Optional[str] = None,
    account_code: str = "400",
    **extra
) -> Dict[str, Any]:
    payload = {
        "BankTransactionID": transaction_id,
        "Type": "SPEND",
        "BankAccount": {"AccountID": "bank-acc-1", "Code": "090"},
        "DateString": "2024-03-05T00:00:00",
        "Date": "/Date(1709596800000+0000)/",
        "Reference": f"Ref {transaction_id}",
        "CurrencyCode": "AUD",
        "Status": "AUTHORISED",
        "LineAmountTypes": "Exclusive",
        "SubTotal": 100.0,
        "TotalTax": 10.0,
        "Total": 110.0,
        "IsReconciled": True,
        "LineItems": [
            {
                "LineItemID": f"{transaction_id}-line-1",
                "Description": "Office supplies",
                "Quantity": 1.0,
                "UnitAmount": 100.0,
                "AccountCode": account_code,
                "TaxType": "INPUT",
                "TaxAmount": 10.0,
                "LineAmount": 100.0,
            }
        ],
        "UpdatedDateUTC": "/Date(1709600000000+0000)/",
    }
    if contact_id:
        payload["Contact"] = {"ContactID": contact_id, "Name": f"Contact {contact_id}"}
    payload.update(extra)
    return payload


def invoice_payload(
    invoice_id: str,
    invoice_type: str = "ACCREC",
    contact_id: Optional[str] = None,
    lines: Optional[List[Dict[str, Any]]] = None,
    **extra
) -> Dict[str, Any]:
    payload = {
        "InvoiceID": invoice_id,
        "Type": invoice_type,
        "InvoiceNumber": f"INV-{invoice_id}",
        "DateString": "2024-04-01T00:00:00",
        "DueDateString": "2024-04-30T00:00:00",
        "Status": "AUTHORISED",
        "LineAmountTypes": "Exclusive",
        "SubTotal": 200.0,
        "TotalTax": 20.0,
        "Total": 220.0,
        "AmountDue": 220.0,
        "AmountPaid": 0.0,
        "AmountCredited": 0.0,
        "CurrencyCode": "AUD",
        "LineItems": lines if lines is not None else [
            {
                "LineItemID": f"{invoice_id}-line-1",
                "Description": "Consulting",
                "Quantity": 2.0,
                "UnitAmount": 100.0,
                "AccountCode": "200",
                "ItemCode": "CONSULT",
                "TaxType": "OUTPUT",
                "TaxAmount": 20.0,
                "LineAmount": 200.0,
            }
        ],
        "UpdatedDateUTC": "2024-04-02T09:30:00Z",
    }
    if contact_id:
        payload["Contact"] = {"ContactID": contact_id}
    payload.update(extra)
    return payload
