"""Concrete resource syncers, listed in dependency order."""
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from xero_sync.application.services.resource_syncer import ResourceSyncer
from xero_sync.domain.models.sync_checkpoint import ResourceType
from xero_sync.infrastructure.integrations.xero import mappers
from xero_sync.infrastructure.integrations.xero.client import XeroAPIClient
from xero_sync.infrastructure.integrations.xero.models import MappedRecord


class AccountsSyncer(ResourceSyncer):
    """Chart of accounts. Not paged upstream and never time-bounded."""

    resource_type = ResourceType.ACCOUNTS
    label = "Account"
    plural_label = "accounts"
    id_field = "AccountID"
    key_field = "Code"
    stage = "accounts"
    progress = 10

    async def fetch_page(
        self,
        client: XeroAPIClient,
        page: int,
        since: Optional[datetime],
        window_start: Optional[datetime]
    ) -> List[Dict[str, Any]]:
        return await client.fetch_accounts(page=page, modified_since=since)

    def map(self, payload: Dict[str, Any]) -> MappedRecord:
        return mappers.map_account(payload)

    def persist(self, connection_id: uuid.UUID, resource_type: ResourceType, record: MappedRecord) -> bool:
        return self.ledger_repo.upsert_account(connection_id, record.values)


class ContactsSyncer(ResourceSyncer):
    """Customers and suppliers."""

    resource_type = ResourceType.CONTACTS
    label = "Contact"
    plural_label = "contacts"
    id_field = "ContactID"
    key_field = "Name"
    stage = "contacts"
    progress = 25

    async def fetch_page(
        self,
        client: XeroAPIClient,
        page: int,
        since: Optional[datetime],
        window_start: Optional[datetime]
    ) -> List[Dict[str, Any]]:
        return await client.fetch_contacts(page=page, modified_since=since)

    def map(self, payload: Dict[str, Any]) -> MappedRecord:
        return mappers.map_contact(payload)

    def persist(self, connection_id: uuid.UUID, resource_type: ResourceType, record: MappedRecord) -> bool:
        return self.ledger_repo.upsert_contact(connection_id, record.values)


class BankTransactionsSyncer(ResourceSyncer):
    """Spend and receive money transactions with their line items."""

    resource_type = ResourceType.BANK_TRANSACTIONS
    label = "Bank transaction"
    plural_label = "bank transactions"
    id_field = "BankTransactionID"
    stage = "bankTransactions"
    progress = 40
    high_volume = True

    async def fetch_page(
        self,
        client: XeroAPIClient,
        page: int,
        since: Optional[datetime],
        window_start: Optional[datetime]
    ) -> List[Dict[str, Any]]:
        return await client.fetch_bank_transactions(
            page=page, modified_since=since, from_date=window_start
        )

    def map(self, payload: Dict[str, Any]) -> MappedRecord:
        return mappers.map_bank_transaction(payload)

    def persist(self, connection_id: uuid.UUID, resource_type: ResourceType, record: MappedRecord) -> bool:
        values = dict(record.values, contact_id=self.resolve_contact(connection_id, record))
        lines = self.resolve_lines(connection_id, record.lines)
        return self.ledger_repo.upsert_bank_transaction(connection_id, values, lines)


class InvoicesSyncer(ResourceSyncer):
    """
    Sales invoices and bills.

    Both come from the invoices endpoint: ACCREC records are stored as
    invoices, ACCPAY records as bills, each with its own checkpoint.
    """

    resource_type = ResourceType.INVOICES
    label = "Invoice"
    plural_label = "invoices"
    id_field = "InvoiceID"
    key_field = "InvoiceNumber"
    stage = "invoices"
    progress = 70
    high_volume = True

    @property
    def result_types(self) -> List[ResourceType]:
        return [ResourceType.INVOICES, ResourceType.BILLS]

    def classify(self, payload: Dict[str, Any]) -> ResourceType:
        if payload.get("Type") == mappers.BILL_TYPE:
            return ResourceType.BILLS
        return ResourceType.INVOICES

    def label_for(self, resource_type: ResourceType) -> str:
        return "Bill" if resource_type == ResourceType.BILLS else "Invoice"

    async def fetch_page(
        self,
        client: XeroAPIClient,
        page: int,
        since: Optional[datetime],
        window_start: Optional[datetime]
    ) -> List[Dict[str, Any]]:
        return await client.fetch_invoices(
            page=page, modified_since=since, from_date=window_start
        )

    def map(self, payload: Dict[str, Any]) -> MappedRecord:
        return mappers.map_invoice_or_bill(payload)

    def persist(self, connection_id: uuid.UUID, resource_type: ResourceType, record: MappedRecord) -> bool:
        values = dict(record.values, contact_id=self.resolve_contact(connection_id, record))
        lines = self.resolve_lines(connection_id, record.lines)
        if resource_type == ResourceType.BILLS:
            return self.ledger_repo.upsert_bill(connection_id, values, lines)
        return self.ledger_repo.upsert_invoice(connection_id, values, lines)


SYNCER_CLASSES = [AccountsSyncer, ContactsSyncer, BankTransactionsSyncer, InvoicesSyncer]
