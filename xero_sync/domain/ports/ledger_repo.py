"""Ledger repository port - typed domain records mirrored from Xero."""
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class LedgerRepository(ABC):
    """
    Repository interface for accounts, contacts, bank transactions,
    invoices and bills.

    Every upsert is keyed by (connection_id, external id) and returns
    True when a new row was created, False when an existing row was
    updated. Upserts with lines replace all existing lines of the parent
    in the same transaction.
    """

    @abstractmethod
    def find_account_id_by_code(self, connection_id: uuid.UUID, code: str) -> Optional[uuid.UUID]:
        """Resolve an upstream account code to a local account ID."""
        pass

    @abstractmethod
    def find_contact_id(self, connection_id: uuid.UUID, xero_contact_id: str) -> Optional[uuid.UUID]:
        """Resolve an upstream contact ID to a local contact ID."""
        pass

    @abstractmethod
    def upsert_account(self, connection_id: uuid.UUID, values: Dict[str, Any]) -> bool:
        pass

    @abstractmethod
    def upsert_contact(self, connection_id: uuid.UUID, values: Dict[str, Any]) -> bool:
        pass

    @abstractmethod
    def upsert_bank_transaction(
        self,
        connection_id: uuid.UUID,
        values: Dict[str, Any],
        lines: List[Dict[str, Any]]
    ) -> bool:
        pass

    @abstractmethod
    def upsert_invoice(
        self,
        connection_id: uuid.UUID,
        values: Dict[str, Any],
        lines: List[Dict[str, Any]]
    ) -> bool:
        pass

    @abstractmethod
    def upsert_bill(
        self,
        connection_id: uuid.UUID,
        values: Dict[str, Any],
        lines: List[Dict[str, Any]]
    ) -> bool:
        pass
