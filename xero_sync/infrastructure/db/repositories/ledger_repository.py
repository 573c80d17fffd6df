"""Ledger repository implementation - mirrored Xero records."""
import uuid
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Tuple, Type
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from xero_sync.domain.ports.ledger_repo import LedgerRepository
from xero_sync.infrastructure.db.models import (
    AccountModel, BankTransactionLineModel, BankTransactionModel, BillLineModel,
    BillModel, ContactModel, InvoiceLineModel, InvoiceModel
)


class SQLAlchemyLedgerRepository(LedgerRepository):
    """
    SQLAlchemy implementation of LedgerRepository.

    Each upsert (with its line replacement) commits as one unit and rolls
    back on failure, so a bad record never leaves half-written lines.
    """

    def __init__(self, session: Session):
        """
        Initialize repository.

        Args:
            session: Database session
        """
        self.session = session

    def find_account_id_by_code(self, connection_id: uuid.UUID, code: str) -> Optional[uuid.UUID]:
        stmt = select(AccountModel.id).where(
            AccountModel.connection_id == connection_id,
            AccountModel.code == code
        ).limit(1)
        return self.session.execute(stmt).scalar_one_or_none()

    def find_contact_id(self, connection_id: uuid.UUID, xero_contact_id: str) -> Optional[uuid.UUID]:
        stmt = select(ContactModel.id).where(
            ContactModel.connection_id == connection_id,
            ContactModel.xero_contact_id == xero_contact_id
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def upsert_account(self, connection_id: uuid.UUID, values: Dict[str, Any]) -> bool:
        with self._unit():
            _, created = self._upsert(AccountModel, "xero_account_id", connection_id, values)
        return created

    def upsert_contact(self, connection_id: uuid.UUID, values: Dict[str, Any]) -> bool:
        with self._unit():
            _, created = self._upsert(ContactModel, "xero_contact_id", connection_id, values)
        return created

    def upsert_bank_transaction(
        self,
        connection_id: uuid.UUID,
        values: Dict[str, Any],
        lines: List[Dict[str, Any]]
    ) -> bool:
        with self._unit():
            row, created = self._upsert(
                BankTransactionModel, "xero_bank_transaction_id", connection_id, values
            )
            self._replace_lines(BankTransactionLineModel, "bank_transaction_id", row.id, lines)
        return created

    def upsert_invoice(
        self,
        connection_id: uuid.UUID,
        values: Dict[str, Any],
        lines: List[Dict[str, Any]]
    ) -> bool:
        with self._unit():
            row, created = self._upsert(InvoiceModel, "xero_invoice_id", connection_id, values)
            self._replace_lines(InvoiceLineModel, "invoice_id", row.id, lines)
        return created

    def upsert_bill(
        self,
        connection_id: uuid.UUID,
        values: Dict[str, Any],
        lines: List[Dict[str, Any]]
    ) -> bool:
        with self._unit():
            row, created = self._upsert(BillModel, "xero_bill_id", connection_id, values)
            self._replace_lines(BillLineModel, "bill_id", row.id, lines)
        return created

    @contextmanager
    def _unit(self):
        """Commit on success, roll back and re-raise on failure."""
        try:
            yield
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def _upsert(
        self,
        model_cls: Type,
        key_column: str,
        connection_id: uuid.UUID,
        values: Dict[str, Any]
    ) -> Tuple[Any, bool]:
        """Update the row matching (connection_id, external id) in place, or insert it."""
        external_id = values[key_column]
        row = self.session.query(model_cls).filter_by(
            connection_id=connection_id,
            **{key_column: external_id}
        ).first()

        if row is None:
            row = model_cls(connection_id=connection_id, **values)
            self.session.add(row)
            created = True
        else:
            for column, value in values.items():
                setattr(row, column, value)
            created = False

        self.session.flush()
        return row, created

    def _replace_lines(
        self,
        line_cls: Type,
        parent_column: str,
        parent_id: uuid.UUID,
        lines: List[Dict[str, Any]]
    ) -> None:
        """Delete every line of the parent, then insert the current set."""
        self.session.execute(
            delete(line_cls).where(getattr(line_cls, parent_column) == parent_id)
        )
        for line in lines:
            self.session.add(line_cls(**{parent_column: parent_id}, **line))
        self.session.flush()
