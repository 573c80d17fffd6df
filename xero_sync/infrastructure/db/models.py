"""SQLAlchemy ORM models for database persistence."""
import uuid
from sqlalchemy import (
    Boolean, Column, String, Integer, DateTime, Text, Numeric, Enum as SQLEnum,
    ForeignKey, UniqueConstraint, Index, JSON, Uuid
)
from sqlalchemy.dialects.postgresql import JSONB

from xero_sync.core.clock import utcnow
from xero_sync.core.database import Base
from xero_sync.domain.models.sync_checkpoint import CheckpointStatus, ResourceType
from xero_sync.domain.models.sync_run import RunState, SyncType

# JSONB on PostgreSQL, plain JSON elsewhere (tests run on SQLite)
Payload = JSON().with_variant(JSONB(), "postgresql")
Money = Numeric(18, 4)


# ----------------------------------------------------------------------
# Connection & sync bookkeeping
# ----------------------------------------------------------------------

class ConnectionModel(Base):
    """SQLAlchemy model for connections table."""

    __tablename__ = "connections"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String(255), nullable=False)
    tenant_name = Column(String(255), nullable=False)
    tenant_type = Column(String(50), nullable=False, default="ORGANISATION")
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=False)
    token_expires_at = Column(DateTime, nullable=False)
    token_type = Column(String(50), nullable=False, default="Bearer")
    is_active = Column(Boolean, nullable=False, default=True)
    last_sync_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint('tenant_id', name='uq_connection_tenant_id'),
    )


class SyncCheckpointModel(Base):
    """SQLAlchemy model for sync_checkpoints table."""

    __tablename__ = "sync_checkpoints"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    connection_id = Column(Uuid, ForeignKey("connections.id"), nullable=False)
    resource_type = Column(SQLEnum(ResourceType), nullable=False)
    last_sync_at = Column(DateTime, nullable=True)
    status = Column(SQLEnum(CheckpointStatus), nullable=False, default=CheckpointStatus.IDLE)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint('connection_id', 'resource_type', name='uq_checkpoint_composite'),
    )


class RawEventModel(Base):
    """SQLAlchemy model for raw_events table (append-only)."""

    __tablename__ = "raw_events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    connection_id = Column(Uuid, ForeignKey("connections.id"), nullable=False)
    resource_type = Column(SQLEnum(ResourceType), nullable=False)
    resource_id = Column(String(255), nullable=False)
    payload = Column(Payload, nullable=False)
    content_hash = Column(String(64), nullable=False)
    captured_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index('ix_raw_event_resource', 'connection_id', 'resource_type', 'resource_id', 'captured_at'),
    )


class SyncRunModel(Base):
    """SQLAlchemy model for sync_runs table."""

    __tablename__ = "sync_runs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    connection_id = Column(Uuid, ForeignKey("connections.id"), nullable=True)
    sync_type = Column(SQLEnum(SyncType), nullable=False)
    state = Column(SQLEnum(RunState), nullable=False, default=RunState.PENDING)
    stage = Column(String(50), nullable=True)
    progress = Column(Integer, nullable=False, default=0)
    message = Column(Text, nullable=True)
    results = Column(Payload, nullable=True)
    error_message = Column(Text, nullable=True)
    started_at = Column(DateTime, nullable=False, default=utcnow)
    finished_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index('ix_sync_run_state', 'state'),
    )


class SyncLockModel(Base):
    """SQLAlchemy model for sync_locks table - one lease per connection."""

    __tablename__ = "sync_locks"

    connection_id = Column(Uuid, ForeignKey("connections.id"), primary_key=True)
    owner = Column(String(64), nullable=False)
    acquired_at = Column(DateTime, nullable=False, default=utcnow)
    expires_at = Column(DateTime, nullable=False)


# ----------------------------------------------------------------------
# Mirrored Xero records
# ----------------------------------------------------------------------

class AccountModel(Base):
    """SQLAlchemy model for accounts table (chart of accounts)."""

    __tablename__ = "accounts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    connection_id = Column(Uuid, ForeignKey("connections.id"), nullable=False)
    xero_account_id = Column(String(255), nullable=False)
    code = Column(String(50), nullable=True)
    name = Column(String(255), nullable=False)
    type = Column(String(50), nullable=False)
    status = Column(String(50), nullable=False, default="ACTIVE")
    description = Column(Text, nullable=True)
    tax_type = Column(String(50), nullable=True)
    bank_account_number = Column(String(100), nullable=True)
    bank_account_type = Column(String(50), nullable=True)
    currency_code = Column(String(10), nullable=True)
    system_account = Column(String(100), nullable=True)
    enable_payments = Column(Boolean, nullable=False, default=False)
    show_in_expense_claims = Column(Boolean, nullable=False, default=False)
    account_class = Column(String(50), nullable=True)
    reporting_code = Column(String(100), nullable=True)
    reporting_code_name = Column(String(255), nullable=True)
    has_attachments = Column(Boolean, nullable=False, default=False)
    add_to_watchlist = Column(Boolean, nullable=False, default=False)
    updated_date_utc = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint('connection_id', 'xero_account_id', name='uq_account_xero_id'),
        Index('ix_account_code', 'connection_id', 'code'),
    )


class ContactModel(Base):
    """SQLAlchemy model for contacts table."""

    __tablename__ = "contacts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    connection_id = Column(Uuid, ForeignKey("connections.id"), nullable=False)
    xero_contact_id = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    email_address = Column(String(255), nullable=True)
    is_supplier = Column(Boolean, nullable=False, default=False)
    is_customer = Column(Boolean, nullable=False, default=False)
    default_currency = Column(String(10), nullable=True)
    tax_number = Column(String(100), nullable=True)
    accounts_receivable_tax_type = Column(String(50), nullable=True)
    accounts_payable_tax_type = Column(String(50), nullable=True)
    payment_terms_bills_day = Column(Integer, nullable=True)
    payment_terms_bills_type = Column(String(50), nullable=True)
    payment_terms_sales_day = Column(Integer, nullable=True)
    payment_terms_sales_type = Column(String(50), nullable=True)
    contact_status = Column(String(50), nullable=False, default="ACTIVE")
    has_attachments = Column(Boolean, nullable=False, default=False)
    has_validation_errors = Column(Boolean, nullable=False, default=False)
    updated_date_utc = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint('connection_id', 'xero_contact_id', name='uq_contact_xero_id'),
    )


class BankTransactionModel(Base):
    """SQLAlchemy model for bank_transactions table."""

    __tablename__ = "bank_transactions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    connection_id = Column(Uuid, ForeignKey("connections.id"), nullable=False)
    xero_bank_transaction_id = Column(String(255), nullable=False)
    type = Column(String(50), nullable=False)
    contact_id = Column(Uuid, ForeignKey("contacts.id"), nullable=True)
    bank_account_id = Column(String(255), nullable=False)
    bank_account_code = Column(String(50), nullable=True)
    date = Column(DateTime, nullable=False)
    reference = Column(String(255), nullable=True)
    currency_code = Column(String(10), nullable=True)
    currency_rate = Column(Numeric(18, 6), nullable=True)
    url = Column(Text, nullable=True)
    status = Column(String(50), nullable=False, default="AUTHORISED")
    line_amount_types = Column(String(50), nullable=True)
    sub_total = Column(Money, nullable=False, default=0)
    total_tax = Column(Money, nullable=False, default=0)
    total = Column(Money, nullable=False, default=0)
    is_reconciled = Column(Boolean, nullable=False, default=False)
    has_attachments = Column(Boolean, nullable=False, default=False)
    updated_date_utc = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint('connection_id', 'xero_bank_transaction_id', name='uq_bank_transaction_xero_id'),
    )


class BankTransactionLineModel(Base):
    """SQLAlchemy model for bank_transaction_lines table."""

    __tablename__ = "bank_transaction_lines"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    bank_transaction_id = Column(
        Uuid, ForeignKey("bank_transactions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    xero_line_id = Column(String(255), nullable=True)
    account_id = Column(Uuid, ForeignKey("accounts.id"), nullable=True)
    account_code = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)
    quantity = Column(Numeric(18, 4), nullable=True)
    unit_amount = Column(Money, nullable=True)
    line_amount = Column(Money, nullable=False, default=0)
    tax_type = Column(String(50), nullable=True)
    tax_amount = Column(Money, nullable=True)


class InvoiceModel(Base):
    """SQLAlchemy model for invoices table (accounts receivable, ACCREC)."""

    __tablename__ = "invoices"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    connection_id = Column(Uuid, ForeignKey("connections.id"), nullable=False)
    xero_invoice_id = Column(String(255), nullable=False)
    type = Column(String(50), nullable=False)
    contact_id = Column(Uuid, ForeignKey("contacts.id"), nullable=True)
    invoice_number = Column(String(255), nullable=True)
    reference = Column(String(255), nullable=True)
    date = Column(DateTime, nullable=False)
    due_date = Column(DateTime, nullable=False)
    expected_payment_date = Column(DateTime, nullable=True)
    planned_payment_date = Column(DateTime, nullable=True)
    status = Column(String(50), nullable=False, default="DRAFT")
    line_amount_types = Column(String(50), nullable=True)
    sub_total = Column(Money, nullable=False, default=0)
    total_tax = Column(Money, nullable=False, default=0)
    total = Column(Money, nullable=False, default=0)
    amount_due = Column(Money, nullable=False, default=0)
    amount_paid = Column(Money, nullable=False, default=0)
    amount_credited = Column(Money, nullable=False, default=0)
    currency_code = Column(String(10), nullable=True)
    currency_rate = Column(Numeric(18, 6), nullable=True)
    fully_paid_on_date = Column(DateTime, nullable=True)
    url = Column(Text, nullable=True)
    sent_to_contact = Column(Boolean, nullable=False, default=False)
    has_attachments = Column(Boolean, nullable=False, default=False)
    has_errors = Column(Boolean, nullable=False, default=False)
    updated_date_utc = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint('connection_id', 'xero_invoice_id', name='uq_invoice_xero_id'),
    )


class InvoiceLineModel(Base):
    """SQLAlchemy model for invoice_lines table."""

    __tablename__ = "invoice_lines"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    invoice_id = Column(Uuid, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    xero_line_id = Column(String(255), nullable=True)
    account_id = Column(Uuid, ForeignKey("accounts.id"), nullable=True)
    account_code = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)
    quantity = Column(Numeric(18, 4), nullable=True)
    unit_amount = Column(Money, nullable=True)
    line_amount = Column(Money, nullable=False, default=0)
    tax_type = Column(String(50), nullable=True)
    tax_amount = Column(Money, nullable=True)
    item_code = Column(String(100), nullable=True)


class BillModel(Base):
    """SQLAlchemy model for bills table (accounts payable, ACCPAY)."""

    __tablename__ = "bills"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    connection_id = Column(Uuid, ForeignKey("connections.id"), nullable=False)
    xero_bill_id = Column(String(255), nullable=False)
    contact_id = Column(Uuid, ForeignKey("contacts.id"), nullable=True)
    invoice_number = Column(String(255), nullable=True)
    reference = Column(String(255), nullable=True)
    date = Column(DateTime, nullable=False)
    due_date = Column(DateTime, nullable=False)
    expected_payment_date = Column(DateTime, nullable=True)
    planned_payment_date = Column(DateTime, nullable=True)
    status = Column(String(50), nullable=False, default="DRAFT")
    line_amount_types = Column(String(50), nullable=True)
    sub_total = Column(Money, nullable=False, default=0)
    total_tax = Column(Money, nullable=False, default=0)
    total = Column(Money, nullable=False, default=0)
    amount_due = Column(Money, nullable=False, default=0)
    amount_paid = Column(Money, nullable=False, default=0)
    amount_credited = Column(Money, nullable=False, default=0)
    currency_code = Column(String(10), nullable=True)
    currency_rate = Column(Numeric(18, 6), nullable=True)
    fully_paid_on_date = Column(DateTime, nullable=True)
    url = Column(Text, nullable=True)
    has_attachments = Column(Boolean, nullable=False, default=False)
    has_errors = Column(Boolean, nullable=False, default=False)
    updated_date_utc = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint('connection_id', 'xero_bill_id', name='uq_bill_xero_id'),
    )


class BillLineModel(Base):
    """SQLAlchemy model for bill_lines table."""

    __tablename__ = "bill_lines"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    bill_id = Column(Uuid, ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True)
    xero_line_id = Column(String(255), nullable=True)
    account_id = Column(Uuid, ForeignKey("accounts.id"), nullable=True)
    account_code = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)
    quantity = Column(Numeric(18, 4), nullable=True)
    unit_amount = Column(Money, nullable=True)
    line_amount = Column(Money, nullable=False, default=0)
    tax_type = Column(String(50), nullable=True)
    tax_amount = Column(Money, nullable=True)
    item_code = Column(String(100), nullable=True)
