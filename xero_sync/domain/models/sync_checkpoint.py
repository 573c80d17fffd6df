"""SyncCheckpoint entity - tracks incremental sync progress."""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from xero_sync.core.clock import to_naive_utc, utcnow


class ResourceType(str, Enum):
    """Upstream resource types, in dependency order."""
    ACCOUNTS = "accounts"
    CONTACTS = "contacts"
    BANK_TRANSACTIONS = "bankTransactions"
    INVOICES = "invoices"
    BILLS = "bills"


class CheckpointStatus(str, Enum):
    """Checkpoint status."""
    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"


@dataclass
class SyncCheckpoint:
    """
    Watermark of the last successful sync per connection and resource type.

    Invariants:
    - last_sync_at never moves backward
    - a fatal failure never advances last_sync_at
    - (connection_id, resource_type) is unique
    """
    id: Optional[uuid.UUID]
    connection_id: uuid.UUID
    resource_type: ResourceType
    last_sync_at: Optional[datetime] = None
    status: CheckpointStatus = CheckpointStatus.IDLE
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def mark_syncing(self) -> None:
        """Mark a sync attempt started."""
        self.status = CheckpointStatus.SYNCING
        self.updated_at = utcnow()

    def mark_success(self, synced_at: datetime) -> None:
        """
        Advance the watermark after a completed (non-fatal) sync.

        Args:
            synced_at: Time the sync completed

        Raises:
            ValueError: If trying to move the watermark backward
        """
        synced_at = to_naive_utc(synced_at)
        if self.last_sync_at and synced_at < to_naive_utc(self.last_sync_at):
            raise ValueError(
                f"Cannot move checkpoint backward: {synced_at} < {self.last_sync_at}"
            )

        self.last_sync_at = synced_at
        self.status = CheckpointStatus.IDLE
        self.error_message = None
        self.updated_at = utcnow()

    def mark_error(self, error_message: str) -> None:
        """Record a fatal failure; the watermark stays where it was."""
        self.status = CheckpointStatus.ERROR
        self.error_message = error_message
        self.updated_at = utcnow()
