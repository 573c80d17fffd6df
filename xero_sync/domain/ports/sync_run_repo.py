"""SyncRun and sync lock repository port interfaces."""
import uuid
from abc import ABC, abstractmethod
from typing import Optional

from xero_sync.domain.models.sync_run import SyncRun


class SyncRunRepository(ABC):
    """Repository interface for SyncRun entity."""

    @abstractmethod
    def save(self, run: SyncRun) -> SyncRun:
        """Insert or update a run."""
        pass

    @abstractmethod
    def find_by_id(self, run_id: uuid.UUID) -> Optional[SyncRun]:
        """Find run by ID."""
        pass

    @abstractmethod
    def list_unfinished(self) -> list[SyncRun]:
        """List runs still pending or running."""
        pass


class SyncLockRepository(ABC):
    """
    Per-connection lease lock.

    A lease expires after its TTL so a crashed run cannot block the
    connection forever.
    """

    @abstractmethod
    def acquire(self, connection_id: uuid.UUID, owner: str, ttl_seconds: int) -> bool:
        """
        Take the lock unless another owner holds an unexpired lease.

        Returns:
            True if acquired
        """
        pass

    @abstractmethod
    def renew(self, connection_id: uuid.UUID, owner: str, ttl_seconds: int) -> bool:
        """Extend the lease held by `owner`."""
        pass

    @abstractmethod
    def release(self, connection_id: uuid.UUID, owner: str) -> None:
        """Release the lease held by `owner`."""
        pass

    @abstractmethod
    def is_locked(self, connection_id: uuid.UUID) -> bool:
        """True if an unexpired lease exists."""
        pass
