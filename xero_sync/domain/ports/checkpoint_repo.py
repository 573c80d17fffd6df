"""SyncCheckpoint repository port interface."""
import uuid
from abc import ABC, abstractmethod
from typing import Optional

from xero_sync.domain.models.sync_checkpoint import ResourceType, SyncCheckpoint


class SyncCheckpointRepository(ABC):
    """Repository interface for SyncCheckpoint entity."""

    @abstractmethod
    def save(self, checkpoint: SyncCheckpoint) -> SyncCheckpoint:
        """
        Save or update a checkpoint (UPSERT on connection and resource type).

        Args:
            checkpoint: SyncCheckpoint to save

        Returns:
            Saved checkpoint with updated ID
        """
        pass

    @abstractmethod
    def find(
        self,
        connection_id: uuid.UUID,
        resource_type: ResourceType
    ) -> Optional[SyncCheckpoint]:
        """
        Find checkpoint by composite key.

        Args:
            connection_id: Local connection identifier
            resource_type: Resource type being synced

        Returns:
            SyncCheckpoint if found, None otherwise
        """
        pass

    @abstractmethod
    def list_by_connection(self, connection_id: uuid.UUID) -> list[SyncCheckpoint]:
        """
        List all checkpoints for a connection.

        Args:
            connection_id: Local connection identifier

        Returns:
            List of checkpoints for the connection
        """
        pass

    @abstractmethod
    def reset_syncing(self, connection_id: uuid.UUID) -> int:
        """
        Return checkpoints left in syncing by an abandoned run to idle.

        The watermark is kept as is.

        Args:
            connection_id: Local connection identifier

        Returns:
            Number of checkpoints reset
        """
        pass
