"""RawEvent repository port interface."""
import uuid
from abc import ABC, abstractmethod

from xero_sync.domain.models.raw_event import RawEvent
from xero_sync.domain.models.sync_checkpoint import ResourceType


class RawEventRepository(ABC):
    """Append-only store for raw payload observations."""

    @abstractmethod
    def append(self, event: RawEvent) -> RawEvent:
        """
        Append one event. Events are never updated or deleted.

        Args:
            event: RawEvent to store

        Returns:
            Stored event with its ID
        """
        pass

    @abstractmethod
    def list_for_resource(
        self,
        connection_id: uuid.UUID,
        resource_type: ResourceType,
        resource_id: str
    ) -> list[RawEvent]:
        """
        List every observation of one upstream record, oldest first.

        Args:
            connection_id: Local connection identifier
            resource_type: Resource type
            resource_id: Upstream record identifier

        Returns:
            List of events
        """
        pass
