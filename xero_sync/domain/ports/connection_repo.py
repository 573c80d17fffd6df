"""Connection repository port interface."""
from abc import ABC, abstractmethod
from typing import Optional

from xero_sync.domain.models.connection import Connection


class ConnectionRepository(ABC):
    """Repository interface for Connection aggregate."""

    @abstractmethod
    def save(self, connection: Connection) -> Connection:
        """
        Save or update a connection, matched by tenant_id.

        Args:
            connection: Connection to save

        Returns:
            Saved connection with updated ID
        """
        pass

    @abstractmethod
    def activate(self, connection: Connection) -> Connection:
        """
        Make `connection` the only active connection.

        Deactivating every other connection and upserting this one as
        active happen in one transaction.

        Args:
            connection: Connection to activate

        Returns:
            Saved active connection
        """
        pass

    @abstractmethod
    def find_active(self) -> Optional[Connection]:
        """
        Find the active connection.

        Returns:
            Connection if one is active, None otherwise
        """
        pass

    @abstractmethod
    def find_by_tenant_id(self, tenant_id: str) -> Optional[Connection]:
        """
        Find connection by Xero tenant ID.

        Args:
            tenant_id: Xero organisation identifier

        Returns:
            Connection if found, None otherwise
        """
        pass

    @abstractmethod
    def list_all(self) -> list[Connection]:
        """
        List all connections, active or not.

        Returns:
            List of connections
        """
        pass
