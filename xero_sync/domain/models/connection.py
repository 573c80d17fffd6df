"""Connection aggregate root - the single active link to a Xero organisation."""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from xero_sync.core.clock import utcnow


@dataclass(frozen=True)
class Credentials:
    """OAuth token set value object."""
    access_token: str
    refresh_token: str
    expires_at: datetime
    token_type: str = "Bearer"

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Token is expired at or after its expiry instant."""
        return (now or utcnow()) >= self.expires_at


@dataclass
class XeroTenant:
    """Organisation identity returned by the connections endpoint."""
    tenant_id: str
    tenant_name: str
    tenant_type: str = "ORGANISATION"


@dataclass
class Connection:
    """
    Aggregate root representing one linked Xero organisation.

    Invariants:
    - tenant_id is unique
    - at most one connection is active at any time
    - connections are deactivated, never deleted
    """
    id: Optional[uuid.UUID]
    tenant_id: str
    tenant_name: str
    credentials: Credentials
    is_active: bool = True
    tenant_type: str = "ORGANISATION"
    last_sync_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        """Validate invariants."""
        if not self.tenant_id:
            raise ValueError("tenant_id cannot be empty")
        if not self.credentials.access_token:
            raise ValueError("access_token cannot be empty")
        if not self.credentials.refresh_token:
            raise ValueError("refresh_token cannot be empty")

    def update_credentials(self, credentials: Credentials) -> None:
        """Store a refreshed token set."""
        self.credentials = credentials
        self.updated_at = utcnow()

    def deactivate(self) -> None:
        """Mark connection inactive; tokens are kept for inspection."""
        self.is_active = False
        self.updated_at = utcnow()

    def record_sync(self, at: Optional[datetime] = None) -> None:
        """Record that a sync attempt finished."""
        self.last_sync_at = at or utcnow()
        self.updated_at = utcnow()
