"""RawEvent entity - immutable observation of one upstream payload."""
import hashlib
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from xero_sync.core.clock import utcnow
from xero_sync.domain.models.sync_checkpoint import ResourceType


def compute_content_hash(payload: Dict[str, Any]) -> str:
    """
    Fingerprint a payload.

    The payload is serialized canonically (sorted keys, compact separators)
    so the hash does not depend on key order.

    Args:
        payload: Raw record as received from Xero

    Returns:
        Hex SHA-256 digest
    """
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class RawEvent:
    """
    Append-only audit row for one observed payload.

    Rules:
    - No transformation applied
    - Stored exactly as received from Xero
    - One row per observation, unchanged payloads included
    """
    connection_id: uuid.UUID
    resource_type: ResourceType
    resource_id: str
    payload: Dict[str, Any]
    content_hash: str
    captured_at: datetime = field(default_factory=utcnow)
    id: Optional[uuid.UUID] = None

    @classmethod
    def observe(
        cls,
        connection_id: uuid.UUID,
        resource_type: ResourceType,
        resource_id: Optional[str],
        payload: Dict[str, Any]
    ) -> "RawEvent":
        """Build an event for a payload, hashing it."""
        return cls(
            connection_id=connection_id,
            resource_type=resource_type,
            resource_id=resource_id or "",
            payload=payload,
            content_hash=compute_content_hash(payload)
        )
