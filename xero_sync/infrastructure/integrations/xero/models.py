"""Xero-specific data transfer objects."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class MappedRecord:
    """
    One upstream record translated to local column values.

    Foreign keys are left as upstream references (contact_ref on the
    record, account_code on each line); the syncer resolves them.
    """
    external_id: str
    values: Dict[str, Any]
    lines: List[Dict[str, Any]] = field(default_factory=list)
    contact_ref: Optional[str] = None
