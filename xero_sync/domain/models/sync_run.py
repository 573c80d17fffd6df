"""SyncRun entity - one persisted execution of the orchestrator."""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from xero_sync.core.clock import utcnow
from xero_sync.domain.models.sync_results import SyncProgress


class SyncType(str, Enum):
    """Sync mode."""
    INITIAL = "initial"
    INCREMENTAL = "incremental"


class RunState(str, Enum):
    """Run lifecycle: pending -> running -> succeeded | failed | cancelled."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.SUCCEEDED, RunState.FAILED, RunState.CANCELLED)


@dataclass
class SyncRun:
    """Tracks state, progress and result of one sync task."""
    id: uuid.UUID
    sync_type: SyncType
    connection_id: Optional[uuid.UUID] = None
    state: RunState = RunState.PENDING
    stage: Optional[str] = None
    progress: int = 0
    message: Optional[str] = None
    results: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    @classmethod
    def create(cls, sync_type: SyncType, connection_id: Optional[uuid.UUID]) -> "SyncRun":
        return cls(id=uuid.uuid4(), sync_type=sync_type, connection_id=connection_id)

    def mark_running(self) -> None:
        self.state = RunState.RUNNING

    def report(self, progress: SyncProgress) -> None:
        self.stage = progress.stage
        self.progress = progress.progress
        self.message = progress.message

    def finish(self, results: Dict[str, Any]) -> None:
        """Finish with a results document; failed when it carries errors."""
        self.results = results
        self.state = RunState.SUCCEEDED if results.get("success") else RunState.FAILED
        self.finished_at = utcnow()

    def fail(self, error_message: str) -> None:
        self.state = RunState.FAILED
        self.error_message = error_message
        self.finished_at = utcnow()

    def cancel(self) -> None:
        self.state = RunState.CANCELLED
        self.message = "Cancelled"
        self.finished_at = utcnow()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "taskId": str(self.id),
            "type": self.sync_type.value,
            "state": self.state.value,
            "progress": {
                "stage": self.stage,
                "progress": self.progress,
                "message": self.message,
            },
            "results": self.results,
            "errorMessage": self.error_message,
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
        }
