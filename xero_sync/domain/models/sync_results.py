"""Sync result value objects reported back to callers."""
from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class SyncResult:
    """Outcome of syncing one resource type."""
    created: int = 0
    updated: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"created": self.created, "updated": self.updated, "errors": list(self.errors)}


@dataclass
class SyncProgress:
    """Progress notification emitted by the orchestrator."""
    stage: str
    progress: int
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"stage": self.stage, "progress": self.progress, "message": self.message}


@dataclass
class SyncResults:
    """
    Aggregated report of one orchestrator run.

    Partial success is a normal outcome: counts are reported for every
    resource even when total_errors is not empty.
    """
    accounts: SyncResult = field(default_factory=SyncResult)
    contacts: SyncResult = field(default_factory=SyncResult)
    bank_transactions: SyncResult = field(default_factory=SyncResult)
    invoices: SyncResult = field(default_factory=SyncResult)
    bills: SyncResult = field(default_factory=SyncResult)
    total_errors: List[str] = field(default_factory=list)
    duration: float = 0.0

    @property
    def success(self) -> bool:
        return not self.total_errors

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the API's camelCase field names."""
        return {
            "success": self.success,
            "accounts": self.accounts.to_dict(),
            "contacts": self.contacts.to_dict(),
            "bankTransactions": self.bank_transactions.to_dict(),
            "invoices": self.invoices.to_dict(),
            "bills": self.bills.to_dict(),
            "totalErrors": list(self.total_errors),
            "duration": self.duration,
        }
