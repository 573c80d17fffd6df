"""Sync orchestrator application service."""
import inspect
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from xero_sync.application.services.connection_manager import ConnectionManager
from xero_sync.application.services.resource_syncer import ResourceSyncer
from xero_sync.core.config import settings
from xero_sync.domain.exceptions import NotConnectedError, SyncAlreadyRunningError
from xero_sync.domain.models.sync_checkpoint import ResourceType
from xero_sync.domain.models.sync_results import SyncProgress, SyncResult, SyncResults
from xero_sync.domain.models.sync_run import SyncType
from xero_sync.domain.ports.checkpoint_repo import SyncCheckpointRepository
from xero_sync.domain.ports.connection_repo import ConnectionRepository
from xero_sync.domain.ports.sync_run_repo import SyncLockRepository

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[SyncProgress], Union[None, Awaitable[None]]]

_RESULT_FIELDS = {
    ResourceType.ACCOUNTS: "accounts",
    ResourceType.CONTACTS: "contacts",
    ResourceType.BANK_TRANSACTIONS: "bank_transactions",
    ResourceType.INVOICES: "invoices",
    ResourceType.BILLS: "bills",
}


class SyncOrchestrator:
    """
    High-level orchestration of a sync run.

    Responsibilities:
    - Obtain a valid client through the connection manager
    - Hold the per-connection lease lock for the whole run
    - Run every syncer in dependency order, whatever the earlier outcome
    - Aggregate one SyncResults report
    """

    def __init__(
        self,
        connection_manager: ConnectionManager,
        connection_repo: ConnectionRepository,
        checkpoint_repo: SyncCheckpointRepository,
        lock_repo: SyncLockRepository,
        syncers: List[ResourceSyncer],
        lock_ttl_seconds: Optional[int] = None
    ):
        """
        Initialize orchestrator.

        Args:
            connection_manager: Connection manager
            connection_repo: Connection repository
            checkpoint_repo: Checkpoint repository
            lock_repo: Sync lock repository
            syncers: Resource syncers in dependency order
            lock_ttl_seconds: Lease duration, renewed after every syncer
        """
        self.connection_manager = connection_manager
        self.connection_repo = connection_repo
        self.checkpoint_repo = checkpoint_repo
        self.lock_repo = lock_repo
        self.syncers = syncers
        self.lock_ttl_seconds = lock_ttl_seconds or settings.sync_lock_ttl_seconds

    async def run_initial_sync(self, on_progress: Optional[ProgressCallback] = None) -> SyncResults:
        """Full sync of every resource, ignoring checkpoints."""
        return await self._run(SyncType.INITIAL, on_progress)

    async def run_incremental_sync(self, on_progress: Optional[ProgressCallback] = None) -> SyncResults:
        """Sync each resource from its checkpoint; resources without one sync in full."""
        return await self._run(SyncType.INCREMENTAL, on_progress)

    async def run(self, sync_type: SyncType, on_progress: Optional[ProgressCallback] = None) -> SyncResults:
        return await self._run(sync_type, on_progress)

    async def _run(self, sync_type: SyncType, on_progress: Optional[ProgressCallback]) -> SyncResults:
        """
        Execute one run.

        Raises:
            SyncAlreadyRunningError: If another run holds the connection's lock
        """
        started = time.monotonic()
        results = SyncResults()

        await self._emit(on_progress, "auth", 0, "Checking Xero connection...")
        session = await self.connection_manager.get_valid_client()
        if session is None:
            results.total_errors.append(str(NotConnectedError()))
            results.duration = time.monotonic() - started
            return results

        client, connection = session
        owner = uuid.uuid4().hex
        if not self.lock_repo.acquire(connection.id, owner, self.lock_ttl_seconds):
            raise SyncAlreadyRunningError(
                f"A sync is already running for {connection.tenant_name}"
            )

        logger.info(f"Starting {sync_type.value} sync for tenant {connection.tenant_id}")
        try:
            for syncer in self.syncers:
                await self._emit(
                    on_progress, syncer.stage, syncer.progress, f"Syncing {syncer.plural_label}..."
                )

                try:
                    since = None
                    if sync_type == SyncType.INCREMENTAL:
                        since = syncer.incremental_since(connection.id)
                    outcome = await syncer.sync(client, connection.id, since)
                except Exception as e:
                    message = f"Failed to sync {syncer.plural_label}: {str(e)}"
                    logger.error(message)
                    outcome = {syncer.resource_type: SyncResult(errors=[message])}

                for resource_type, result in outcome.items():
                    setattr(results, _RESULT_FIELDS[resource_type], result)
                    results.total_errors.extend(result.errors)

                if not self.lock_repo.renew(connection.id, owner, self.lock_ttl_seconds):
                    message = f"Sync lock for {connection.tenant_name} was lost; remaining resources skipped"
                    logger.error(message)
                    results.total_errors.append(message)
                    break

            self.connection_manager.record_sync(connection)
        finally:
            self.lock_repo.release(connection.id, owner)

        results.duration = time.monotonic() - started
        await self._emit(on_progress, "complete", 100, "Sync complete")
        logger.info(
            f"Finished {sync_type.value} sync in {results.duration:.1f}s "
            f"with {len(results.total_errors)} errors"
        )
        return results

    def get_sync_status(self) -> Dict[str, Any]:
        """Checkpoint summary of the active connection."""
        connection = self.connection_repo.find_active()
        if connection is None:
            return {"resources": [], "overallLastSync": None}

        resources = [
            {
                "resourceType": checkpoint.resource_type.value,
                "lastSyncAt": checkpoint.last_sync_at.isoformat() if checkpoint.last_sync_at else None,
                "status": checkpoint.status.value,
                "errorMessage": checkpoint.error_message,
            }
            for checkpoint in self.checkpoint_repo.list_by_connection(connection.id)
        ]
        return {
            "resources": resources,
            "overallLastSync": connection.last_sync_at.isoformat() if connection.last_sync_at else None,
        }

    @staticmethod
    async def _emit(
        on_progress: Optional[ProgressCallback],
        stage: str,
        progress: int,
        message: str
    ) -> None:
        if on_progress is None:
            return
        outcome = on_progress(SyncProgress(stage=stage, progress=progress, message=message))
        if inspect.isawaitable(outcome):
            await outcome
