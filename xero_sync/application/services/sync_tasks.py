"""Background sync task manager."""
import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from xero_sync.application.bootstrap import build_orchestrator
from xero_sync.application.services.sync_orchestrator import SyncOrchestrator
from xero_sync.core.database import SessionLocal
from xero_sync.domain.exceptions import NotConnectedError, SyncAlreadyRunningError
from xero_sync.domain.models.sync_results import SyncProgress, SyncResults
from xero_sync.domain.models.sync_run import RunState, SyncRun, SyncType
from xero_sync.infrastructure.db.repositories.checkpoint_repository import SQLAlchemySyncCheckpointRepository
from xero_sync.infrastructure.db.repositories.connection_repository import SQLAlchemyConnectionRepository
from xero_sync.infrastructure.db.repositories.sync_run_repository import (
    SQLAlchemySyncLockRepository, SQLAlchemySyncRunRepository
)

logger = logging.getLogger(__name__)

INTERRUPTED_MESSAGE = "Interrupted: the service stopped before the run finished"


@dataclass
class _RunningTask:
    connection_id: uuid.UUID
    task: asyncio.Task


class SyncTaskManager:
    """
    Runs orchestrator executions as asyncio tasks in this process.

    Each task gets its own database session. Run state and progress are
    persisted as the task advances, so any request can poll them.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        orchestrator_factory: Callable[[Session], SyncOrchestrator] = build_orchestrator
    ):
        """
        Initialize task manager.

        Args:
            session_factory: Builds a new database session
            orchestrator_factory: Builds an orchestrator bound to a session
        """
        self.session_factory = session_factory
        self.orchestrator_factory = orchestrator_factory
        self._tasks: Dict[uuid.UUID, _RunningTask] = {}

    async def start(self, sync_type: SyncType) -> SyncRun:
        """
        Persist a pending run and schedule it.

        Raises:
            NotConnectedError: If there is no active connection
            SyncAlreadyRunningError: If the connection already has a run in flight
        """
        db = self.session_factory()
        try:
            connection = SQLAlchemyConnectionRepository(db).find_active()
            if connection is None:
                raise NotConnectedError()
            if self._has_live_task(connection.id) or SQLAlchemySyncLockRepository(db).is_locked(connection.id):
                raise SyncAlreadyRunningError(
                    f"A sync is already running for {connection.tenant_name}"
                )

            run = SyncRun.create(sync_type, connection.id)
            SQLAlchemySyncRunRepository(db).save(run)
        finally:
            db.close()

        task = asyncio.create_task(self._execute(run))
        self._tasks[run.id] = _RunningTask(connection_id=run.connection_id, task=task)
        task.add_done_callback(lambda _, run_id=run.id: self._tasks.pop(run_id, None))

        logger.info(f"Scheduled {sync_type.value} sync run {run.id}")
        return run

    async def run_inline(self, sync_type: SyncType) -> SyncResults:
        """
        Run a sync within the caller's task and return its report.

        Raises:
            NotConnectedError: If there is no active connection
            SyncAlreadyRunningError: If the connection is locked by another run
        """
        db = self.session_factory()
        try:
            if SQLAlchemyConnectionRepository(db).find_active() is None:
                raise NotConnectedError()
            orchestrator = self.orchestrator_factory(db)
            return await orchestrator.run(sync_type)
        finally:
            db.close()

    def get(self, run_id: uuid.UUID) -> Optional[SyncRun]:
        db = self.session_factory()
        try:
            return SQLAlchemySyncRunRepository(db).find_by_id(run_id)
        finally:
            db.close()

    def cancel(self, run_id: uuid.UUID) -> bool:
        """
        Request cancellation of a running task.

        Returns:
            True if a live task was signalled
        """
        running = self._tasks.get(run_id)
        if running is None or running.task.done():
            return False
        running.task.cancel()
        logger.info(f"Cancellation requested for sync run {run_id}")
        return True

    async def resume(self, run_id: uuid.UUID) -> Optional[SyncRun]:
        """
        Start an incremental run following a failed or cancelled one.

        Completed resources carry advanced checkpoints, so the new run
        only fetches what changed since they finished.

        Returns:
            The new run, or None if run_id is unknown

        Raises:
            ValueError: If the run is still active or succeeded
        """
        previous = self.get(run_id)
        if previous is None:
            return None
        if previous.state not in (RunState.FAILED, RunState.CANCELLED):
            raise ValueError(f"Run {run_id} is {previous.state.value} and cannot be resumed")
        return await self.start(SyncType.INCREMENTAL)

    async def wait_for(self, run_id: uuid.UUID) -> None:
        """Block until the run's task (if still live) has finished."""
        running = self._tasks.get(run_id)
        if running is not None:
            await asyncio.wait([running.task])

    def recover_interrupted_runs(self) -> int:
        """
        Fail runs left pending or running by a stopped process.

        Returns:
            Number of runs marked failed
        """
        db = self.session_factory()
        try:
            run_repo = SQLAlchemySyncRunRepository(db)
            checkpoint_repo = SQLAlchemySyncCheckpointRepository(db)
            recovered = 0
            for run in run_repo.list_unfinished():
                if run.id in self._tasks:
                    continue
                run.fail(INTERRUPTED_MESSAGE)
                run_repo.save(run)
                if run.connection_id is not None:
                    checkpoint_repo.reset_syncing(run.connection_id)
                recovered += 1
        finally:
            db.close()

        if recovered:
            logger.warning(f"Marked {recovered} interrupted sync runs as failed")
        return recovered

    def _has_live_task(self, connection_id: uuid.UUID) -> bool:
        return any(
            running.connection_id == connection_id and not running.task.done()
            for running in self._tasks.values()
        )

    async def _execute(self, run: SyncRun) -> None:
        db = self.session_factory()
        run_repo = SQLAlchemySyncRunRepository(db)

        def on_progress(progress: SyncProgress) -> None:
            run.report(progress)
            run_repo.save(run)

        try:
            orchestrator = self.orchestrator_factory(db)
            run.mark_running()
            run_repo.save(run)

            results = await orchestrator.run(run.sync_type, on_progress)
            run.finish(results.to_dict())
            run_repo.save(run)
            logger.info(f"Sync run {run.id} finished: {run.state.value}")
        except asyncio.CancelledError:
            logger.info(f"Sync run {run.id} cancelled")
            db.rollback()
            run.cancel()
            run_repo.save(run)
            SQLAlchemySyncCheckpointRepository(db).reset_syncing(run.connection_id)
            raise
        except Exception as e:
            logger.error(f"Sync run {run.id} failed: {str(e)}")
            db.rollback()
            run.fail(str(e))
            run_repo.save(run)
            SQLAlchemySyncCheckpointRepository(db).reset_syncing(run.connection_id)
        finally:
            db.close()


task_manager = SyncTaskManager()


def get_task_manager() -> SyncTaskManager:
    """FastAPI dependency returning the process-wide task manager."""
    return task_manager
