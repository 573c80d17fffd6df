"""SyncRun and sync lock repository implementations using SQLAlchemy."""
import uuid
from datetime import timedelta
from typing import Optional
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from xero_sync.core.clock import utcnow
from xero_sync.domain.models.sync_run import RunState, SyncRun
from xero_sync.domain.ports.sync_run_repo import SyncLockRepository, SyncRunRepository
from xero_sync.infrastructure.db.models import SyncLockModel, SyncRunModel


class SQLAlchemySyncRunRepository(SyncRunRepository):
    """SQLAlchemy implementation of SyncRunRepository."""

    def __init__(self, session: Session):
        self.session = session

    def save(self, run: SyncRun) -> SyncRun:
        """Insert or update a run."""
        db_run = self._load(run.id)
        if db_run is None:
            db_run = SyncRunModel(id=run.id)
            self.session.add(db_run)

        db_run.connection_id = run.connection_id
        db_run.sync_type = run.sync_type
        db_run.state = run.state
        db_run.stage = run.stage
        db_run.progress = run.progress
        db_run.message = run.message
        db_run.results = run.results
        db_run.error_message = run.error_message
        db_run.started_at = run.started_at
        db_run.finished_at = run.finished_at

        self.session.commit()
        return run

    def find_by_id(self, run_id: uuid.UUID) -> Optional[SyncRun]:
        db_run = self._load(run_id)
        return self._to_domain(db_run) if db_run else None

    def list_unfinished(self) -> list[SyncRun]:
        db_runs = self.session.query(SyncRunModel).filter(
            SyncRunModel.state.in_([RunState.PENDING, RunState.RUNNING])
        ).all()
        return [self._to_domain(r) for r in db_runs]

    def _load(self, run_id: uuid.UUID) -> Optional[SyncRunModel]:
        # Progress is written by the task's own session; always re-read
        stmt = (
            select(SyncRunModel)
            .where(SyncRunModel.id == run_id)
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    @staticmethod
    def _to_domain(db_run: SyncRunModel) -> SyncRun:
        return SyncRun(
            id=db_run.id,
            connection_id=db_run.connection_id,
            sync_type=db_run.sync_type,
            state=db_run.state,
            stage=db_run.stage,
            progress=db_run.progress,
            message=db_run.message,
            results=db_run.results,
            error_message=db_run.error_message,
            started_at=db_run.started_at,
            finished_at=db_run.finished_at
        )


class SQLAlchemySyncLockRepository(SyncLockRepository):
    """Lease lock stored as one row per connection."""

    def __init__(self, session: Session):
        self.session = session

    def acquire(self, connection_id: uuid.UUID, owner: str, ttl_seconds: int) -> bool:
        now = utcnow()
        expires_at = now + timedelta(seconds=ttl_seconds)
        db_lock = self._load(connection_id)

        if db_lock is None:
            self.session.add(SyncLockModel(
                connection_id=connection_id,
                owner=owner,
                acquired_at=now,
                expires_at=expires_at
            ))
            try:
                self.session.commit()
            except IntegrityError:
                # Lost the insert race to a concurrent run
                self.session.rollback()
                return False
            return True

        if db_lock.owner != owner and db_lock.expires_at > now:
            return False

        # Expired lease (crashed run) or re-entry by the same owner. Only
        # the row exactly as read may be taken over.
        result = self.session.execute(
            update(SyncLockModel)
            .where(
                SyncLockModel.connection_id == connection_id,
                SyncLockModel.owner == db_lock.owner,
                SyncLockModel.expires_at == db_lock.expires_at
            )
            .values(owner=owner, acquired_at=now, expires_at=expires_at)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        return result.rowcount == 1

    def renew(self, connection_id: uuid.UUID, owner: str, ttl_seconds: int) -> bool:
        result = self.session.execute(
            update(SyncLockModel)
            .where(
                SyncLockModel.connection_id == connection_id,
                SyncLockModel.owner == owner
            )
            .values(expires_at=utcnow() + timedelta(seconds=ttl_seconds))
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        return result.rowcount == 1

    def release(self, connection_id: uuid.UUID, owner: str) -> None:
        self.session.execute(
            delete(SyncLockModel).where(
                SyncLockModel.connection_id == connection_id,
                SyncLockModel.owner == owner
            )
        )
        self.session.commit()

    def is_locked(self, connection_id: uuid.UUID) -> bool:
        db_lock = self._load(connection_id)
        return db_lock is not None and db_lock.expires_at > utcnow()

    def _load(self, connection_id: uuid.UUID) -> Optional[SyncLockModel]:
        stmt = (
            select(SyncLockModel)
            .where(SyncLockModel.connection_id == connection_id)
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalar_one_or_none()
