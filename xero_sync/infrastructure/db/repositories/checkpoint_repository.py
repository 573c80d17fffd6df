"""SyncCheckpoint repository implementation using SQLAlchemy."""
import uuid
from typing import Optional
from sqlalchemy import update
from sqlalchemy.orm import Session

from xero_sync.core.clock import utcnow
from xero_sync.domain.models.sync_checkpoint import CheckpointStatus, ResourceType, SyncCheckpoint
from xero_sync.domain.ports.checkpoint_repo import SyncCheckpointRepository
from xero_sync.infrastructure.db.models import SyncCheckpointModel


class SQLAlchemySyncCheckpointRepository(SyncCheckpointRepository):
    """SQLAlchemy implementation of SyncCheckpointRepository."""

    def __init__(self, session: Session):
        """
        Initialize repository with database session.

        Args:
            session: SQLAlchemy session
        """
        self.session = session

    def save(self, checkpoint: SyncCheckpoint) -> SyncCheckpoint:
        """Save or update a checkpoint keyed by connection and resource type."""
        db_checkpoint = self.session.query(SyncCheckpointModel).filter_by(
            connection_id=checkpoint.connection_id,
            resource_type=checkpoint.resource_type
        ).first()

        if db_checkpoint:
            db_checkpoint.last_sync_at = checkpoint.last_sync_at
            db_checkpoint.status = checkpoint.status
            db_checkpoint.error_message = checkpoint.error_message
            db_checkpoint.updated_at = checkpoint.updated_at
        else:
            db_checkpoint = SyncCheckpointModel(
                connection_id=checkpoint.connection_id,
                resource_type=checkpoint.resource_type,
                last_sync_at=checkpoint.last_sync_at,
                status=checkpoint.status,
                error_message=checkpoint.error_message,
                created_at=checkpoint.created_at,
                updated_at=checkpoint.updated_at
            )
            self.session.add(db_checkpoint)

        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(db_checkpoint)

        return self._to_domain(db_checkpoint)

    def find(
        self,
        connection_id: uuid.UUID,
        resource_type: ResourceType
    ) -> Optional[SyncCheckpoint]:
        """Find checkpoint by composite key."""
        db_checkpoint = self.session.query(SyncCheckpointModel).filter_by(
            connection_id=connection_id,
            resource_type=resource_type
        ).first()

        return self._to_domain(db_checkpoint) if db_checkpoint else None

    def list_by_connection(self, connection_id: uuid.UUID) -> list[SyncCheckpoint]:
        """List all checkpoints for a connection."""
        db_checkpoints = self.session.query(SyncCheckpointModel).filter_by(
            connection_id=connection_id
        ).all()

        return [self._to_domain(db_checkpoint) for db_checkpoint in db_checkpoints]

    def reset_syncing(self, connection_id: uuid.UUID) -> int:
        """Set checkpoints stuck in syncing back to idle, keeping last_sync_at."""
        result = self.session.execute(
            update(SyncCheckpointModel)
            .where(
                SyncCheckpointModel.connection_id == connection_id,
                SyncCheckpointModel.status == CheckpointStatus.SYNCING
            )
            .values(status=CheckpointStatus.IDLE, updated_at=utcnow())
        )
        self.session.commit()
        return result.rowcount

    @staticmethod
    def _to_domain(db_checkpoint: SyncCheckpointModel) -> SyncCheckpoint:
        """Convert SQLAlchemy model to domain entity."""
        return SyncCheckpoint(
            id=db_checkpoint.id,
            connection_id=db_checkpoint.connection_id,
            resource_type=db_checkpoint.resource_type,
            last_sync_at=db_checkpoint.last_sync_at,
            status=db_checkpoint.status,
            error_message=db_checkpoint.error_message,
            created_at=db_checkpoint.created_at,
            updated_at=db_checkpoint.updated_at
        )
