"""RawEvent repository implementation using SQLAlchemy."""
import uuid
from sqlalchemy import select
from sqlalchemy.orm import Session

from xero_sync.domain.models.raw_event import RawEvent
from xero_sync.domain.models.sync_checkpoint import ResourceType
from xero_sync.domain.ports.raw_event_repo import RawEventRepository
from xero_sync.infrastructure.db.models import RawEventModel


class SQLAlchemyRawEventRepository(RawEventRepository):
    """SQLAlchemy implementation of RawEventRepository. Inserts only."""

    def __init__(self, session: Session):
        self.session = session

    def append(self, event: RawEvent) -> RawEvent:
        """Insert one event and commit it ahead of any record mutation."""
        db_event = RawEventModel(
            connection_id=event.connection_id,
            resource_type=event.resource_type,
            resource_id=event.resource_id,
            payload=event.payload,
            content_hash=event.content_hash,
            captured_at=event.captured_at
        )
        self.session.add(db_event)
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        return self._to_domain(db_event)

    def list_for_resource(
        self,
        connection_id: uuid.UUID,
        resource_type: ResourceType,
        resource_id: str
    ) -> list[RawEvent]:
        """List observations of one record, oldest first."""
        stmt = (
            select(RawEventModel)
            .where(
                RawEventModel.connection_id == connection_id,
                RawEventModel.resource_type == resource_type,
                RawEventModel.resource_id == resource_id
            )
            .order_by(RawEventModel.captured_at)
        )

        return [self._to_domain(e) for e in self.session.execute(stmt).scalars().all()]

    @staticmethod
    def _to_domain(db_event: RawEventModel) -> RawEvent:
        return RawEvent(
            id=db_event.id,
            connection_id=db_event.connection_id,
            resource_type=db_event.resource_type,
            resource_id=db_event.resource_id,
            payload=db_event.payload,
            content_hash=db_event.content_hash,
            captured_at=db_event.captured_at
        )
