"""Connection repository implementation using SQLAlchemy."""
from typing import Optional
from sqlalchemy import update
from sqlalchemy.orm import Session

from xero_sync.core.clock import utcnow
from xero_sync.domain.models.connection import Connection, Credentials
from xero_sync.domain.ports.connection_repo import ConnectionRepository
from xero_sync.infrastructure.db.models import ConnectionModel


class SQLAlchemyConnectionRepository(ConnectionRepository):
    """SQLAlchemy implementation of ConnectionRepository."""

    def __init__(self, session: Session):
        """
        Initialize repository with database session.

        Args:
            session: SQLAlchemy session
        """
        self.session = session

    def save(self, connection: Connection) -> Connection:
        """Save or update a connection."""
        db_connection = self._write(connection)
        self.session.commit()
        self.session.refresh(db_connection)

        return self._to_domain(db_connection)

    def activate(self, connection: Connection) -> Connection:
        """Deactivate every connection, then upsert this one as active, in one commit."""
        try:
            self.session.execute(
                update(ConnectionModel)
                .where(ConnectionModel.is_active.is_(True))
                .values(is_active=False, updated_at=utcnow())
            )
            connection.is_active = True
            db_connection = self._write(connection)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        self.session.refresh(db_connection)
        return self._to_domain(db_connection)

    def find_active(self) -> Optional[Connection]:
        """Find the active connection."""
        db_connection = self.session.query(ConnectionModel).filter_by(is_active=True).first()
        return self._to_domain(db_connection) if db_connection else None

    def find_by_tenant_id(self, tenant_id: str) -> Optional[Connection]:
        """Find connection by Xero tenant ID."""
        db_connection = self.session.query(ConnectionModel).filter_by(tenant_id=tenant_id).first()
        return self._to_domain(db_connection) if db_connection else None

    def list_all(self) -> list[Connection]:
        """List all connections."""
        return [self._to_domain(c) for c in self.session.query(ConnectionModel).all()]

    def _write(self, connection: Connection) -> ConnectionModel:
        """Stage an insert or update without committing."""
        db_connection = self.session.query(ConnectionModel).filter_by(
            tenant_id=connection.tenant_id
        ).first()

        if db_connection:
            db_connection.tenant_name = connection.tenant_name
            db_connection.tenant_type = connection.tenant_type
            db_connection.access_token = connection.credentials.access_token
            db_connection.refresh_token = connection.credentials.refresh_token
            db_connection.token_expires_at = connection.credentials.expires_at
            db_connection.token_type = connection.credentials.token_type
            db_connection.is_active = connection.is_active
            db_connection.last_sync_at = connection.last_sync_at
            db_connection.updated_at = utcnow()
        else:
            db_connection = ConnectionModel(
                tenant_id=connection.tenant_id,
                tenant_name=connection.tenant_name,
                tenant_type=connection.tenant_type,
                access_token=connection.credentials.access_token,
                refresh_token=connection.credentials.refresh_token,
                token_expires_at=connection.credentials.expires_at,
                token_type=connection.credentials.token_type,
                is_active=connection.is_active,
                last_sync_at=connection.last_sync_at,
                created_at=connection.created_at,
                updated_at=connection.updated_at
            )
            self.session.add(db_connection)

        self.session.flush()
        return db_connection

    @staticmethod
    def _to_domain(db_connection: ConnectionModel) -> Connection:
        """Convert SQLAlchemy model to domain entity."""
        credentials = Credentials(
            access_token=db_connection.access_token,
            refresh_token=db_connection.refresh_token,
            expires_at=db_connection.token_expires_at,
            token_type=db_connection.token_type
        )

        return Connection(
            id=db_connection.id,
            tenant_id=db_connection.tenant_id,
            tenant_name=db_connection.tenant_name,
            tenant_type=db_connection.tenant_type,
            credentials=credentials,
            is_active=db_connection.is_active,
            last_sync_at=db_connection.last_sync_at,
            created_at=db_connection.created_at,
            updated_at=db_connection.updated_at
        )
