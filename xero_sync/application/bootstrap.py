"""Wiring of application services onto SQLAlchemy repositories."""
from typing import Any, Awaitable, Callable, Optional
import httpx
from sqlalchemy.orm import Session

from xero_sync.application.services.connection_manager import ConnectionManager
from xero_sync.application.services.sync_orchestrator import SyncOrchestrator
from xero_sync.application.services.syncers import SYNCER_CLASSES
from xero_sync.infrastructure.db.repositories.checkpoint_repository import SQLAlchemySyncCheckpointRepository
from xero_sync.infrastructure.db.repositories.connection_repository import SQLAlchemyConnectionRepository
from xero_sync.infrastructure.db.repositories.ledger_repository import SQLAlchemyLedgerRepository
from xero_sync.infrastructure.db.repositories.raw_event_repository import SQLAlchemyRawEventRepository
from xero_sync.infrastructure.db.repositories.sync_run_repository import SQLAlchemySyncLockRepository
from xero_sync.infrastructure.integrations.xero.oauth import XeroOAuthClient


def build_connection_manager(
    db: Session,
    oauth_client: Optional[XeroOAuthClient] = None,
    api_transport: Optional[httpx.AsyncBaseTransport] = None
) -> ConnectionManager:
    return ConnectionManager(
        SQLAlchemyConnectionRepository(db),
        oauth_client=oauth_client,
        api_transport=api_transport
    )


def build_orchestrator(
    db: Session,
    oauth_client: Optional[XeroOAuthClient] = None,
    api_transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep: Optional[Callable[[float], Awaitable[Any]]] = None
) -> SyncOrchestrator:
    """
    Build an orchestrator whose repositories all share one session.

    Args:
        db: Database session owned by the caller
        oauth_client: OAuth client override
        api_transport: httpx transport override for API calls
        sleep: Sleep override for the inter-page delay

    Returns:
        Ready-to-run orchestrator
    """
    checkpoint_repo = SQLAlchemySyncCheckpointRepository(db)
    raw_event_repo = SQLAlchemyRawEventRepository(db)
    ledger_repo = SQLAlchemyLedgerRepository(db)

    syncer_kwargs = {"sleep": sleep} if sleep is not None else {}
    syncers = [
        syncer_cls(checkpoint_repo, raw_event_repo, ledger_repo, **syncer_kwargs)
        for syncer_cls in SYNCER_CLASSES
    ]

    return SyncOrchestrator(
        connection_manager=build_connection_manager(db, oauth_client, api_transport),
        connection_repo=SQLAlchemyConnectionRepository(db),
        checkpoint_repo=checkpoint_repo,
        lock_repo=SQLAlchemySyncLockRepository(db),
        syncers=syncers
    )
