"""Temporal activities - idempotent, retriable operations."""
import logging
from typing import Callable

from sqlalchemy.orm import Session
from temporalio import activity

from xero_sync.application.bootstrap import build_orchestrator
from xero_sync.core.database import SessionLocal
from xero_sync.domain.exceptions import SyncAlreadyRunningError
from xero_sync.infrastructure.db.repositories.connection_repository import SQLAlchemyConnectionRepository

logger = logging.getLogger(__name__)


async def sync_tenant(tenant_id: str, session_factory: Callable[[], Session] = SessionLocal) -> dict:
    """
    Run one incremental sync if tenant_id is still the active connection.

    Args:
        tenant_id: Xero tenant the schedule was started for
        session_factory: Builds the database session for this run

    Returns:
        {"status": "completed", "results": {...}} or {"status": "skipped", "reason": ...}
    """
    db = session_factory()
    try:
        connection = SQLAlchemyConnectionRepository(db).find_active()
        if connection is None or connection.tenant_id != tenant_id:
            logger.info(f"Tenant {tenant_id} is no longer the active connection, skipping")
            return {"status": "skipped", "reason": "not the active connection"}

        orchestrator = build_orchestrator(db)
        try:
            results = await orchestrator.run_incremental_sync()
        except SyncAlreadyRunningError as e:
            logger.info(f"Scheduled sync skipped: {str(e)}")
            return {"status": "skipped", "reason": str(e)}

        return {"status": "completed", "results": results.to_dict()}
    finally:
        db.close()


@activity.defn
async def run_incremental_sync(tenant_id: str) -> dict:
    """
    Activity to run a scheduled incremental sync.

    Safe to retry: records are upserted and checkpoints only move forward.

    Args:
        tenant_id: Xero tenant ID

    Returns:
        Sync outcome summary
    """
    activity.logger.info(f"Running scheduled sync for tenant {tenant_id}")

    try:
        outcome = await sync_tenant(tenant_id)
    except Exception as e:
        activity.logger.error(f"Scheduled sync failed: {str(e)}")
        raise

    activity.logger.info(f"Scheduled sync {outcome['status']}")
    return outcome
