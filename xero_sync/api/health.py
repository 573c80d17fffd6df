"""Health check endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session
from temporalio.client import Client

from xero_sync.application.bootstrap import build_connection_manager
from xero_sync.core.config import settings
from xero_sync.core.database import SessionLocal, get_db

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check():
    """
    Basic health check.

    Returns:
        Health status
    """
    return {"status": "healthy"}


@router.get("/db")
async def database_health():
    """
    Check database connectivity.

    Returns:
        Database health status
    """
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        return {"status": "unhealthy", "database": "disconnected", "error": str(e)}
    finally:
        db.close()


@router.get("/temporal")
async def temporal_health():
    """
    Check Temporal connectivity. The scheduled refresh is optional, so
    an unreachable server is reported, not treated as fatal.

    Returns:
        Temporal health status
    """
    try:
        await Client.connect(
            settings.temporal_host,
            namespace=settings.temporal_namespace
        )
        return {
            "status": "healthy",
            "temporal": "connected",
            "scheduled_sync_enabled": settings.scheduled_sync_enabled
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "temporal": "disconnected",
            "scheduled_sync_enabled": settings.scheduled_sync_enabled,
            "error": str(e)
        }


@router.get("/xero")
async def xero_health(db: Session = Depends(get_db)):
    """
    Report whether a Xero organisation is connected.

    An expired access token still counts as connected; it is refreshed
    on the next sync.
    """
    return {"status": "healthy", **build_connection_manager(db).status()}
