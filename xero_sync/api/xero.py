"""Xero connection and sync endpoints."""
import logging
import uuid
from typing import Optional
import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from xero_sync.application.bootstrap import build_connection_manager, build_orchestrator
from xero_sync.application.services.connection_manager import ConnectionManager
from xero_sync.application.services.sync_orchestrator import SyncOrchestrator
from xero_sync.application.services.sync_tasks import SyncTaskManager, get_task_manager
from xero_sync.core.config import settings
from xero_sync.core.database import get_db
from xero_sync.domain.exceptions import AuthExchangeError, NotConnectedError, SyncAlreadyRunningError
from xero_sync.domain.models.sync_run import SyncType
from xero_sync.temporal.scheduling import start_scheduled_sync

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/xero", tags=["xero"])


class SyncRequest(BaseModel):
    """Request model for triggering a sync."""
    type: SyncType = SyncType.INCREMENTAL
    wait: bool = False


def get_connection_manager(db: Session = Depends(get_db)) -> ConnectionManager:
    return build_connection_manager(db)


def get_orchestrator(db: Session = Depends(get_db)) -> SyncOrchestrator:
    return build_orchestrator(db)


def _settings_redirect(**params) -> RedirectResponse:
    return RedirectResponse(str(httpx.URL(settings.settings_page_url, params=params)))


@router.get("/connect")
async def connect(manager: ConnectionManager = Depends(get_connection_manager)):
    """Redirect the user to Xero's consent page."""
    try:
        url = manager.build_authorization_url()
    except Exception as e:
        logger.error(f"Failed to build authorization URL: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to initiate Xero connection")

    return RedirectResponse(url)


@router.get("/callback")
async def callback(request: Request, manager: ConnectionManager = Depends(get_connection_manager)):
    """
    OAuth redirect target.

    Completes the code exchange and sends the user back to the settings
    page with either connected=true or an error message.
    """
    try:
        await manager.complete_authorization(str(request.url))
    except AuthExchangeError as e:
        logger.error(f"Xero authorization failed: {str(e)}")
        return _settings_redirect(error=str(e))

    if settings.scheduled_sync_enabled:
        connection = manager.connection_repo.find_active()
        if connection is not None:
            await start_scheduled_sync(connection.tenant_id)

    return _settings_redirect(connected="true")


@router.get("/status")
async def status(
    manager: ConnectionManager = Depends(get_connection_manager),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
):
    """Connection summary plus per-resource checkpoint status."""
    return {**manager.status(), "sync": orchestrator.get_sync_status()}


@router.post("/disconnect")
async def disconnect(manager: ConnectionManager = Depends(get_connection_manager)):
    manager.disconnect()
    return {"success": True}


@router.post("/sync")
async def trigger_sync(
    request: Optional[SyncRequest] = None,
    tasks: SyncTaskManager = Depends(get_task_manager)
):
    """
    Start a sync run.

    With wait=false (default) the run is scheduled in the background and
    its task document is returned with 202; poll /xero/sync/tasks/{taskId}.
    With wait=true the run executes within the request and the results
    document is returned.
    """
    request = request or SyncRequest()

    try:
        if request.wait:
            results = await tasks.run_inline(request.type)
            return results.to_dict()

        run = await tasks.start(request.type)
    except NotConnectedError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SyncAlreadyRunningError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return JSONResponse(status_code=202, content=run.to_dict())


@router.get("/sync/tasks/{task_id}")
async def get_task(task_id: uuid.UUID, tasks: SyncTaskManager = Depends(get_task_manager)):
    run = tasks.get(task_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Sync task not found")
    return run.to_dict()


@router.post("/sync/tasks/{task_id}/cancel")
async def cancel_task(task_id: uuid.UUID, tasks: SyncTaskManager = Depends(get_task_manager)):
    if tasks.get(task_id) is None:
        raise HTTPException(status_code=404, detail="Sync task not found")
    return {"cancelled": tasks.cancel(task_id)}


@router.post("/sync/tasks/{task_id}/resume")
async def resume_task(task_id: uuid.UUID, tasks: SyncTaskManager = Depends(get_task_manager)):
    """Start an incremental run picking up after a failed or cancelled one."""
    try:
        run = await tasks.resume(task_id)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except NotConnectedError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SyncAlreadyRunningError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if run is None:
        raise HTTPException(status_code=404, detail="Sync task not found")
    return JSONResponse(status_code=202, content=run.to_dict())
