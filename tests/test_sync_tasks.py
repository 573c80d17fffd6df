"""Tests for background sync tasks."""
import asyncio
import uuid
from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from tests.factories import FakeXeroClient, account_payload, contact_payload
from xero_sync.application import bootstrap
from xero_sync.application.services import connection_manager as connection_manager_module
from xero_sync.application.services.sync_tasks import INTERRUPTED_MESSAGE, SyncTaskManager
from xero_sync.domain.exceptions import NotConnectedError, SyncAlreadyRunningError
from xero_sync.domain.models.sync_checkpoint import CheckpointStatus, ResourceType, SyncCheckpoint
from xero_sync.domain.models.sync_run import RunState, SyncRun, SyncType
from xero_sync.infrastructure.db.repositories.checkpoint_repository import SQLAlchemySyncCheckpointRepository
from xero_sync.infrastructure.db.repositories.sync_run_repository import (
    SQLAlchemySyncLockRepository, SQLAlchemySyncRunRepository
)


class BlockingXeroClient(FakeXeroClient):
    """Blocks on the contacts endpoint until released."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def fetch_contacts(self, page=1, modified_since=None):
        self.entered.set()
        await self.release.wait()
        return await super().fetch_contacts(page, modified_since)


@pytest.fixture
def manager(session_factory):
    return SyncTaskManager(
        session_factory=session_factory,
        orchestrator_factory=lambda db: bootstrap.build_orchestrator(db, sleep=AsyncMock())
    )


@pytest.fixture
def blocking_client(monkeypatch):
    client = BlockingXeroClient(accounts=[account_payload("200")], contacts=[contact_payload("c-1")])
    monkeypatch.setattr(
        connection_manager_module.XeroAPIClient, "with_credentials", lambda *args, **kwargs: client
    )
    return client


@pytest.mark.asyncio
async def test_started_run_completes_with_results(manager, connection, use_fake_client):
    use_fake_client.data["accounts"] = [account_payload("200")]

    run = await manager.start(SyncType.INITIAL)
    assert run.state == RunState.PENDING

    await manager.wait_for(run.id)
    finished = manager.get(run.id)

    assert finished.state == RunState.SUCCEEDED
    assert finished.progress == 100
    assert finished.stage == "complete"
    assert finished.results["accounts"]["created"] == 1
    assert finished.finished_at is not None


@pytest.mark.asyncio
async def test_start_without_connection_is_rejected(manager, db_session):
    with pytest.raises(NotConnectedError):
        await manager.start(SyncType.INCREMENTAL)


@pytest.mark.asyncio
async def test_start_while_locked_is_rejected(manager, db_session, connection, use_fake_client):
    SQLAlchemySyncLockRepository(db_session).acquire(connection.id, "other-process", 60)

    with pytest.raises(SyncAlreadyRunningError):
        await manager.start(SyncType.INCREMENTAL)


@pytest.mark.asyncio
async def test_second_start_while_running_is_rejected(manager, connection, blocking_client):
    run = await manager.start(SyncType.INITIAL)
    await blocking_client.entered.wait()

    with pytest.raises(SyncAlreadyRunningError):
        await manager.start(SyncType.INITIAL)

    blocking_client.release.set()
    await manager.wait_for(run.id)
    assert manager.get(run.id).state == RunState.SUCCEEDED


@pytest.mark.asyncio
async def test_cancel_marks_run_and_releases_lock(manager, db_session, connection, blocking_client):
    run = await manager.start(SyncType.INITIAL)
    await blocking_client.entered.wait()

    running = manager.get(run.id)
    assert running.state == RunState.RUNNING
    assert running.stage == "contacts"

    assert manager.cancel(run.id) is True
    await manager.wait_for(run.id)

    assert manager.get(run.id).state == RunState.CANCELLED
    assert not SQLAlchemySyncLockRepository(db_session).is_locked(connection.id)
    assert manager.cancel(run.id) is False

    db_session.expire_all()
    checkpoints = SQLAlchemySyncCheckpointRepository(db_session)
    contacts = checkpoints.find(connection.id, ResourceType.CONTACTS)
    assert contacts.status == CheckpointStatus.IDLE
    assert contacts.last_sync_at is None
    assert checkpoints.find(connection.id, ResourceType.ACCOUNTS).last_sync_at is not None


@pytest.mark.asyncio
async def test_resume_starts_incremental_run(manager, db_session, connection, use_fake_client):
    failed = SyncRun.create(SyncType.INITIAL, connection.id)
    failed.fail("Xero API returned 503 for Contacts")
    SQLAlchemySyncRunRepository(db_session).save(failed)

    resumed = await manager.resume(failed.id)
    await manager.wait_for(resumed.id)

    assert resumed.id != failed.id
    assert resumed.sync_type == SyncType.INCREMENTAL
    assert manager.get(resumed.id).state == RunState.SUCCEEDED


@pytest.mark.asyncio
async def test_resume_rejects_succeeded_and_unknown_runs(manager, db_session, connection):
    done = SyncRun.create(SyncType.INITIAL, connection.id)
    done.finish({"success": True})
    SQLAlchemySyncRunRepository(db_session).save(done)

    with pytest.raises(ValueError):
        await manager.resume(done.id)
    assert await manager.resume(uuid.uuid4()) is None


@pytest.mark.asyncio
async def test_run_inline_returns_results(manager, connection, use_fake_client):
    use_fake_client.data["contacts"] = [contact_payload("c-1")]

    results = await manager.run_inline(SyncType.INITIAL)

    assert results.success
    assert results.contacts.created == 1


def test_recover_interrupted_runs(manager, db_session, connection):
    repo = SQLAlchemySyncRunRepository(db_session)
    stale = SyncRun.create(SyncType.INITIAL, connection.id)
    stale.mark_running()
    repo.save(stale)
    checkpoints = SQLAlchemySyncCheckpointRepository(db_session)
    stuck = SyncCheckpoint(
        id=None, connection_id=connection.id,
        resource_type=ResourceType.INVOICES, last_sync_at=datetime(2024, 5, 1)
    )
    stuck.mark_syncing()
    checkpoints.save(stuck)

    assert manager.recover_interrupted_runs() == 1

    recovered = repo.find_by_id(stale.id)
    assert recovered.state == RunState.FAILED
    assert recovered.error_message == INTERRUPTED_MESSAGE
    assert manager.recover_interrupted_runs() == 0

    db_session.expire_all()
    invoices = checkpoints.find(connection.id, ResourceType.INVOICES)
    assert invoices.status == CheckpointStatus.IDLE
    assert invoices.last_sync_at == datetime(2024, 5, 1)
