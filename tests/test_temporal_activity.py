"""Tests for the scheduled sync activity logic."""
import pytest

from tests.factories import account_payload
from xero_sync.infrastructure.db.repositories.sync_run_repository import SQLAlchemySyncLockRepository
from xero_sync.temporal.activities import sync_tenant
from xero_sync.temporal.workflows import workflow_id_for


@pytest.mark.asyncio
async def test_scheduled_sync_runs_incremental(session_factory, connection, use_fake_client):
    use_fake_client.data["accounts"] = [account_payload("200")]

    outcome = await sync_tenant("tenant-1", session_factory=session_factory)

    assert outcome["status"] == "completed"
    assert outcome["results"]["accounts"]["created"] == 1


@pytest.mark.asyncio
async def test_scheduled_sync_skips_other_tenant(session_factory, connection, use_fake_client):
    outcome = await sync_tenant("someone-else", session_factory=session_factory)

    assert outcome["status"] == "skipped"
    assert use_fake_client.calls == []


@pytest.mark.asyncio
async def test_scheduled_sync_skips_when_locked(session_factory, db_session, connection, use_fake_client):
    SQLAlchemySyncLockRepository(db_session).acquire(connection.id, "manual-run", 60)

    outcome = await sync_tenant("tenant-1", session_factory=session_factory)

    assert outcome["status"] == "skipped"
    assert "already running" in outcome["reason"]


def test_workflow_id_is_stable_per_tenant():
    assert workflow_id_for("tenant-1") == workflow_id_for("tenant-1")
    assert workflow_id_for("tenant-1") != workflow_id_for("tenant-2")
