"""Tests for the SQLAlchemy repositories."""
from datetime import timedelta
from decimal import Decimal

import pytest

from tests.factories import make_credentials
from xero_sync.core.clock import utcnow
from xero_sync.domain.models.connection import Connection
from xero_sync.domain.models.raw_event import RawEvent
from xero_sync.domain.models.sync_checkpoint import CheckpointStatus, ResourceType, SyncCheckpoint
from xero_sync.domain.models.sync_run import RunState, SyncRun, SyncType
from xero_sync.infrastructure.db.models import InvoiceLineModel, SyncLockModel
from xero_sync.infrastructure.db.repositories.checkpoint_repository import SQLAlchemySyncCheckpointRepository
from xero_sync.infrastructure.db.repositories.connection_repository import SQLAlchemyConnectionRepository
from xero_sync.infrastructure.db.repositories.ledger_repository import SQLAlchemyLedgerRepository
from xero_sync.infrastructure.db.repositories.raw_event_repository import SQLAlchemyRawEventRepository
from xero_sync.infrastructure.db.repositories.sync_run_repository import (
    SQLAlchemySyncLockRepository, SQLAlchemySyncRunRepository
)


def _invoice_values(**overrides):
    values = {
        "xero_invoice_id": "inv-1",
        "type": "ACCREC",
        "invoice_number": "INV-001",
        "date": utcnow(),
        "due_date": utcnow(),
        "status": "AUTHORISED",
        "total": Decimal("100"),
    }
    values.update(overrides)
    return values


class TestConnectionRepository:
    def test_activate_keeps_a_single_active_connection(self, db_session):
        repo = SQLAlchemyConnectionRepository(db_session)
        first = repo.activate(Connection(
            id=None, tenant_id="t-1", tenant_name="First", credentials=make_credentials()
        ))
        second = repo.activate(Connection(
            id=None, tenant_id="t-2", tenant_name="Second", credentials=make_credentials()
        ))

        active = [c for c in repo.list_all() if c.is_active]
        assert [c.tenant_id for c in active] == ["t-2"]
        assert repo.find_active().id == second.id
        assert repo.find_by_tenant_id("t-1").id == first.id

    def test_reactivating_a_tenant_updates_the_same_row(self, db_session):
        repo = SQLAlchemyConnectionRepository(db_session)
        first = repo.activate(Connection(
            id=None, tenant_id="t-1", tenant_name="Old", credentials=make_credentials()
        ))
        again = repo.activate(Connection(
            id=None, tenant_id="t-1", tenant_name="Renamed",
            credentials=make_credentials(access_token="access-2")
        ))

        assert again.id == first.id
        assert again.tenant_name == "Renamed"
        assert again.credentials.access_token == "access-2"
        assert len(repo.list_all()) == 1


class TestCheckpointRepository:
    def test_save_upserts_on_connection_and_resource(self, db_session, connection):
        repo = SQLAlchemySyncCheckpointRepository(db_session)
        checkpoint = repo.save(SyncCheckpoint(
            id=None, connection_id=connection.id, resource_type=ResourceType.CONTACTS
        ))
        synced_at = utcnow()
        checkpoint.mark_success(synced_at)
        repo.save(checkpoint)

        found = repo.find(connection.id, ResourceType.CONTACTS)
        assert found.id == checkpoint.id
        assert found.last_sync_at == synced_at
        assert found.status == CheckpointStatus.IDLE
        assert len(repo.list_by_connection(connection.id)) == 1

    def test_find_missing_checkpoint(self, db_session, connection):
        repo = SQLAlchemySyncCheckpointRepository(db_session)

        assert repo.find(connection.id, ResourceType.BILLS) is None
        assert repo.list_by_connection(connection.id) == []


class TestLedgerRepository:
    def test_upsert_reports_created_then_updated(self, db_session, connection):
        repo = SQLAlchemyLedgerRepository(db_session)
        values = {"xero_account_id": "a-1", "code": "200", "name": "Sales", "type": "REVENUE"}

        assert repo.upsert_account(connection.id, values) is True
        assert repo.upsert_account(connection.id, dict(values, name="Sales AU")) is False
        assert repo.find_account_id_by_code(connection.id, "200") is not None
        assert repo.find_account_id_by_code(connection.id, "999") is None

    def test_lines_are_replaced_on_update(self, db_session, connection):
        repo = SQLAlchemyLedgerRepository(db_session)
        repo.upsert_invoice(connection.id, _invoice_values(), [
            {"xero_line_id": "l-1", "line_amount": Decimal("60")},
            {"xero_line_id": "l-2", "line_amount": Decimal("40")},
        ])
        repo.upsert_invoice(connection.id, _invoice_values(), [
            {"xero_line_id": "l-3", "line_amount": Decimal("100")},
        ])

        lines = db_session.query(InvoiceLineModel).all()
        assert [line.xero_line_id for line in lines] == ["l-3"]

    def test_failed_upsert_leaves_no_partial_write(self, db_session, connection):
        repo = SQLAlchemyLedgerRepository(db_session)
        repo.upsert_invoice(connection.id, _invoice_values(), [
            {"xero_line_id": "l-1", "line_amount": Decimal("100")},
        ])

        with pytest.raises(TypeError):
            repo.upsert_invoice(connection.id, _invoice_values(status="PAID"), [
                {"xero_line_id": "l-2", "no_such_column": 1},
            ])

        lines = db_session.query(InvoiceLineModel).all()
        assert [line.xero_line_id for line in lines] == ["l-1"]


class TestRawEventRepository:
    def test_every_observation_is_kept(self, db_session, connection):
        repo = SQLAlchemyRawEventRepository(db_session)
        payload = {"ContactID": "c-1", "Name": "Acme"}
        repo.append(RawEvent.observe(connection.id, ResourceType.CONTACTS, "c-1", payload))
        repo.append(RawEvent.observe(connection.id, ResourceType.CONTACTS, "c-1", payload))

        events = repo.list_for_resource(connection.id, ResourceType.CONTACTS, "c-1")
        assert len(events) == 2
        assert events[0].content_hash == events[1].content_hash
        assert events[0].payload == payload


class TestSyncLockRepository:
    def test_second_owner_is_rejected_until_release(self, db_session, connection):
        repo = SQLAlchemySyncLockRepository(db_session)

        assert repo.acquire(connection.id, "run-a", 60)
        assert repo.is_locked(connection.id)
        assert not repo.acquire(connection.id, "run-b", 60)

        repo.release(connection.id, "run-a")
        assert not repo.is_locked(connection.id)
        assert repo.acquire(connection.id, "run-b", 60)

    def test_expired_lease_is_taken_over(self, db_session, connection):
        repo = SQLAlchemySyncLockRepository(db_session)
        assert repo.acquire(connection.id, "crashed", -1)

        assert not repo.is_locked(connection.id)
        assert repo.acquire(connection.id, "run-b", 60)
        assert not repo.renew(connection.id, "crashed", 60)
        assert repo.renew(connection.id, "run-b", 60)

    def test_expired_lease_is_taken_over_only_once(self, session_factory, db_session, connection, monkeypatch):
        first = SQLAlchemySyncLockRepository(db_session)
        assert first.acquire(connection.id, "crashed", -1)
        seen = first._load(connection.id)
        stale = SyncLockModel(
            connection_id=connection.id,
            owner=seen.owner,
            acquired_at=seen.acquired_at,
            expires_at=seen.expires_at
        )
        other_session = session_factory()
        second = SQLAlchemySyncLockRepository(other_session)
        # Both runs observed the same expired row
        monkeypatch.setattr(second, "_load", lambda connection_id: stale)

        assert first.acquire(connection.id, "run-a", 60)
        assert not second.acquire(connection.id, "run-b", 60)
        other_session.close()

        assert first.renew(connection.id, "run-a", 60)
        assert first._load(connection.id).owner == "run-a"

    def test_release_by_non_owner_is_ignored(self, db_session, connection):
        repo = SQLAlchemySyncLockRepository(db_session)
        repo.acquire(connection.id, "run-a", 60)
        repo.release(connection.id, "run-b")
        assert repo.is_locked(connection.id)


class TestSyncRunRepository:
    def test_round_trip_and_unfinished_listing(self, db_session, connection):
        repo = SQLAlchemySyncRunRepository(db_session)
        done = SyncRun.create(SyncType.INITIAL, connection.id)
        done.finish({"success": True})
        pending = SyncRun.create(SyncType.INCREMENTAL, connection.id)
        repo.save(done)
        repo.save(pending)

        loaded = repo.find_by_id(done.id)
        assert loaded.state == RunState.SUCCEEDED
        assert loaded.results == {"success": True}
        assert [r.id for r in repo.list_unfinished()] == [pending.id]

    def test_started_at_is_persisted(self, db_session, connection):
        repo = SQLAlchemySyncRunRepository(db_session)
        run = SyncRun.create(SyncType.INITIAL, connection.id)
        run.started_at = utcnow() - timedelta(minutes=5)
        repo.save(run)
        assert repo.find_by_id(run.id).started_at == run.started_at
