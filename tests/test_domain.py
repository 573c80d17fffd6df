"""Tests for domain entities and value objects."""
import uuid
from datetime import datetime, timedelta

import pytest

from tests.factories import make_credentials
from xero_sync.core.clock import months_ago
from xero_sync.domain.models.connection import Connection
from xero_sync.domain.models.raw_event import RawEvent, compute_content_hash
from xero_sync.domain.models.sync_checkpoint import CheckpointStatus, ResourceType, SyncCheckpoint
from xero_sync.domain.models.sync_results import SyncProgress, SyncResult, SyncResults
from xero_sync.domain.models.sync_run import RunState, SyncRun, SyncType
from xero_sync.domain.services.credential_policy import CredentialPolicy


class TestContentHash:
    def test_hash_ignores_key_order(self):
        a = {"AccountID": "1", "Code": "200", "Nested": {"x": 1, "y": 2}}
        b = {"Nested": {"y": 2, "x": 1}, "Code": "200", "AccountID": "1"}
        assert compute_content_hash(a) == compute_content_hash(b)

    def test_hash_changes_with_content(self):
        assert compute_content_hash({"Code": "200"}) != compute_content_hash({"Code": "201"})

    def test_hash_is_hex_sha256(self):
        digest = compute_content_hash({})
        assert len(digest) == 64
        int(digest, 16)

    def test_observe_hashes_and_defaults_missing_id(self):
        connection_id = uuid.uuid4()
        payload = {"Name": "No id"}
        event = RawEvent.observe(connection_id, ResourceType.CONTACTS, None, payload)

        assert event.resource_id == ""
        assert event.content_hash == compute_content_hash(payload)
        assert event.payload is payload


class TestSyncCheckpoint:
    def _checkpoint(self, last_sync_at=None):
        return SyncCheckpoint(
            id=None,
            connection_id=uuid.uuid4(),
            resource_type=ResourceType.ACCOUNTS,
            last_sync_at=last_sync_at
        )

    def test_mark_success_advances_and_clears_error(self):
        checkpoint = self._checkpoint()
        checkpoint.mark_error("boom")
        synced_at = datetime(2024, 1, 1, 12, 0)

        checkpoint.mark_success(synced_at)

        assert checkpoint.last_sync_at == synced_at
        assert checkpoint.status == CheckpointStatus.IDLE
        assert checkpoint.error_message is None

    def test_mark_success_refuses_to_move_backward(self):
        checkpoint = self._checkpoint(last_sync_at=datetime(2024, 1, 2))
        with pytest.raises(ValueError):
            checkpoint.mark_success(datetime(2024, 1, 1))

    def test_mark_error_keeps_watermark(self):
        last = datetime(2024, 1, 2)
        checkpoint = self._checkpoint(last_sync_at=last)

        checkpoint.mark_error("Xero API returned 500 for Contacts")

        assert checkpoint.last_sync_at == last
        assert checkpoint.status == CheckpointStatus.ERROR
        assert checkpoint.error_message == "Xero API returned 500 for Contacts"


class TestConnection:
    def test_rejects_empty_tenant(self):
        with pytest.raises(ValueError):
            Connection(id=None, tenant_id="", tenant_name="x", credentials=make_credentials())

    def test_token_expiring_exactly_now_needs_refresh(self):
        credentials = make_credentials()
        connection = Connection(id=None, tenant_id="t", tenant_name="x", credentials=credentials)

        assert CredentialPolicy.should_refresh_credentials(connection, now=credentials.expires_at)
        assert not CredentialPolicy.should_refresh_credentials(
            connection, now=credentials.expires_at - timedelta(seconds=1)
        )

    def test_validate_credentials_requires_refresh_token(self):
        credentials = make_credentials()
        incomplete = type(credentials)(
            access_token="a", refresh_token="", expires_at=credentials.expires_at
        )
        assert CredentialPolicy.validate_credentials(credentials)
        assert not CredentialPolicy.validate_credentials(incomplete)


class TestSyncResults:
    def test_success_follows_total_errors(self):
        results = SyncResults()
        assert results.success

        results.total_errors.append("Account 200: bad")
        assert not results.success

    def test_to_dict_uses_api_field_names(self):
        results = SyncResults(accounts=SyncResult(created=3), duration=1.5)
        document = results.to_dict()

        assert document["accounts"] == {"created": 3, "updated": 0, "errors": []}
        assert set(document) == {
            "success", "accounts", "contacts", "bankTransactions",
            "invoices", "bills", "totalErrors", "duration"
        }


class TestSyncRun:
    def test_finish_with_errors_is_failed(self):
        run = SyncRun.create(SyncType.INITIAL, uuid.uuid4())
        run.mark_running()
        run.report(SyncProgress("contacts", 25, "Syncing contacts..."))
        run.finish({"success": False, "totalErrors": ["x"]})

        assert run.state == RunState.FAILED
        assert run.state.is_terminal
        assert run.finished_at is not None
        assert run.to_dict()["progress"] == {
            "stage": "contacts", "progress": 25, "message": "Syncing contacts..."
        }

    def test_finish_clean_is_succeeded(self):
        run = SyncRun.create(SyncType.INCREMENTAL, None)
        run.finish({"success": True})
        assert run.state == RunState.SUCCEEDED
        assert run.to_dict()["type"] == "incremental"


def test_months_ago_crosses_month_ends():
    assert months_ago(24, now=datetime(2024, 2, 29, 8, 0)) == datetime(2022, 2, 28, 8, 0)
