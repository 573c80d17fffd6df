"""Resource syncer base - the shared fetch/record/upsert/checkpoint loop."""
import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from xero_sync.core.clock import months_ago, utcnow
from xero_sync.core.config import settings
from xero_sync.domain.models.raw_event import RawEvent
from xero_sync.domain.models.sync_checkpoint import ResourceType, SyncCheckpoint
from xero_sync.domain.models.sync_results import SyncResult
from xero_sync.domain.ports.checkpoint_repo import SyncCheckpointRepository
from xero_sync.domain.ports.ledger_repo import LedgerRepository
from xero_sync.domain.ports.raw_event_repo import RawEventRepository
from xero_sync.infrastructure.integrations.xero.client import XeroAPIClient
from xero_sync.infrastructure.integrations.xero.models import MappedRecord

logger = logging.getLogger(__name__)


class ResourceSyncer(ABC):
    """
    Application service syncing one upstream resource.

    Responsibilities:
    - Page through the resource until an empty page
    - Record a raw event for every record observed
    - Upsert each record (and its lines) independently
    - Advance the checkpoint unless the resource failed outright

    Subclasses declare the resource and implement fetch_page, map and
    persist.
    """

    resource_type: ResourceType
    label: str = "Record"
    plural_label: str = "records"
    id_field: str = "ID"
    key_field: Optional[str] = None
    stage: str = ""
    progress: int = 0
    # Date-windowed on full syncs and throttled between pages
    high_volume: bool = False

    def __init__(
        self,
        checkpoint_repo: SyncCheckpointRepository,
        raw_event_repo: RawEventRepository,
        ledger_repo: LedgerRepository,
        request_delay: Optional[float] = None,
        history_months: Optional[int] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        """
        Initialize syncer with repositories.

        Args:
            checkpoint_repo: Checkpoint repository
            raw_event_repo: Raw event repository
            ledger_repo: Repository for the mirrored records
            request_delay: Seconds to wait between pages of high-volume resources
            history_months: Depth of the full-sync window
            sleep: Awaitable sleep, replaced in tests
        """
        self.checkpoint_repo = checkpoint_repo
        self.raw_event_repo = raw_event_repo
        self.ledger_repo = ledger_repo
        self.request_delay = (
            settings.sync_request_delay_seconds if request_delay is None else request_delay
        )
        self.history_months = history_months or settings.sync_history_months
        self.sleep = sleep

    @property
    def result_types(self) -> List[ResourceType]:
        """Resource types this syncer reports results for."""
        return [self.resource_type]

    def incremental_since(self, connection_id: uuid.UUID) -> Optional[datetime]:
        """
        Lower bound for an incremental run.

        Returns:
            The oldest last_sync_at across this syncer's checkpoints, or
            None (full sync) if any of them has never completed
        """
        marks = []
        for resource_type in self.result_types:
            checkpoint = self.checkpoint_repo.find(connection_id, resource_type)
            if checkpoint is None or checkpoint.last_sync_at is None:
                return None
            marks.append(checkpoint.last_sync_at)
        return min(marks)

    async def sync(
        self,
        client: XeroAPIClient,
        connection_id: uuid.UUID,
        since: Optional[datetime] = None
    ) -> Dict[ResourceType, SyncResult]:
        """
        Sync the resource.

        Args:
            client: API client bound to the active connection
            connection_id: Local connection ID
            since: Incremental lower bound; None runs a full sync

        Returns:
            One SyncResult per reported resource type
        """
        results = {resource_type: SyncResult() for resource_type in self.result_types}
        checkpoints = {}
        for resource_type in self.result_types:
            checkpoint = self.checkpoint_repo.find(connection_id, resource_type) or SyncCheckpoint(
                id=None,
                connection_id=connection_id,
                resource_type=resource_type
            )
            checkpoint.mark_syncing()
            checkpoints[resource_type] = self.checkpoint_repo.save(checkpoint)

        window_start = None
        if since is None and self.high_volume:
            window_start = months_ago(self.history_months)

        logger.info(
            f"Syncing {self.plural_label} for connection {connection_id} "
            f"(since={since}, window_start={window_start})"
        )

        try:
            page = 1
            while True:
                records = await self.fetch_page(client, page, since, window_start)
                if not records:
                    break

                for payload in records:
                    self._sync_record(connection_id, payload, results)

                page += 1
                if self.high_volume and self.request_delay > 0:
                    await self.sleep(self.request_delay)
        except Exception as e:
            message = f"Failed to sync {self.plural_label}: {str(e)}"
            logger.error(message)
            results[self.resource_type].errors.append(message)
            for checkpoint in checkpoints.values():
                checkpoint.mark_error(str(e))
                self.checkpoint_repo.save(checkpoint)
            return results

        completed_at = utcnow()
        for checkpoint in checkpoints.values():
            if checkpoint.last_sync_at and checkpoint.last_sync_at > completed_at:
                completed_at = checkpoint.last_sync_at
            checkpoint.mark_success(completed_at)
            self.checkpoint_repo.save(checkpoint)

        for resource_type, result in results.items():
            logger.info(
                f"Synced {resource_type.value}: {result.created} created, "
                f"{result.updated} updated, {len(result.errors)} errors"
            )
        return results

    def _sync_record(
        self,
        connection_id: uuid.UUID,
        payload: Any,
        results: Dict[ResourceType, SyncResult]
    ) -> None:
        """Record, map and upsert one payload; failures stay with the record."""
        resource_type = self.resource_type
        key = "unknown"

        try:
            if not isinstance(payload, dict):
                raise ValueError(f"expected an object, got {type(payload).__name__}")
            resource_type = self.classify(payload)
            external_id = payload.get(self.id_field)
            key = (payload.get(self.key_field) if self.key_field else None) or external_id or "unknown"

            self.raw_event_repo.append(
                RawEvent.observe(connection_id, resource_type, external_id, payload)
            )
            record = self.map(payload)
            created = self.persist(connection_id, resource_type, record)
        except Exception as e:
            message = f"{self.label_for(resource_type)} {key}: {str(e)}"
            logger.warning(message)
            results[resource_type].errors.append(message)
            return

        if created:
            results[resource_type].created += 1
        else:
            results[resource_type].updated += 1

    def classify(self, payload: Dict[str, Any]) -> ResourceType:
        """Resource type a payload is recorded under."""
        return self.resource_type

    def label_for(self, resource_type: ResourceType) -> str:
        return self.label

    def resolve_lines(
        self,
        connection_id: uuid.UUID,
        lines: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        """Attach local account IDs to lines by account code; unknown codes stay NULL."""
        resolved = []
        for line in lines:
            account_id = None
            if line.get("account_code"):
                account_id = self.ledger_repo.find_account_id_by_code(
                    connection_id, line["account_code"]
                )
            resolved.append(dict(line, account_id=account_id))
        return resolved

    def resolve_contact(self, connection_id: uuid.UUID, record: MappedRecord) -> Optional[uuid.UUID]:
        if not record.contact_ref:
            return None
        return self.ledger_repo.find_contact_id(connection_id, record.contact_ref)

    @abstractmethod
    async def fetch_page(
        self,
        client: XeroAPIClient,
        page: int,
        since: Optional[datetime],
        window_start: Optional[datetime]
    ) -> List[Dict[str, Any]]:
        """
        Fetch one page of raw records.

        Args:
            client: API client bound to the active connection
            page: 1-based page number
            since: Incremental lower bound, or None
            window_start: Start of the full-sync date window, or None

        Returns:
            Raw records; an empty list ends the sync
        """
        pass

    @abstractmethod
    def map(self, payload: Dict[str, Any]) -> MappedRecord:
        """Translate one raw record into column values."""
        pass

    @abstractmethod
    def persist(
        self,
        connection_id: uuid.UUID,
        resource_type: ResourceType,
        record: MappedRecord
    ) -> bool:
        """
        Upsert a mapped record.

        Returns:
            True if a new row was created, False if an existing one was updated
        """
        pass
