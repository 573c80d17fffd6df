"""Temporal workflows - orchestration only, no business logic."""
from datetime import timedelta
from temporalio import workflow
from temporalio.common import RetryPolicy

with workflow.unsafe.imports_passed_through():
    from xero_sync.temporal.activities import run_incremental_sync


def workflow_id_for(tenant_id: str) -> str:
    return f"xero-scheduled-sync-{tenant_id}"


@workflow.defn
class ScheduledSyncWorkflow:
    """
    Periodic incremental refresh of one Xero tenant.

    Runs one sync, sleeps for the interval, then continues as new to
    keep history bounded. The sync itself stays pull-based.

    NO business logic, NO DB access, NO HTTP calls.
    """

    @workflow.run
    async def run(self, tenant_id: str, sync_interval_minutes: int = 60) -> None:
        """
        Run one sync cycle.

        Args:
            tenant_id: Xero tenant ID
            sync_interval_minutes: Minutes between sync cycles
        """
        workflow.logger.info(f"Starting scheduled sync cycle for tenant {tenant_id}")

        try:
            outcome = await workflow.execute_activity(
                run_incremental_sync,
                args=[tenant_id],
                start_to_close_timeout=timedelta(minutes=30),
                retry_policy=RetryPolicy(
                    initial_interval=timedelta(seconds=5),
                    maximum_interval=timedelta(minutes=5),
                    maximum_attempts=3,
                    backoff_coefficient=2.0
                )
            )
            workflow.logger.info(f"Scheduled sync {outcome.get('status')}")
        except Exception as e:
            workflow.logger.error(f"Scheduled sync failed: {str(e)}")

        await workflow.sleep(timedelta(minutes=sync_interval_minutes))

        workflow.continue_as_new(args=[tenant_id, sync_interval_minutes])
