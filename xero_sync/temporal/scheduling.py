"""Starting the scheduled sync workflow from the API process."""
import logging
from typing import Optional
from temporalio.client import Client
from temporalio.exceptions import WorkflowAlreadyStartedError

from xero_sync.core.config import settings
from xero_sync.temporal.workflows import ScheduledSyncWorkflow, workflow_id_for

logger = logging.getLogger(__name__)


async def start_scheduled_sync(tenant_id: str) -> Optional[str]:
    """
    Start the periodic sync workflow for a tenant.

    Failures are logged, not raised: a missing Temporal server must not
    break the OAuth callback.

    Returns:
        Workflow ID if the workflow is running, otherwise None
    """
    workflow_id = workflow_id_for(tenant_id)
    try:
        client = await Client.connect(
            settings.temporal_host,
            namespace=settings.temporal_namespace
        )
        await client.start_workflow(
            ScheduledSyncWorkflow.run,
            args=[tenant_id, settings.sync_interval_minutes],
            id=workflow_id,
            task_queue=settings.temporal_task_queue
        )
        logger.info(f"Started scheduled sync workflow {workflow_id}")
    except WorkflowAlreadyStartedError:
        logger.info(f"Workflow {workflow_id} already running")
    except Exception as e:
        logger.error(f"Failed to start scheduled sync workflow: {e}", exc_info=True)
        return None

    return workflow_id
