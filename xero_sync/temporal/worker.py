"""Temporal worker - executes the scheduled sync workflow and its activity."""
import asyncio
import logging
from temporalio.client import Client
from temporalio.worker import Worker

from xero_sync.core.config import settings
from xero_sync.temporal.activities import run_incremental_sync
from xero_sync.temporal.workflows import ScheduledSyncWorkflow

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def main():
    """Run Temporal worker."""
    logger.info(f"Connecting to Temporal server at {settings.temporal_host}")

    client = await Client.connect(
        settings.temporal_host,
        namespace=settings.temporal_namespace
    )

    logger.info(f"Starting worker on task queue: {settings.temporal_task_queue}")

    worker = Worker(
        client,
        task_queue=settings.temporal_task_queue,
        workflows=[ScheduledSyncWorkflow],
        activities=[run_incremental_sync]
    )

    logger.info("Worker started, waiting for tasks...")
    await worker.run()


if __name__ == "__main__":
    asyncio.run(main())
