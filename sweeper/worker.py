"""Temporal worker hosting the sweeper workflows and activities."""
import asyncio
import logging
from temporalio.worker import Worker
from sweeper.workflows import GameWorkflow, ReplayWorkflow
from sweeper import activities
from sweeper.client_provider import get_temporal_client, load_settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ACTIVITIES = [
    activities.create_session,
    activities.create_replay_session,
    activities.apply_action,
    activities.save_demo,
    activities.load_demo,
]


def build_worker(client, task_queue: str) -> Worker:
    return Worker(
        client,
        task_queue=task_queue,
        workflows=[GameWorkflow, ReplayWorkflow],
        activities=ACTIVITIES,
    )


async def main():
    """Start the Temporal worker."""
    settings = load_settings()
    client = await get_temporal_client(settings)

    worker = build_worker(client, settings.task_queue)

    logger.info("Worker started, connected to Temporal")
    logger.info(f"Listening on task queue: {settings.task_queue}")

    await worker.run()


if __name__ == "__main__":
    asyncio.run(main())
