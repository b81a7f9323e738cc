"""APScheduler integration for the periodic sweeps.

With a broker the jobs only enqueue taskiq tasks and workers do the work:

    APScheduler (in-process) -> Taskiq kiq() -> RabbitMQ -> Taskiq Worker

Without one (single-process and SQLite deployments) the jobs call the sweep
entry points directly.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from notify_service.core.settings import get_notification_settings
from notify_service.features.notifications.digest import run_digest_sweep
from notify_service.features.notifications.retry import run_retry_sweep
from notify_service.tasks.broker import broker

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler(
    timezone="UTC",
    job_defaults={
        "coalesce": True,  # Combine multiple pending executions into one
        "max_instances": 1,  # Only one instance of each job at a time
        "misfire_grace_time": 60,
    },
)

RETRY_JOB_ID = "notification_retry_sweep"
DIGEST_JOB_ID = "notification_digest_sweep"


async def enqueue_retry_sweep() -> None:
    if broker is not None:
        from notify_service.tasks.notifications import run_retry_sweep_task

        await run_retry_sweep_task.kiq()
        return
    await run_retry_sweep()


async def enqueue_digest_sweep() -> None:
    if broker is not None:
        from notify_service.tasks.notifications import run_digest_sweep_task

        await run_digest_sweep_task.kiq()
        return
    await run_digest_sweep()


def setup_scheduled_jobs() -> None:
    """Register the retry and digest sweep jobs.

    Re-registering replaces existing jobs, so calling this twice is harmless.
    """
    settings = get_notification_settings()

    scheduler.add_job(
        enqueue_retry_sweep,
        trigger=IntervalTrigger(seconds=settings.retry_sweep_interval_seconds),
        id=RETRY_JOB_ID,
        name="Retry failed notification deliveries",
        replace_existing=True,
    )
    scheduler.add_job(
        enqueue_digest_sweep,
        trigger=IntervalTrigger(seconds=settings.digest_sweep_interval_seconds),
        id=DIGEST_JOB_ID,
        name="Flush due notification digests",
        replace_existing=True,
    )

    logger.info(
        "Scheduled sweep jobs registered",
        extra={
            "retry_interval_seconds": settings.retry_sweep_interval_seconds,
            "digest_interval_seconds": settings.digest_sweep_interval_seconds,
            "via_broker": broker is not None,
        },
    )


async def start_scheduler() -> None:
    """Start the scheduler. Call after ``setup_scheduled_jobs()``."""
    if not scheduler.running:
        scheduler.start()
        logger.info("APScheduler started", extra={"jobs": len(scheduler.get_jobs())})
    else:
        logger.warning("APScheduler is already running")


async def stop_scheduler() -> None:
    """Stop the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("APScheduler stopped")
    else:
        logger.debug("APScheduler is not running")


__all__ = [
    "DIGEST_JOB_ID",
    "RETRY_JOB_ID",
    "enqueue_digest_sweep",
    "enqueue_retry_sweep",
    "scheduler",
    "setup_scheduled_jobs",
    "start_scheduler",
    "stop_scheduler",
]
