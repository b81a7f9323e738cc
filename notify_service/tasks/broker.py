"""Taskiq broker configuration for background sweeps.

The broker (taskiq-aio-pika) distributes sweep tasks over RabbitMQ. It is
only created when ``RABBIT_AMQP_URI`` is set; otherwise ``broker`` is None
and the scheduler runs sweeps in-process.

Run a worker:
    taskiq worker notify_service.tasks.broker:broker notify_service.tasks.notifications
"""

from __future__ import annotations

import logging

from taskiq_aio_pika import AioPikaBroker

from notify_service.core.settings import get_rabbit_settings
from notify_service.infra.logging import setup_logging

logger = logging.getLogger(__name__)

rabbit_settings = get_rabbit_settings()
setup_logging()

broker: AioPikaBroker | None = None

if rabbit_settings.is_configured:
    from notify_service.tasks.middleware import LogContextMiddleware, TracingMiddleware

    broker = AioPikaBroker(
        url=rabbit_settings.amqp_uri,
        queue_name=rabbit_settings.get_prefixed_queue("taskiq-tasks"),
        declare_exchange=True,
        declare_queues=True,
    ).with_middlewares(
        TracingMiddleware(),
        LogContextMiddleware(),
    )

    logger.info(
        "Taskiq background task broker configured",
        extra={"queue": rabbit_settings.get_prefixed_queue("taskiq-tasks")},
    )
else:
    logger.warning("RabbitMQ not configured - sweeps will run in-process")


async def start_taskiq() -> None:
    """Start the broker for enqueuing tasks from the API process.

    Executing tasks still requires a separate ``taskiq worker`` process.
    """
    if broker is None:
        logger.debug("Taskiq broker not configured, skipping startup")
        return

    logger.info("Starting Taskiq broker")
    try:
        await broker.startup()
    except Exception as e:
        logger.exception("Failed to start Taskiq broker", extra={"error": str(e)})
        raise
    logger.info("Taskiq broker started successfully")


async def stop_taskiq() -> None:
    """Close broker connections during shutdown."""
    if broker is None:
        logger.debug("Taskiq broker not configured, skipping shutdown")
        return

    logger.info("Stopping Taskiq broker")
    try:
        await broker.shutdown()
    except Exception as e:
        logger.exception("Error stopping Taskiq broker", extra={"error": str(e)})
        return
    logger.info("Taskiq broker stopped successfully")


__all__ = ["broker", "start_taskiq", "stop_taskiq"]
