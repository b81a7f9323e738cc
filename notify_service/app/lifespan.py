"""Application lifespan management.

Startup Order:
1. Logging
2. Database (tables created when ``DB_CREATE_TABLES`` is on)
3. Taskiq broker (only when RabbitMQ is configured)
4. Sweep scheduler (when ``NOTIFY_SCHEDULER_ENABLED``)

Shutdown runs in reverse.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from notify_service.core.settings import get_app_settings, get_logging_settings, get_notification_settings
from notify_service.infra.database import close_database, init_database
from notify_service.infra.logging import setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start and stop the database, broker and sweep scheduler."""
    _ = app
    app_settings = get_app_settings()
    notification_settings = get_notification_settings()

    setup_logging(log_settings=get_logging_settings(), force=True)
    logger.info(
        "Application starting",
        extra={"service": app_settings.service_name, "environment": app_settings.environment},
    )

    await init_database()

    from notify_service.tasks.broker import start_taskiq, stop_taskiq
    from notify_service.tasks.scheduler import setup_scheduled_jobs, start_scheduler, stop_scheduler

    await start_taskiq()
    if notification_settings.scheduler_enabled:
        setup_scheduled_jobs()
        await start_scheduler()
    else:
        logger.info("Sweep scheduler disabled")

    try:
        yield
    finally:
        logger.info("Application shutting down")
        if notification_settings.scheduler_enabled:
            await stop_scheduler()
        await stop_taskiq()
        await close_database()


__all__ = ["lifespan"]
