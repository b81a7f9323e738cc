"""Logging infrastructure.

Usage:
    import logging

    from notify_service.infra.logging import get_lazy_logger, set_log_context

    logger = logging.getLogger(__name__)
    lazy_logger = get_lazy_logger(__name__)

    set_log_context(notification_id=str(notification.id))
    logger.info("Dispatching notification")
    lazy_logger.debug(lambda: f"Routes: {routes}")
"""

from notify_service.infra.logging.config import configure_logging, setup_logging
from notify_service.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    set_log_context,
)
from notify_service.infra.logging.formatters import JSONFormatter
from notify_service.infra.logging.lazy import LazyLoggerAdapter, get_lazy_logger

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "LazyLoggerAdapter",
    "clear_log_context",
    "configure_logging",
    "get_lazy_logger",
    "set_log_context",
    "setup_logging",
]
