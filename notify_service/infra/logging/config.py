"""Logging configuration setup.

Builds a ``dictConfig`` with the context filter on the root logger and a
single stream handler using either JSON Lines or a plain text format.
Application loggers propagate to root.
"""

from __future__ import annotations

import logging
import logging.config
from typing import TYPE_CHECKING, Any

logger = logging.getLogger(__name__)
_LOGGING_INITIALIZED = False

if TYPE_CHECKING:
    from notify_service.core.settings.logs import LoggingSettings

_TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **configure_kwargs: Any,
) -> None:
    """Ensure logging is configured once across entrypoints.

    Called by the FastAPI lifespan and by the taskiq broker module, so API
    processes and workers log identically.

    Args:
        log_settings: Optional settings instance; loaded from the environment
            when omitted.
        force: Reconfigure even if logging was already initialized.
        **configure_kwargs: Explicit overrides for configure_logging().
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force:
        return

    settings_obj = log_settings
    if settings_obj is None:
        from notify_service.core.settings import get_logging_settings

        settings_obj = get_logging_settings()

    log_config = {**settings_obj.to_logging_kwargs(), **configure_kwargs}
    configure_logging(**log_config)
    _LOGGING_INITIALIZED = True


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = True,
    console_enabled: bool = True,
    include_context: bool = True,
    service_name: str | None = None,
    capture_warnings: bool = True,
    **kwargs: Any,
) -> None:
    """Configure the root logger with dictConfig.

    Args:
        log_level: Root logger level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_logs: Emit JSON Lines instead of plain text.
        console_enabled: Attach the stderr handler.
        include_context: Add ContextInjectingFilter to the root logger.
        service_name: Static ``service`` field added to JSON records.
        capture_warnings: Forward Python warnings to logging.
        **kwargs: Ignored extra settings.
    """
    if kwargs:
        logger.debug("Unused logging kwargs supplied: %s", ", ".join(sorted(kwargs)))

    if capture_warnings:
        logging.captureWarnings(True)

    formatters: dict[str, Any] = {
        "json": {
            "()": "notify_service.infra.logging.formatters.JSONFormatter",
            "static": {"service": service_name} if service_name else None,
        },
        "text": {"format": _TEXT_FORMAT},
    }
    filters: dict[str, Any] = {}
    root_filters: list[str] = []
    if include_context:
        filters["context"] = {"()": "notify_service.infra.logging.context.ContextInjectingFilter"}
        root_filters.append("context")

    handlers: dict[str, Any] = {}
    if console_enabled:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "formatter": "json" if json_logs else "text",
            "filters": root_filters,
            "stream": "ext://sys.stderr",
        }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": formatters,
            "filters": filters,
            "handlers": handlers,
            "root": {
                "level": log_level.upper(),
                "handlers": list(handlers),
                "filters": root_filters,
            },
        }
    )
    logger.debug("Logging configured", extra={"level": log_level, "json": json_logs})


__all__ = ["configure_logging", "setup_logging"]
