"""Context propagation for structured logging.

Fields set with ``set_log_context`` are copied onto every log record emitted
from the same async task, so sweep and dispatch logs carry their
notification/tenant identifiers without threading them through each call.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Any

# Each async task gets its own copy automatically
_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Merge fields into the logging context of the current task.

    Example:
        set_log_context(sweep="retry", tenant_id="acme")
        logger.info("Claimed entry")  # record carries sweep and tenant_id
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def clear_log_context() -> None:
    """Drop all context fields for the current task."""
    _log_context.set({})


class ContextInjectingFilter(logging.Filter):
    """Copy context fields onto each LogRecord.

    Attached to the root logger by ``configure_logging`` so every formatter
    (JSON in particular) sees the fields. Existing record attributes are
    never overwritten.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


__all__ = [
    "ContextInjectingFilter",
    "clear_log_context",
    "set_log_context",
]
