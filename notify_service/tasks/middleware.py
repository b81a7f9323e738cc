"""Taskiq middleware for sweep task execution.

``TracingMiddleware`` wraps every task in an OpenTelemetry span and
``LogContextMiddleware`` tags log records emitted while a task runs with its
id and name.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from taskiq import TaskiqMiddleware

from notify_service.infra.logging import clear_log_context, set_log_context

if TYPE_CHECKING:
    from taskiq import TaskiqMessage, TaskiqResult

logger = logging.getLogger(__name__)


class TracingMiddleware(TaskiqMiddleware):
    """Creates one span per task execution under the ``taskiq.worker`` tracer.

    Without a configured OpenTelemetry SDK the spans are no-ops.
    """

    def __init__(self) -> None:
        super().__init__()
        self._tracer = trace.get_tracer("taskiq.worker")
        # Spans live across pre/post execute, keyed by task id
        self._spans: dict[str, Any] = {}

    async def pre_execute(self, message: TaskiqMessage) -> TaskiqMessage:
        span = self._tracer.start_span(
            name=f"task.{message.task_name}",
            attributes={"task.id": message.task_id, "task.name": message.task_name},
        )
        self._spans[message.task_id] = span
        return message

    async def post_execute(self, message: TaskiqMessage, result: TaskiqResult[Any]) -> None:
        span = self._spans.pop(message.task_id, None)
        if span is None:
            logger.warning(
                "No span found for task in post_execute",
                extra={"task_id": message.task_id, "task_name": message.task_name},
            )
            return

        try:
            if result.is_err and result.error is not None:
                error = result.error if isinstance(result.error, Exception) else Exception(str(result.error))
                span.record_exception(error)
                span.set_status(trace.Status(trace.StatusCode.ERROR))
                span.set_attribute("task.status", "failure")
            else:
                span.set_attribute("task.status", "success")
        finally:
            span.end()


class LogContextMiddleware(TaskiqMiddleware):
    """Adds ``task_id`` / ``task_name`` to the logging context of each task."""

    async def pre_execute(self, message: TaskiqMessage) -> TaskiqMessage:
        set_log_context(task_id=message.task_id, task_name=message.task_name)
        return message

    async def post_execute(self, message: TaskiqMessage, result: TaskiqResult[Any]) -> None:
        if result.is_err:
            logger.error(
                "Task failed",
                extra={"task_id": message.task_id, "task_name": message.task_name, "error": str(result.error)},
            )
        clear_log_context()


__all__ = ["LogContextMiddleware", "TracingMiddleware"]
