"""Notification sweep tasks (registered only when the broker exists)."""

from __future__ import annotations

from notify_service.tasks.broker import broker

if broker is not None:
    from .tasks import run_digest_sweep_task, run_retry_sweep_task

    __all__ = ["run_digest_sweep_task", "run_retry_sweep_task"]
else:
    __all__ = []
