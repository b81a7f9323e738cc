"""Sweep task definitions.

Both tasks wrap the engine entry points, which are idempotent and safe to
run from several workers at once.
"""

from __future__ import annotations

import logging

from notify_service.features.notifications.digest import run_digest_sweep
from notify_service.features.notifications.retry import run_retry_sweep
from notify_service.tasks.broker import broker

logger = logging.getLogger(__name__)


if broker is not None:

    @broker.task()
    async def run_retry_sweep_task() -> dict:
        """Re-attempt failed deliveries whose backoff has elapsed.

        Scheduled: every ``NOTIFY_RETRY_SWEEP_INTERVAL_SECONDS`` (via APScheduler).

        Returns:
            Sweep report, e.g. {'sweep': 'retry', 'claimed': 3, 'sent': 2, ...}
        """
        report = await run_retry_sweep()
        return report.to_dict()

    @broker.task()
    async def run_digest_sweep_task() -> dict:
        """Flush digest batches that are due.

        Scheduled: every ``NOTIFY_DIGEST_SWEEP_INTERVAL_SECONDS`` (via APScheduler).

        Returns:
            Sweep report, e.g. {'sweep': 'digest', 'claimed': 1, 'sent': 1, ...}
        """
        report = await run_digest_sweep()
        return report.to_dict()
