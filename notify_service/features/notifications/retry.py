"""Retry sweeper for failed deliveries.

Each pass looks for failed log entries whose ``next_attempt_at`` is due and
that have no ``attempt + 1`` successor yet. Every row is claimed with a
conditional UPDATE (committed before the send) so concurrent sweepers never
send the same attempt twice. A row that fails to process is rolled back and
counted; the rest of the batch continues.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from notify_service.core.services import BaseService
from notify_service.core.settings import get_notification_settings
from notify_service.features.notifications.channels.registry import get_channel_sender_registry
from notify_service.features.notifications.composer import MessageComposer
from notify_service.features.notifications.delivery_log import DeliveryLogWriter
from notify_service.features.notifications.delivery_state import refresh_delivery_state
from notify_service.features.notifications.metrics import (
    notification_claim_conflicts_total,
    notification_retry_total,
    notification_sweep_duration_seconds,
)
from notify_service.features.notifications.models import DeliveryStatus
from notify_service.features.notifications.repository import (
    get_delivery_log_repository,
    get_notification_repository,
    get_subscription_repository,
)
from notify_service.features.notifications.scheduling import ensure_utc, utc_now
from notify_service.infra.database.session import get_async_session
from notify_service.infra.logging import set_log_context

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from notify_service.core.settings import NotificationSettings
    from notify_service.features.notifications.channels.registry import ChannelSenderRegistry
    from notify_service.features.notifications.repository import (
        DeliveryLogRepository,
        NotificationRepository,
        SubscriptionRepository,
    )


@dataclass
class SweepReport:
    """What one sweep pass did."""

    sweep: str
    claimed: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int | str]:
        return asdict(self)


class RetrySweeper(BaseService):
    """Re-attempts failed deliveries with exponential backoff."""

    def __init__(
        self,
        senders: ChannelSenderRegistry | None = None,
        composer: MessageComposer | None = None,
        logs: DeliveryLogRepository | None = None,
        notifications: NotificationRepository | None = None,
        subscriptions: SubscriptionRepository | None = None,
        settings: NotificationSettings | None = None,
    ) -> None:
        super().__init__()
        self._senders = senders
        self._composer = composer or MessageComposer()
        self._logs = logs or get_delivery_log_repository()
        self._notifications = notifications or get_notification_repository()
        self._subscriptions = subscriptions or get_subscription_repository()
        self._settings = settings or get_notification_settings()
        self._writer = DeliveryLogWriter(self._settings)

    @property
    def senders(self) -> ChannelSenderRegistry:
        return self._senders or get_channel_sender_registry()

    async def run(self, session: AsyncSession, now: datetime | None = None) -> SweepReport:
        """Process one batch of due retries. Commits per row."""
        started = time.perf_counter()
        now = ensure_utc(now) if now is not None else utc_now()
        stale_before = now - timedelta(seconds=self._settings.claim_timeout_seconds)
        report = SweepReport(sweep="retry")
        set_log_context(sweep="retry")

        due_ids = await self._logs.list_due_retry_ids(
            session,
            now,
            self._settings.max_attempts,
            stale_before,
            self._settings.sweep_batch_size,
        )
        # End the read transaction before claiming
        await session.commit()
        self._lazy.debug(lambda: f"Retry sweep found {len(due_ids)} due entries")

        for entry_id in due_ids:
            try:
                await self._process(session, entry_id, now, stale_before, report)
            except Exception:
                self.logger.exception("Retry failed for delivery log entry", extra={"entry_id": str(entry_id)})
                await session.rollback()
                report.errors += 1

        notification_sweep_duration_seconds.labels(sweep="retry").observe(time.perf_counter() - started)
        if due_ids:
            self.logger.info("Retry sweep finished", extra=report.to_dict())
        return report

    async def _process(
        self,
        session: AsyncSession,
        entry_id: UUID,
        now: datetime,
        stale_before: datetime,
        report: SweepReport,
    ) -> None:
        token = str(uuid.uuid4())
        claimed = await self._logs.claim(session, entry_id, token, now, stale_before)
        await session.commit()
        if not claimed:
            notification_claim_conflicts_total.labels(sweep="retry").inc()
            report.skipped += 1
            return
        report.claimed += 1

        entry = await self._logs.get_or_raise(session, entry_id)
        if await self._logs.has_successor(session, entry):
            report.skipped += 1
            return

        notification = await self._notifications.get_or_raise(session, entry.notification_id)
        attempt = entry.attempt + 1

        subscription = None
        if entry.subscription_id is not None:
            subscription = await self._subscriptions.get(session, entry.subscription_id)
            if subscription is None:
                self._writer.record_status(
                    session,
                    notification,
                    entry.subscription_id,
                    entry.channel,
                    DeliveryStatus.FAILED,
                    attempt=attempt,
                    target=entry.target,
                    error_message="Subscription no longer exists",
                    error_category="subscription_deleted",
                )
                await session.flush()
                await refresh_delivery_state(session, notification)
                await session.commit()
                report.failed += 1
                return

        target = await self._composer.resolve_target(
            notification.tenant_id,
            entry.channel,
            subscription,
            notification.recipient_id,
        )
        message = await self._composer.compose(session, notification, entry.channel, subscription)
        # No transaction stays open across the send
        await session.commit()

        notification_retry_total.labels(channel=entry.channel).inc()
        result = await self.senders.send_with_timeout(entry.channel, target, message)

        self._writer.record_attempt(
            session,
            notification,
            entry.subscription_id,
            entry.channel,
            attempt,
            target,
            result,
            now,
            metadata={"retry_of": str(entry.id)},
        )
        await session.flush()
        await refresh_delivery_state(session, notification)
        await session.commit()

        if result.success:
            report.sent += 1
        else:
            report.failed += 1
        self._lazy.debug(
            lambda: f"Retry attempt {attempt} for {notification.id}/{entry.channel}: "
            f"{'sent' if result.success else result.error_category}"
        )


async def run_retry_sweep(now: datetime | None = None, sweeper: RetrySweeper | None = None) -> SweepReport:
    """Engine entry point: one retry pass on a fresh session.

    Idempotent and safe to run concurrently from several processes.
    """
    sweeper = sweeper or get_retry_sweeper()
    async with get_async_session() as session:
        return await sweeper.run(session, now)


_sweeper: RetrySweeper | None = None


def get_retry_sweeper() -> RetrySweeper:
    global _sweeper
    if _sweeper is None:
        _sweeper = RetrySweeper()
    return _sweeper


__all__ = [
    "RetrySweeper",
    "SweepReport",
    "get_retry_sweeper",
    "run_retry_sweep",
]
