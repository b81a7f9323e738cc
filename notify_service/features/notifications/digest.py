"""Digest sweeper: flushes due digest batches.

A due entry is claimed and its accumulated notifications are combined into
one message per recipient: a user subscription sends once, a group
subscription sends once for each member the notifications were addressed
to. Every delivered notification gets a ``sent`` log row and its item is
removed; items appended while the sends were in flight stay queued for the
next period. When any recipient's send fails the entry is rescheduled with
backoff and keeps the undelivered items.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass
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
    notification_digest_batch_size,
    notification_digest_flushed_total,
    notification_sweep_duration_seconds,
)
from notify_service.features.notifications.repository import (
    get_digest_queue_repository,
    get_notification_repository,
    get_subscription_repository,
)
from notify_service.features.notifications.retry import SweepReport
from notify_service.features.notifications.scheduling import (
    compute_backoff,
    ensure_utc,
    next_digest_boundary,
    utc_now,
)
from notify_service.infra.database.session import get_async_session
from notify_service.infra.logging import set_log_context

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from notify_service.core.settings import NotificationSettings
    from notify_service.features.notifications.channels.base import RenderedMessage
    from notify_service.features.notifications.channels.registry import ChannelSenderRegistry
    from notify_service.features.notifications.models import Notification, NotificationSubscription
    from notify_service.features.notifications.repository import (
        DigestQueueRepository,
        NotificationRepository,
        SubscriptionRepository,
    )


@dataclass
class _DigestBatch:
    target: str | None
    message: RenderedMessage
    notifications: list[Notification]


class DigestSweeper(BaseService):
    """Sends due digest batches, one channel send per recipient."""

    def __init__(
        self,
        senders: ChannelSenderRegistry | None = None,
        composer: MessageComposer | None = None,
        queue: DigestQueueRepository | None = None,
        notifications: NotificationRepository | None = None,
        subscriptions: SubscriptionRepository | None = None,
        settings: NotificationSettings | None = None,
    ) -> None:
        super().__init__()
        self._senders = senders
        self._composer = composer or MessageComposer()
        self._queue = queue or get_digest_queue_repository()
        self._notifications = notifications or get_notification_repository()
        self._subscriptions = subscriptions or get_subscription_repository()
        self._settings = settings or get_notification_settings()
        self._writer = DeliveryLogWriter(self._settings)

    @property
    def senders(self) -> ChannelSenderRegistry:
        return self._senders or get_channel_sender_registry()

    async def run(self, session: AsyncSession, now: datetime | None = None) -> SweepReport:
        """Process one batch of due digest entries. Commits per entry."""
        started = time.perf_counter()
        now = ensure_utc(now) if now is not None else utc_now()
        stale_before = now - timedelta(seconds=self._settings.claim_timeout_seconds)
        report = SweepReport(sweep="digest")
        set_log_context(sweep="digest")

        due_ids = await self._queue.list_due_ids(session, now, stale_before, self._settings.sweep_batch_size)
        await session.commit()
        self._lazy.debug(lambda: f"Digest sweep found {len(due_ids)} due entries")

        for entry_id in due_ids:
            try:
                await self._process(session, entry_id, now, stale_before, report)
            except Exception:
                self.logger.exception("Digest flush failed", extra={"digest_entry_id": str(entry_id)})
                await session.rollback()
                report.errors += 1

        notification_sweep_duration_seconds.labels(sweep="digest").observe(time.perf_counter() - started)
        if due_ids:
            self.logger.info("Digest sweep finished", extra=report.to_dict())
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
        claimed = await self._queue.claim(session, entry_id, token, now, stale_before)
        await session.commit()
        if not claimed:
            notification_claim_conflicts_total.labels(sweep="digest").inc()
            report.skipped += 1
            return
        report.claimed += 1

        entry = await self._queue.get_or_raise(session, entry_id)
        # The claim UPDATE bypassed the identity map
        await session.refresh(entry)

        subscription = await self._subscriptions.get(session, entry.subscription_id)
        if subscription is None:
            await self._queue.delete_entry(session, entry.id)
            session.expunge(entry)
            await session.commit()
            self.logger.info(
                "Dropped digest for deleted subscription",
                extra={"digest_entry_id": str(entry.id), "subscription_id": str(entry.subscription_id)},
            )
            report.skipped += 1
            return

        notification_ids = await self._queue.item_notification_ids(session, entry.id)
        notifications = await self._notifications.get_many(session, notification_ids)
        if not notifications:
            if await self._queue.delete_if_empty(session, entry.id):
                session.expunge(entry)
            else:
                await self._queue.release(session, entry.id, token)
            await session.commit()
            report.skipped += 1
            return

        batches = await self._build_batches(entry.tenant_id, entry.channel, subscription, notifications)
        await session.commit()

        results = await asyncio.gather(
            *(self.senders.send_with_timeout(entry.channel, batch.target, batch.message) for batch in batches)
        )

        delivered: list[Notification] = []
        errors: list[str] = []
        for batch, result in zip(batches, results, strict=True):
            notification_digest_flushed_total.labels(
                channel=entry.channel,
                status="sent" if result.success else "failed",
            ).inc()
            if not result.success:
                errors.append(result.error_message or "delivery failed")
                continue
            notification_digest_batch_size.observe(len(batch.notifications))
            for notification in batch.notifications:
                self._writer.record_attempt(
                    session,
                    notification,
                    subscription.id,
                    entry.channel,
                    entry.attempts + 1,
                    batch.target,
                    result,
                    now,
                    metadata={"digest_entry_id": str(entry.id), "batch_size": len(batch.notifications)},
                )
            delivered.extend(batch.notifications)

        if delivered:
            await self._queue.remove_items(session, entry.id, [notification.id for notification in delivered])

        if errors:
            attempts = entry.attempts + 1
            await self._queue.release(
                session,
                entry.id,
                token,
                attempts=attempts,
                deliver_at=compute_backoff(attempts, now, self._settings),
                last_error="; ".join(errors),
            )
            self.logger.warning(
                "Digest delivery failed, rescheduled",
                extra={
                    "digest_entry_id": str(entry.id),
                    "channel": entry.channel,
                    "attempts": attempts,
                    "failed_batches": len(errors),
                    "error": errors[0],
                },
            )
        elif await self._queue.delete_if_empty(session, entry.id):
            session.expunge(entry)
        else:
            await self._queue.release(
                session,
                entry.id,
                token,
                attempts=0,
                last_error=None,
                deliver_at=next_digest_boundary(subscription.digest_frequency, now, subscription.timezone),
            )

        await session.flush()
        for notification in delivered:
            await refresh_delivery_state(session, notification)
        await session.commit()
        if errors:
            report.failed += 1
        else:
            report.sent += 1

    async def _build_batches(
        self,
        tenant_id: str,
        channel: str,
        subscription: NotificationSubscription,
        notifications: Sequence[Notification],
    ) -> list[_DigestBatch]:
        """Split a digest into one message per recipient.

        A user subscription yields a single batch. A group subscription
        yields one batch per member the notifications were addressed to.
        """
        grouped: dict[str | None, list[Notification]] = {}
        for notification in notifications:
            grouped.setdefault(subscription.user_id or notification.recipient_id, []).append(notification)

        batches = []
        for recipient_id, members in grouped.items():
            target = await self._composer.resolve_target(tenant_id, channel, subscription, recipient_id)
            batches.append(_DigestBatch(target, self._composer.compose_digest(members, subscription), members))
        return batches


async def run_digest_sweep(now: datetime | None = None, sweeper: DigestSweeper | None = None) -> SweepReport:
    """Engine entry point: one digest pass on a fresh session.

    Idempotent and safe to run concurrently from several processes.
    """
    sweeper = sweeper or get_digest_sweeper()
    async with get_async_session() as session:
        return await sweeper.run(session, now)


_sweeper: DigestSweeper | None = None


def get_digest_sweeper() -> DigestSweeper:
    global _sweeper
    if _sweeper is None:
        _sweeper = DigestSweeper()
    return _sweeper


__all__ = [
    "DigestSweeper",
    "get_digest_sweeper",
    "run_digest_sweep",
]
