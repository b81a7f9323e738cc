"""Delivery dispatcher: routes a new notification to its channels.

For every (subscription, channel) pair the dispatcher either sends now,
defers into the subscription's digest, or queues without delivery:

    not in quiet hours                 -> send, log sent / failed (attempt 1)
    in quiet hours, digest enabled     -> append to open digest, log deferred
    in quiet hours, digest disabled    -> log queued, nothing else

Sends within one dispatch run concurrently; rendering and all database
writes happen on the caller's session before and after the sends.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError

from notify_service.core.services import BaseService
from notify_service.core.settings import get_notification_settings
from notify_service.features.notifications.channels.registry import get_channel_sender_registry
from notify_service.features.notifications.composer import MessageComposer
from notify_service.features.notifications.delivery_log import DeliveryLogWriter
from notify_service.features.notifications.delivery_state import refresh_delivery_state
from notify_service.features.notifications.metrics import notification_quiet_hours_deferred_total
from notify_service.features.notifications.models import DeliveryStatus, DigestQueueEntry
from notify_service.features.notifications.quiet_hours import QuietHoursWindow, is_within_quiet_hours
from notify_service.features.notifications.registry import get_subscription_registry
from notify_service.features.notifications.repository import get_digest_queue_repository
from notify_service.features.notifications.scheduling import ensure_utc, next_digest_boundary, utc_now

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from notify_service.core.settings import NotificationSettings
    from notify_service.features.notifications.channels.base import RenderedMessage
    from notify_service.features.notifications.channels.registry import ChannelSenderRegistry
    from notify_service.features.notifications.models import Notification, NotificationSubscription
    from notify_service.features.notifications.registry import SubscriptionRegistry
    from notify_service.features.notifications.repository import DigestQueueRepository


def quiet_hours_window(subscription: NotificationSubscription | None) -> QuietHoursWindow | None:
    if subscription is None:
        return None
    return QuietHoursWindow(
        start=subscription.quiet_hours_start,
        end=subscription.quiet_hours_end,
        timezone=subscription.timezone,
    )


@dataclass
class DispatchOutcome:
    """Counts of routing decisions made for one notification."""

    notification_id: UUID
    sent: int = 0
    failed: int = 0
    deferred: int = 0
    queued: int = 0
    delivery_state: str | None = None
    digest_entry_ids: list[UUID] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.sent + self.failed + self.deferred + self.queued


@dataclass
class _PlannedSend:
    subscription: NotificationSubscription | None
    channel: str
    target: str | None
    message: RenderedMessage


class DeliveryDispatcher(BaseService):
    """Fans a notification out over matching subscriptions and channels."""

    def __init__(
        self,
        senders: ChannelSenderRegistry | None = None,
        registry: SubscriptionRegistry | None = None,
        composer: MessageComposer | None = None,
        digest_queue: DigestQueueRepository | None = None,
        settings: NotificationSettings | None = None,
    ) -> None:
        super().__init__()
        self._senders = senders
        self._registry = registry or get_subscription_registry()
        self._composer = composer or MessageComposer()
        self._digest_queue = digest_queue or get_digest_queue_repository()
        self._settings = settings or get_notification_settings()
        self._log = DeliveryLogWriter(self._settings)

    @property
    def senders(self) -> ChannelSenderRegistry:
        return self._senders or get_channel_sender_registry()

    async def dispatch(
        self,
        session: AsyncSession,
        notification: Notification,
        subscriptions: Sequence[NotificationSubscription] | None = None,
        *,
        subscription_group: str | None = None,
        now: datetime | None = None,
    ) -> DispatchOutcome:
        """Route ``notification`` once; flushes but does not commit.

        Args:
            session: Session the notification was created on
            notification: Freshly created notification
            subscriptions: Candidates; resolved through the registry when None
            subscription_group: Restrict resolved candidates to one group
            now: Routing time (defaults to the current UTC time)
        """
        now = ensure_utc(now) if now is not None else utc_now()
        outcome = DispatchOutcome(notification_id=notification.id)

        if subscriptions is None:
            subscriptions = await self._registry.find_candidates(session, notification, subscription_group)

        routes: list[tuple[NotificationSubscription | None, str]] = [
            (subscription, channel) for subscription in subscriptions for channel in subscription.channels
        ]
        if not routes and notification.recipient_id:
            routes = [(None, channel) for channel in self._settings.fallback_channels]
            self._lazy.debug(
                lambda: f"No subscriptions for notification {notification.id}, using fallback channels"
            )

        planned: list[_PlannedSend] = []
        for subscription, channel in routes:
            if subscription is not None and is_within_quiet_hours(quiet_hours_window(subscription), now):
                if subscription.digest_enabled:
                    entry_id = await self._defer(session, notification, subscription, channel, now)
                    outcome.deferred += 1
                    outcome.digest_entry_ids.append(entry_id)
                else:
                    self._log.record_status(
                        session,
                        notification,
                        subscription.id,
                        channel,
                        DeliveryStatus.QUEUED,
                        metadata={"reason": "quiet_hours"},
                    )
                    notification_quiet_hours_deferred_total.labels(channel=channel, outcome="queued").inc()
                    outcome.queued += 1
                continue

            target = await self._composer.resolve_target(
                notification.tenant_id,
                channel,
                subscription,
                notification.recipient_id,
            )
            message = await self._composer.compose(session, notification, channel, subscription)
            planned.append(_PlannedSend(subscription, channel, target, message))

        results = await asyncio.gather(
            *(self.senders.send_with_timeout(send.channel, send.target, send.message) for send in planned),
        )

        for send, result in zip(planned, results, strict=True):
            self._log.record_attempt(
                session,
                notification,
                send.subscription.id if send.subscription is not None else None,
                send.channel,
                1,
                send.target,
                result,
                now,
            )
            if result.success:
                outcome.sent += 1
            else:
                outcome.failed += 1

        await session.flush()
        outcome.delivery_state = await refresh_delivery_state(session, notification)

        self.logger.info(
            "Notification dispatched",
            extra={
                "notification_id": str(notification.id),
                "tenant_id": notification.tenant_id,
                "event": notification.event,
                "sent": outcome.sent,
                "failed": outcome.failed,
                "deferred": outcome.deferred,
                "queued": outcome.queued,
                "delivery_state": outcome.delivery_state,
            },
        )
        return outcome

    async def _defer(
        self,
        session: AsyncSession,
        notification: Notification,
        subscription: NotificationSubscription,
        channel: str,
        now: datetime,
    ) -> UUID:
        """Append the notification to the open digest for (subscription, channel).

        The digest sweeper deletes an entry once it is flushed empty. If that
        happens between reading the entry and appending to it, the append
        fails its foreign key and is retried against a fresh entry.
        """
        for attempt in range(2):
            entry = await self._open_entry(session, notification, subscription, channel, now)
            try:
                async with session.begin_nested():
                    await self._digest_queue.add_item(session, entry.id, notification.id)
                break
            except IntegrityError:
                if attempt:
                    raise
                self.logger.info(
                    "Digest entry flushed while appending, reopening",
                    extra={"digest_entry_id": str(entry.id), "channel": channel},
                )

        self._log.record_status(
            session,
            notification,
            subscription.id,
            channel,
            DeliveryStatus.DEFERRED,
            metadata={
                "digest_entry_id": str(entry.id),
                "deliver_at": ensure_utc(entry.deliver_at).isoformat(),
            },
        )
        notification_quiet_hours_deferred_total.labels(channel=channel, outcome="deferred").inc()
        return entry.id

    async def _open_entry(
        self,
        session: AsyncSession,
        notification: Notification,
        subscription: NotificationSubscription,
        channel: str,
        now: datetime,
    ) -> DigestQueueEntry:
        entry = await self._digest_queue.get_open(session, subscription.id, channel)
        if entry is not None:
            return entry

        entry = DigestQueueEntry(
            tenant_id=notification.tenant_id,
            subscription_id=subscription.id,
            channel=str(channel),
            deliver_at=next_digest_boundary(subscription.digest_frequency, now, subscription.timezone),
            attempts=0,
        )
        try:
            async with session.begin_nested():
                session.add(entry)
        except IntegrityError:
            # Another dispatcher opened the entry first
            entry = await self._digest_queue.get_open(session, subscription.id, channel)
            if entry is None:
                raise
        return entry


_dispatcher: DeliveryDispatcher | None = None


def get_delivery_dispatcher() -> DeliveryDispatcher:
    """Get the process-wide dispatcher."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = DeliveryDispatcher()
    return _dispatcher


__all__ = [
    "DeliveryDispatcher",
    "DispatchOutcome",
    "get_delivery_dispatcher",
    "quiet_hours_window",
]
