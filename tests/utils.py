"""Test utilities: fake channel senders and model factories.

Usage:
    from tests.utils import FakeSender, make_subscription

    email = FakeSender("email", outcomes=[False, True])  # fail once, then succeed
    subscription = await make_subscription(session, channels=["email"])
"""

from __future__ import annotations

import asyncio
from collections import deque
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from notify_service.features.notifications.channels.base import DeliveryResult
from notify_service.features.notifications.models import (
    DigestFrequency,
    Notification,
    NotificationSubscription,
    NotificationType,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from notify_service.features.notifications.channels.base import RenderedMessage

TENANT = "plant-7"

# A Wednesday, mid-morning UTC
NOW = datetime(2026, 3, 11, 10, 0, tzinfo=UTC)


class FakeSender:
    """Channel sender that records calls and returns scripted outcomes.

    ``outcomes`` is consumed one value per call; once exhausted every call
    returns ``default``.
    """

    def __init__(
        self,
        channel: str,
        *,
        outcomes: Iterable[bool] = (),
        default: bool = True,
        delay: float = 0.0,
        error_category: str = "network",
    ) -> None:
        self.channel = channel
        self.outcomes = deque(outcomes)
        self.default = default
        self.delay = delay
        self.error_category = error_category
        self.calls: list[tuple[str | None, RenderedMessage]] = []

    async def send(self, target: str | None, message: RenderedMessage) -> DeliveryResult:
        self.calls.append((target, message))
        if self.delay:
            await asyncio.sleep(self.delay)
        success = self.outcomes.popleft() if self.outcomes else self.default
        if success:
            return DeliveryResult(success=True, status_code=200, response_time_ms=1)
        return DeliveryResult.failure("gateway unavailable", self.error_category)


class RaisingSender:
    """Sender whose ``send`` raises, for exercising the registry's guard."""

    def __init__(self, channel: str, exc: Exception) -> None:
        self.channel = channel
        self.exc = exc

    async def send(self, target: str | None, message: RenderedMessage) -> DeliveryResult:
        raise self.exc


async def make_subscription(session: AsyncSession, **overrides: Any) -> NotificationSubscription:
    """Persist and commit a subscription with sensible defaults."""
    values: dict[str, Any] = {
        "tenant_id": TENANT,
        "user_id": "tech@example.com",
        "group": None,
        "events": ["assigned"],
        "channels": ["email"],
        "channel_targets": None,
        "quiet_hours_start": None,
        "quiet_hours_end": None,
        "timezone": None,
        "digest_enabled": False,
        "digest_frequency": DigestFrequency.HOURLY,
    }
    values.update(overrides)
    subscription = NotificationSubscription(**values)
    session.add(subscription)
    await session.commit()
    return subscription


async def make_notification(session: AsyncSession, **overrides: Any) -> Notification:
    """Persist and flush a notification without routing it."""
    values: dict[str, Any] = {
        "tenant_id": TENANT,
        "recipient_id": "tech@example.com",
        "category": "assigned",
        "event": "assigned",
        "notification_type": NotificationType.INFO,
        "title": "Work order assignment",
        "message": 'Work order "Replace pump seal" assigned to you.',
    }
    values.update(overrides)
    notification = Notification(**values)
    session.add(notification)
    await session.flush()
    return notification


__all__ = [
    "NOW",
    "TENANT",
    "FakeSender",
    "RaisingSender",
    "make_notification",
    "make_subscription",
]
