"""Aggregate delivery state of a notification.

Policy:
    sent     any delivery log entry for the notification is ``sent``; once
             sent, a notification never moves back
    failed   every (subscription, channel) pair's latest entry is a terminal
             failure (``failed`` with no ``next_attempt_at``)
    pending  anything else, including pairs that are only deferred or queued
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import update
from sqlalchemy.orm.attributes import set_committed_value

from notify_service.features.notifications.models import DeliveryState, DeliveryStatus, Notification
from notify_service.features.notifications.repository import get_delivery_log_repository
from notify_service.features.notifications.scheduling import ensure_utc

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from notify_service.features.notifications.models import DeliveryLogEntry


def latest_per_pair(entries: Iterable[DeliveryLogEntry]) -> dict[tuple[UUID | None, str], DeliveryLogEntry]:
    """Latest entry per (subscription, channel), by attempt then write time."""
    latest: dict[tuple[UUID | None, str], DeliveryLogEntry] = {}
    for entry in entries:
        key = (entry.subscription_id, entry.channel)
        current = latest.get(key)
        if current is None or (entry.attempt, ensure_utc(entry.created_at)) >= (
            current.attempt,
            ensure_utc(current.created_at),
        ):
            latest[key] = entry
    return latest


def aggregate_delivery_state(entries: Iterable[DeliveryLogEntry], current: str | None = None) -> str:
    """Derive a notification's delivery state from its log entries."""
    if current == DeliveryState.SENT:
        return DeliveryState.SENT

    entries = list(entries)
    if any(entry.status == DeliveryStatus.SENT for entry in entries):
        return DeliveryState.SENT

    latest = latest_per_pair(entries)
    if latest and all(entry.is_terminal_failure for entry in latest.values()):
        return DeliveryState.FAILED
    return DeliveryState.PENDING


async def refresh_delivery_state(session: AsyncSession, notification: Notification) -> str:
    """Recompute and persist ``notification.delivery_state``.

    The write is conditional so a concurrent worker that already marked the
    notification sent is never overwritten. Does not commit.
    """
    entries = await get_delivery_log_repository().list_for_notification(session, notification.id)
    state = aggregate_delivery_state(entries, notification.delivery_state)
    if state == notification.delivery_state:
        return state

    stmt = (
        update(Notification)
        .where(Notification.id == notification.id, Notification.delivery_state != DeliveryState.SENT)
        .values(delivery_state=state)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    if (result.rowcount or 0) == 0:
        state = DeliveryState.SENT
    set_committed_value(notification, "delivery_state", state)
    return state


__all__ = [
    "aggregate_delivery_state",
    "latest_per_pair",
    "refresh_delivery_state",
]
