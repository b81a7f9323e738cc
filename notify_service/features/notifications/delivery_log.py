"""Append-only delivery log writes.

Every routing decision and every channel attempt becomes a new
``DeliveryLogEntry``. Nothing here updates an existing row; retries are new
rows with ``attempt + 1``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from notify_service.core.settings import get_notification_settings
from notify_service.features.notifications.metrics import (
    notification_delivered_total,
    notification_retry_exhausted_total,
)
from notify_service.features.notifications.models import DeliveryLogEntry, DeliveryStatus
from notify_service.features.notifications.scheduling import compute_backoff

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from notify_service.core.settings import NotificationSettings
    from notify_service.features.notifications.channels.base import DeliveryResult
    from notify_service.features.notifications.models import Notification

logger = logging.getLogger(__name__)


class DeliveryLogWriter:
    """Builds delivery log rows and adds them to the session.

    Callers flush or commit; the writer never does.
    """

    def __init__(self, settings: NotificationSettings | None = None) -> None:
        self._settings = settings

    @property
    def settings(self) -> NotificationSettings:
        return self._settings or get_notification_settings()

    def next_attempt_at(self, attempt: int, now: datetime) -> datetime | None:
        """Retry time after a failed ``attempt``; None once attempts are exhausted."""
        if attempt >= self.settings.max_attempts:
            return None
        return compute_backoff(attempt, now, self.settings)

    def record_attempt(
        self,
        session: AsyncSession,
        notification: Notification,
        subscription_id: UUID | None,
        channel: str,
        attempt: int,
        target: str | None,
        result: DeliveryResult,
        now: datetime,
        metadata: dict[str, Any] | None = None,
    ) -> DeliveryLogEntry:
        """Record the outcome of one channel send."""
        status = DeliveryStatus.SENT if result.success else DeliveryStatus.FAILED
        next_attempt_at = None if result.success else self.next_attempt_at(attempt, now)

        entry_metadata: dict[str, Any] = dict(result.metadata or {})
        if result.status_code is not None:
            entry_metadata["status_code"] = result.status_code
        entry_metadata.update(metadata or {})

        entry = DeliveryLogEntry(
            tenant_id=notification.tenant_id,
            notification_id=notification.id,
            subscription_id=subscription_id,
            channel=str(channel),
            attempt=attempt,
            status=status,
            event=notification.event,
            target=target,
            next_attempt_at=next_attempt_at,
            error_message=None if result.success else result.error_message,
            error_category=None if result.success else result.error_category,
            response_time_ms=result.response_time_ms,
            delivery_metadata=entry_metadata or None,
        )
        session.add(entry)

        notification_delivered_total.labels(channel=channel, status=status).inc()
        if status == DeliveryStatus.FAILED and next_attempt_at is None:
            notification_retry_exhausted_total.labels(channel=channel).inc()
            logger.warning(
                "Delivery failed terminally",
                extra={
                    "notification_id": str(notification.id),
                    "subscription_id": str(subscription_id) if subscription_id else None,
                    "channel": channel,
                    "attempt": attempt,
                    "error": result.error_message,
                },
            )
        return entry

    def record_status(
        self,
        session: AsyncSession,
        notification: Notification,
        subscription_id: UUID | None,
        channel: str,
        status: str,
        *,
        attempt: int = 1,
        target: str | None = None,
        error_message: str | None = None,
        error_category: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> DeliveryLogEntry:
        """Record a routing outcome that involved no send (deferred, queued, terminal skip)."""
        entry = DeliveryLogEntry(
            tenant_id=notification.tenant_id,
            notification_id=notification.id,
            subscription_id=subscription_id,
            channel=str(channel),
            attempt=attempt,
            status=status,
            event=notification.event,
            target=target,
            next_attempt_at=None,
            error_message=error_message,
            error_category=error_category,
            delivery_metadata=metadata,
        )
        session.add(entry)
        notification_delivered_total.labels(channel=channel, status=status).inc()
        return entry


__all__ = ["DeliveryLogWriter"]
