"""Database models for notification delivery.

Tables:
    notifications                  one row per triggering event
    notification_subscriptions     who wants which events, on which channels
    notification_templates         per-tenant subject/body overrides by event and channel
    notification_digest_queue      open digest batch per (subscription, channel)
    notification_digest_items      notification ids accumulated in a digest batch
    notification_delivery_logs     append-only record of every delivery attempt
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from notify_service.core.database.base import TenantMixin, UUIDv7TimestampedBase
from notify_service.core.database.types import JSONType, StringArray


class Channel(StrEnum):
    """Delivery media."""

    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    WEBHOOK = "webhook"
    IN_APP = "in_app"


class NotificationType(StrEnum):
    """Severity of a notification."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class DeliveryState(StrEnum):
    """Aggregate delivery state of a notification across all its channels."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class DeliveryStatus(StrEnum):
    """Outcome recorded by one delivery log entry."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    DEFERRED = "deferred"
    QUEUED = "queued"


class DigestFrequency(StrEnum):
    """How often a subscription's digest is released."""

    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"


# Event names that match every event
WILDCARD_EVENTS = frozenset({"*", "all"})


class Notification(UUIDv7TimestampedBase, TenantMixin):
    """A notification raised by a domain event.

    Immutable once created except for ``delivery_state``, which only the
    dispatcher and the sweepers change.
    """

    __tablename__ = "notifications"

    recipient_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        index=True,
        comment="Target user id; NULL for tenant-wide broadcasts",
    )
    asset_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    work_order_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    inventory_item_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    pm_task_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="Semantic bucket such as assigned, overdue, pm_due",
    )
    event: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Event key matched against subscriptions (defaults to category)",
    )
    notification_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=NotificationType.INFO,
        comment="info, warning or critical",
    )
    delivery_state: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=DeliveryState.PENDING,
        index=True,
        comment="pending, sent or failed across all channels",
    )
    context_data: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="Template substitution context captured at creation",
    )

    def __repr__(self) -> str:
        return (
            f"<Notification(id={self.id}, event={self.event!r}, "
            f"recipient={self.recipient_id!r}, state={self.delivery_state!r})>"
        )


class NotificationSubscription(UUIDv7TimestampedBase, TenantMixin):
    """Interest of a user or a group in a set of events.

    ``channels`` is ordered and never empty. Quiet hours are ``HH:mm``
    strings evaluated in ``timezone`` (UTC when unset).
    """

    __tablename__ = "notification_subscriptions"

    user_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        index=True,
        comment="Subscribed user (exclusive with group)",
    )
    group: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        index=True,
        comment="Subscribed group, resolved to members through the recipient directory",
    )
    events: Mapped[list[str]] = mapped_column(
        StringArray,
        nullable=False,
        default=list,
        comment="Event names; empty, '*' or 'all' match every event",
    )
    channels: Mapped[list[str]] = mapped_column(
        StringArray,
        nullable=False,
        comment="Ordered delivery channels",
    )
    channel_targets: Mapped[dict[str, str] | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="Explicit per-channel addresses (webhook URL, push token, phone)",
    )
    quiet_hours_start: Mapped[str | None] = mapped_column(String(5), nullable=True)
    quiet_hours_end: Mapped[str | None] = mapped_column(String(5), nullable=True)
    timezone: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="IANA timezone for quiet hours and digest boundaries",
    )
    digest_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    digest_frequency: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=DigestFrequency.DAILY,
    )

    def matches_event(self, event: str) -> bool:
        """Whether this subscription wants ``event``."""
        events = self.events or []
        return not events or event in events or bool(WILDCARD_EVENTS.intersection(events))

    @property
    def recipient_label(self) -> str:
        """User id, or ``group:<name>`` for group subscriptions."""
        return self.user_id if self.user_id else f"group:{self.group}"

    def __repr__(self) -> str:
        return (
            f"<NotificationSubscription(id={self.id}, recipient={self.recipient_label!r}, "
            f"channels={self.channels!r})>"
        )


class NotificationTemplate(UUIDv7TimestampedBase, TenantMixin):
    """Subject/body override for one (tenant, event, channel).

    Placeholders use ``{{key}}`` and are filled from the notification's
    ``context_data``.
    """

    __tablename__ = "notification_templates"

    event: Mapped[str] = mapped_column(String(100), nullable=False)
    channel: Mapped[str] = mapped_column(String(20), nullable=False)
    subject: Mapped[str | None] = mapped_column(Text, nullable=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "event", "channel", name="uq_notification_templates_event_channel"),
    )


class DigestQueueEntry(UUIDv7TimestampedBase, TenantMixin):
    """Open digest batch for one (subscription, channel).

    At most one row exists per (subscription, channel); new deferrals append
    items to it. ``claim_token`` / ``claimed_at`` mark a sweeper working on it.
    """

    __tablename__ = "notification_digest_queue"

    subscription_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    channel: Mapped[str] = mapped_column(String(20), nullable=False)
    deliver_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
        comment="When the batch becomes due",
    )
    attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Failed flush attempts so far",
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    claim_token: Mapped[str | None] = mapped_column(String(36), nullable=True)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("subscription_id", "channel", name="uq_notification_digest_queue_subscription_channel"),
    )


class DigestQueueItem(UUIDv7TimestampedBase):
    """One notification waiting in a digest batch."""

    __tablename__ = "notification_digest_items"

    entry_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("notification_digest_queue.id"),
        nullable=False,
        index=True,
    )
    notification_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("notifications.id", ondelete="CASCADE"),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("entry_id", "notification_id", name="uq_notification_digest_items_entry_notification"),
    )


class DeliveryLogEntry(UUIDv7TimestampedBase, TenantMixin):
    """One delivery attempt and its outcome.

    Append-only: a retry writes a new row with ``attempt + 1``. Only the
    claim columns of an existing row are ever updated.
    """

    __tablename__ = "notification_delivery_logs"

    notification_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("notifications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subscription_id: Mapped[uuid.UUID | None] = mapped_column(
        nullable=True,
        index=True,
        comment="NULL for fallback deliveries to unsubscribed recipients",
    )
    channel: Mapped[str] = mapped_column(String(20), nullable=False)
    attempt: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    event: Mapped[str] = mapped_column(String(100), nullable=False)
    target: Mapped[str | None] = mapped_column(
        String(1024),
        nullable=True,
        comment="Resolved address, token or URL",
    )
    next_attempt_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When a failed attempt becomes retryable; NULL when terminal",
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    response_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    delivery_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata",
        JSONType,
        nullable=True,
    )
    claim_token: Mapped[str | None] = mapped_column(String(36), nullable=True)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_notification_delivery_logs_retry", "status", "next_attempt_at"),
        Index(
            "ix_notification_delivery_logs_pair",
            "notification_id",
            "subscription_id",
            "channel",
            "attempt",
        ),
    )

    @property
    def is_terminal_failure(self) -> bool:
        return self.status == DeliveryStatus.FAILED and self.next_attempt_at is None

    def __repr__(self) -> str:
        return (
            f"<DeliveryLogEntry(notification={self.notification_id}, channel={self.channel!r}, "
            f"attempt={self.attempt}, status={self.status!r})>"
        )
