"""Pydantic schemas for the notifications feature."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from notify_service.features.notifications.models import (
    Channel,
    DigestFrequency,
    NotificationType,
)

# HH:mm, 00:00 through 23:59
TIME_OF_DAY_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


def _dedupe(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


def _check_timezone(value: str | None) -> str | None:
    if value is None:
        return value
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        msg = f"Unknown timezone: {value}"
        raise ValueError(msg) from exc
    return value


# ============================================================================
# Subscription Schemas
# ============================================================================


class SubscriptionBase(BaseModel):
    """Shared attributes for subscription payloads."""

    events: list[str] = Field(
        default_factory=list,
        description="Event names; empty, '*' or 'all' match every event",
    )
    channels: list[Channel] = Field(
        ...,
        min_length=1,
        description="Ordered delivery channels (duplicates removed)",
    )
    channel_targets: dict[str, str] | None = Field(
        default=None,
        description="Explicit per-channel addresses, plus optional 'slack' / 'teams' webhook URLs",
    )
    quiet_hours_start: str | None = Field(default=None, pattern=TIME_OF_DAY_PATTERN, examples=["22:00"])
    quiet_hours_end: str | None = Field(default=None, pattern=TIME_OF_DAY_PATTERN, examples=["06:30"])
    timezone: str | None = Field(default=None, max_length=64, examples=["Europe/Berlin"])
    digest_enabled: bool = False
    digest_frequency: DigestFrequency = DigestFrequency.DAILY

    @field_validator("channels")
    @classmethod
    def _unique_channels(cls, value: list[Channel]) -> list[Channel]:
        return _dedupe(value)

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str | None) -> str | None:
        return _check_timezone(value)


class SubscriptionCreate(SubscriptionBase):
    """Payload for creating a subscription for exactly one user or group."""

    tenant_id: str = Field(..., min_length=1, max_length=255)
    user_id: str | None = Field(default=None, max_length=255)
    group: str | None = Field(default=None, max_length=255)

    @model_validator(mode="after")
    def _one_recipient(self) -> SubscriptionCreate:
        if bool(self.user_id) == bool(self.group):
            msg = "Exactly one of user_id or group is required"
            raise ValueError(msg)
        return self


class SubscriptionUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    events: list[str] | None = None
    channels: list[Channel] | None = Field(default=None, min_length=1)
    channel_targets: dict[str, str] | None = None
    quiet_hours_start: str | None = Field(default=None, pattern=TIME_OF_DAY_PATTERN)
    quiet_hours_end: str | None = Field(default=None, pattern=TIME_OF_DAY_PATTERN)
    timezone: str | None = Field(default=None, max_length=64)
    digest_enabled: bool | None = None
    digest_frequency: DigestFrequency | None = None

    @field_validator("channels")
    @classmethod
    def _unique_channels(cls, value: list[Channel] | None) -> list[Channel] | None:
        return _dedupe(value) if value is not None else None

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str | None) -> str | None:
        return _check_timezone(value)


class SubscriptionResponse(SubscriptionBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: str
    user_id: str | None
    group: str | None
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Template Schemas
# ============================================================================


class TemplateCreate(BaseModel):
    """Payload for a per-tenant (event, channel) template."""

    tenant_id: str = Field(..., min_length=1, max_length=255)
    event: str = Field(..., min_length=1, max_length=100)
    channel: Channel
    subject: str | None = Field(default=None, description="Subject with {{key}} placeholders")
    body: str = Field(..., min_length=1, description="Body with {{key}} placeholders")


class TemplateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: str
    event: str
    channel: str
    subject: str | None
    body: str
    created_at: datetime


# ============================================================================
# Notification Schemas
# ============================================================================


class NotificationCreate(BaseModel):
    """Trigger payload: creates a notification and routes it."""

    tenant_id: str = Field(..., min_length=1, max_length=255)
    recipient_id: str | None = Field(default=None, max_length=255, description="Omit for a tenant-wide broadcast")
    category: str = Field(..., min_length=1, max_length=50, examples=["assigned"])
    notification_type: NotificationType = NotificationType.INFO
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    template_context: dict[str, Any] | None = None
    event: str | None = Field(default=None, max_length=100, description="Defaults to the category")
    subscription_group: str | None = Field(default=None, max_length=255)
    asset_id: str | None = None
    work_order_id: str | None = None
    inventory_item_id: str | None = None
    pm_task_id: str | None = None


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: str
    recipient_id: str | None
    title: str
    message: str
    category: str
    event: str
    notification_type: str
    delivery_state: str
    asset_id: str | None = None
    work_order_id: str | None = None
    inventory_item_id: str | None = None
    pm_task_id: str | None = None
    created_at: datetime


class DeliveryLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    subscription_id: UUID | None
    channel: str
    attempt: int
    status: str
    event: str
    target: str | None
    next_attempt_at: datetime | None
    error_message: str | None
    error_category: str | None
    response_time_ms: int | None
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="delivery_metadata")
    created_at: datetime


class NotificationDetailResponse(NotificationResponse):
    deliveries: list[DeliveryLogResponse] = Field(default_factory=list)


class DispatchSummary(BaseModel):
    sent: int = 0
    failed: int = 0
    deferred: int = 0
    queued: int = 0


class NotificationCreatedResponse(BaseModel):
    notification: NotificationResponse
    dispatch: DispatchSummary


class DigestEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: str
    subscription_id: UUID
    channel: str
    deliver_at: datetime
    attempts: int
    last_error: str | None
    item_count: int = 0


class SweepReportResponse(BaseModel):
    sweep: str
    claimed: int
    sent: int
    failed: int
    skipped: int
    errors: int


__all__ = [
    "TIME_OF_DAY_PATTERN",
    "DeliveryLogResponse",
    "DigestEntryResponse",
    "DispatchSummary",
    "NotificationCreate",
    "NotificationCreatedResponse",
    "NotificationDetailResponse",
    "NotificationResponse",
    "SubscriptionBase",
    "SubscriptionCreate",
    "SubscriptionResponse",
    "SubscriptionUpdate",
    "SweepReportResponse",
    "TemplateCreate",
    "TemplateResponse",
]
