"""Notification feature errors."""

from __future__ import annotations

from typing import Any

from notify_service.core.exceptions import (
    AppException,
    ConflictException,
    NotFoundException,
    ValidationException,
)


class NotificationError(AppException):
    """Base class for notification feature errors."""


class NotificationNotFoundError(NotFoundException):
    def __init__(self, notification_id: Any) -> None:
        super().__init__(
            detail=f"Notification {notification_id} not found",
            type="notification-not-found",
            extra={"notification_id": str(notification_id)},
        )


class SubscriptionNotFoundError(NotFoundException):
    def __init__(self, subscription_id: Any) -> None:
        super().__init__(
            detail=f"Subscription {subscription_id} not found",
            type="subscription-not-found",
            extra={"subscription_id": str(subscription_id)},
        )


class InvalidSubscriptionError(ValidationException):
    """Raised when a subscription breaks a domain rule (e.g. no channels)."""

    def __init__(self, detail: str, extra: dict[str, Any] | None = None) -> None:
        super().__init__(detail=detail, type="invalid-subscription", extra=extra)


class TemplateNotFoundError(NotFoundException):
    def __init__(self, template_id: Any) -> None:
        super().__init__(
            detail=f"Template {template_id} not found",
            type="template-not-found",
            extra={"template_id": str(template_id)},
        )


class TemplateConflictError(ConflictException):
    def __init__(self, tenant_id: str, event: str, channel: str) -> None:
        super().__init__(
            detail=f"Template already exists for event '{event}' on {channel}",
            type="template-conflict",
            extra={"tenant_id": tenant_id, "event": event, "channel": channel},
        )


class ChannelConfigurationError(NotificationError):
    """Required channel configuration is missing.

    A programmer or deployment error, not a transport failure: senders raise
    it instead of returning a failed result.
    """

    def __init__(self, channel: str, detail: str) -> None:
        super().__init__(
            status_code=500,
            detail=detail,
            type="channel-configuration",
            extra={"channel": channel},
        )
        self.channel = channel


__all__ = [
    "ChannelConfigurationError",
    "InvalidSubscriptionError",
    "NotificationError",
    "NotificationNotFoundError",
    "SubscriptionNotFoundError",
    "TemplateConflictError",
    "TemplateNotFoundError",
]
