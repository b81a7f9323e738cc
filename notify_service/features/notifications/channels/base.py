"""Base protocol and types for channel senders."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class RenderedMessage:
    """Message content handed to a channel sender.

    Attributes:
        subject: Title line (email subject, push title, chat heading)
        body: Plain-text body
        category: Semantic bucket of the notification, e.g. "assigned"
        event: Event key the delivery was triggered by
        notification_ids: Notifications covered (several for a digest)
        metadata: Extra fields forwarded to payload-based channels
    """

    subject: str
    body: str
    category: str | None = None
    event: str | None = None
    notification_ids: tuple[str, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class DeliveryResult:
    """Result of a channel delivery attempt.

    Attributes:
        success: Whether delivery succeeded
        status_code: HTTP status code (for HTTP gateways) or None
        response_body: Response body/message
        response_time_ms: Time taken for delivery in milliseconds
        error_message: Error description if failed
        error_category: Error classification (timeout, http_error, validation, etc.)
        metadata: Channel-specific metadata
    """

    success: bool
    status_code: int | None = None
    response_body: str | None = None
    response_time_ms: int | None = None
    error_message: str | None = None
    error_category: str | None = None
    metadata: dict[str, str | int | bool] | None = None

    @classmethod
    def failure(
        cls,
        message: str,
        category: str,
        *,
        started: float | None = None,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> DeliveryResult:
        return cls(
            success=False,
            error_message=message,
            error_category=category,
            status_code=status_code,
            response_body=response_body,
            response_time_ms=elapsed_ms(started) if started is not None else None,
        )


def elapsed_ms(started: float) -> int:
    """Milliseconds since ``started`` (a ``time.time()`` value)."""
    return int((time.time() - started) * 1000)


@runtime_checkable
class ChannelSender(Protocol):
    """Protocol for channel-specific senders.

    Ordinary transport failures (timeouts, rejected addresses, HTTP errors)
    are returned as a failed :class:`DeliveryResult`, never raised.
    """

    channel: str

    async def send(self, target: str | None, message: RenderedMessage) -> DeliveryResult:
        """Attempt one delivery.

        Args:
            target: Resolved address, phone number, push token or URL
            message: Rendered content

        Returns:
            DeliveryResult with status and metadata
        """
        ...


__all__ = [
    "ChannelSender",
    "DeliveryResult",
    "RenderedMessage",
    "elapsed_ms",
]
