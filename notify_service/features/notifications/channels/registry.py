"""Channel sender registry keyed by channel name.

Every delivery goes through :meth:`ChannelSenderRegistry.send_with_timeout`,
which bounds the call and never raises: timeouts, configuration errors and
unexpected exceptions all come back as failed results.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from notify_service.core.settings import get_notification_settings
from notify_service.features.notifications.channels.base import DeliveryResult, RenderedMessage, elapsed_ms
from notify_service.features.notifications.channels.email import EmailChannelSender
from notify_service.features.notifications.channels.in_app import InAppChannelSender
from notify_service.features.notifications.channels.push import PushChannelSender
from notify_service.features.notifications.channels.sms import SmsChannelSender
from notify_service.features.notifications.channels.webhook import WebhookChannelSender
from notify_service.features.notifications.exceptions import ChannelConfigurationError
from notify_service.features.notifications.metrics import (
    notification_delivery_duration_seconds,
    notification_errors_total,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from notify_service.features.notifications.channels.base import ChannelSender

logger = logging.getLogger(__name__)


class ChannelSenderRegistry:
    """Maps channel names to sender implementations."""

    def __init__(
        self,
        senders: Mapping[str, ChannelSender] | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._senders: dict[str, ChannelSender] = dict(senders or {})
        self.timeout_seconds = timeout_seconds or get_notification_settings().sender_timeout_seconds

    @classmethod
    def with_default_senders(cls, timeout_seconds: float | None = None) -> ChannelSenderRegistry:
        """Registry with the built-in sender for every channel."""
        senders: list[ChannelSender] = [
            EmailChannelSender(),
            SmsChannelSender(),
            PushChannelSender(),
            WebhookChannelSender(),
            InAppChannelSender(),
        ]
        return cls({str(sender.channel): sender for sender in senders}, timeout_seconds)

    def register(self, channel: str, sender: ChannelSender) -> None:
        self._senders[str(channel)] = sender

    def get(self, channel: str) -> ChannelSender | None:
        return self._senders.get(str(channel))

    @property
    def channels(self) -> list[str]:
        return list(self._senders)

    async def send_with_timeout(
        self,
        channel: str,
        target: str | None,
        message: RenderedMessage,
    ) -> DeliveryResult:
        """Invoke the channel's sender, bounded by the sender timeout."""
        start_time = time.time()
        sender = self.get(channel)

        if sender is None:
            result = DeliveryResult.failure(f"Unsupported channel: {channel}", "unsupported_channel")
        else:
            try:
                result = await asyncio.wait_for(sender.send(target, message), timeout=self.timeout_seconds)
            except TimeoutError:
                logger.warning(
                    "Channel send timed out",
                    extra={"channel": channel, "timeout_seconds": self.timeout_seconds},
                )
                result = DeliveryResult.failure(
                    f"Send timed out after {self.timeout_seconds}s",
                    "timeout",
                    started=start_time,
                )
            except ChannelConfigurationError as exc:
                logger.error(
                    "Channel not configured",
                    extra={"channel": channel, "error": exc.detail},
                )
                result = DeliveryResult.failure(exc.detail, "configuration", started=start_time)
            except Exception as exc:
                logger.exception("Channel sender raised", extra={"channel": channel})
                result = DeliveryResult.failure(str(exc) or type(exc).__name__, "exception", started=start_time)

        notification_delivery_duration_seconds.labels(channel=channel).observe(time.time() - start_time)
        if not result.success:
            notification_errors_total.labels(
                channel=channel,
                error_category=result.error_category or "unknown",
            ).inc()
        if result.response_time_ms is None:
            result.response_time_ms = elapsed_ms(start_time)
        return result


_registry: ChannelSenderRegistry | None = None


def get_channel_sender_registry() -> ChannelSenderRegistry:
    """Get the process-wide registry with default senders."""
    global _registry
    if _registry is None:
        _registry = ChannelSenderRegistry.with_default_senders()
    return _registry


def set_channel_sender_registry(registry: ChannelSenderRegistry | None) -> None:
    global _registry
    _registry = registry


__all__ = [
    "ChannelSenderRegistry",
    "get_channel_sender_registry",
    "set_channel_sender_registry",
]
