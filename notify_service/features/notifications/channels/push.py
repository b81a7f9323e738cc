"""Push channel sender posting to an HTTP push gateway."""

from __future__ import annotations

from typing import TYPE_CHECKING

from notify_service.core.settings import get_channel_settings
from notify_service.features.notifications.channels.base import DeliveryResult, RenderedMessage
from notify_service.features.notifications.channels.http import HttpChannelSender
from notify_service.features.notifications.exceptions import ChannelConfigurationError
from notify_service.features.notifications.models import Channel

if TYPE_CHECKING:
    import httpx

    from notify_service.core.settings import ChannelSettings


class PushChannelSender(HttpChannelSender):
    """Sends ``{token, title, body, data}`` to the configured gateway.

    The target is the device push token registered for the recipient.
    """

    channel = Channel.PUSH

    def __init__(
        self,
        settings: ChannelSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_channel_settings()
        super().__init__(client=client, timeout_seconds=self._settings.http_timeout_seconds)

    async def send(self, target: str | None, message: RenderedMessage) -> DeliveryResult:
        if not target:
            return DeliveryResult.failure("Missing push token", "validation")
        if not self._settings.push_gateway_url:
            raise ChannelConfigurationError(Channel.PUSH, "Push gateway URL not configured")

        headers = {}
        if self._settings.push_api_key:
            headers["Authorization"] = f"Bearer {self._settings.push_api_key.get_secret_value()}"

        return await self._post(
            self._settings.push_gateway_url,
            json={
                "token": target,
                "title": message.subject,
                "body": message.body,
                "data": {
                    "category": message.category,
                    "notification_ids": list(message.notification_ids),
                },
            },
            headers=headers,
        )


__all__ = ["PushChannelSender"]
