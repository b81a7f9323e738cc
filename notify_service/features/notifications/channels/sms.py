"""SMS channel sender for Twilio-compatible REST gateways."""

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

# Gateways reject longer bodies
MAX_SMS_LENGTH = 1600


def format_sms_body(message: RenderedMessage) -> str:
    text = f"{message.subject}: {message.body}" if message.subject else message.body
    if len(text) > MAX_SMS_LENGTH:
        text = text[: MAX_SMS_LENGTH - 3] + "..."
    return text


class SmsChannelSender(HttpChannelSender):
    """Posts ``To``/``From``/``Body`` to ``{base}/Accounts/{sid}/Messages.json``."""

    channel = Channel.SMS

    def __init__(
        self,
        settings: ChannelSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_channel_settings()
        super().__init__(client=client, timeout_seconds=self._settings.http_timeout_seconds)

    async def send(self, target: str | None, message: RenderedMessage) -> DeliveryResult:
        if not self._settings.sms_configured:
            raise ChannelConfigurationError(Channel.SMS, "SMS gateway credentials not configured")
        if not target:
            return DeliveryResult.failure("No phone number found for recipient", "validation")

        url = f"{self._settings.sms_api_base_url.rstrip('/')}/Accounts/{self._settings.sms_account_sid}/Messages.json"
        auth_token = self._settings.sms_auth_token.get_secret_value() if self._settings.sms_auth_token else ""
        result = await self._post(
            url,
            data={
                "To": target,
                "From": self._settings.sms_from_number,
                "Body": format_sms_body(message),
            },
            auth=(self._settings.sms_account_sid or "", auth_token),
        )
        result.metadata = {"to": target}
        return result


__all__ = ["MAX_SMS_LENGTH", "SmsChannelSender", "format_sms_body"]
