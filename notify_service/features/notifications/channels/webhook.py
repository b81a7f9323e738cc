"""Webhook channel sender with Slack and Teams variants."""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from typing import TYPE_CHECKING, Any

from notify_service.core.settings import get_channel_settings
from notify_service.features.notifications.channels.base import DeliveryResult, RenderedMessage, elapsed_ms
from notify_service.features.notifications.channels.http import HttpChannelSender
from notify_service.features.notifications.models import Channel

if TYPE_CHECKING:
    import httpx

    from notify_service.core.settings import ChannelSettings

# Keys in RenderedMessage.metadata that override the configured chat webhooks
SLACK_URL_KEY = "slack_webhook_url"
TEAMS_URL_KEY = "teams_webhook_url"


def generate_signature(secret: str, timestamp: str, payload: str) -> str:
    """HMAC-SHA256 over ``{timestamp}.{payload}``, hex encoded."""
    message = f"{timestamp}.{payload}"
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def slack_payload(message: RenderedMessage) -> dict[str, Any]:
    return {"text": f"*[{message.category}]* {message.subject}\n{message.body}"}


def teams_payload(message: RenderedMessage) -> dict[str, Any]:
    return {"text": f"{message.subject}: {message.body}"}


class WebhookChannelSender(HttpChannelSender):
    """Posts the notification as JSON to every configured webhook.

    Targets, in order:
        1. the generic webhook (resolved target, else ``webhook_default_url``),
           signed with ``X-Webhook-Signature`` when a signing secret is set
        2. Slack incoming webhook, if configured
        3. Teams incoming webhook, if configured

    The delivery succeeds only if every posted endpoint accepted it.
    """

    channel = Channel.WEBHOOK

    def __init__(
        self,
        settings: ChannelSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_channel_settings()
        super().__init__(client=client, timeout_seconds=self._settings.http_timeout_seconds)

    async def send(self, target: str | None, message: RenderedMessage) -> DeliveryResult:
        start_time = time.time()
        posts: list[tuple[str, str, DeliveryResult]] = []

        url = target or self._settings.webhook_default_url
        if url:
            posts.append(("webhook", url, await self._post_generic(url, message)))

        slack_url = message.metadata.get(SLACK_URL_KEY) or self._settings.slack_webhook_url
        if slack_url:
            posts.append(("slack", slack_url, await self._post(slack_url, json=slack_payload(message))))

        teams_url = message.metadata.get(TEAMS_URL_KEY) or self._settings.teams_webhook_url
        if teams_url:
            posts.append(("teams", teams_url, await self._post(teams_url, json=teams_payload(message))))

        if not posts:
            return DeliveryResult.failure("No webhook URL configured", "validation", started=start_time)

        failed = [(kind, result) for kind, _url, result in posts if not result.success]
        metadata: dict[str, str | int | bool] = {kind: result.success for kind, _url, result in posts}
        if failed:
            kind, result = failed[0]
            return DeliveryResult(
                success=False,
                status_code=result.status_code,
                response_body=result.response_body,
                response_time_ms=elapsed_ms(start_time),
                error_message=f"{kind}: {result.error_message}",
                error_category=result.error_category,
                metadata=metadata,
            )

        return DeliveryResult(
            success=True,
            status_code=posts[0][2].status_code,
            response_time_ms=elapsed_ms(start_time),
            metadata=metadata,
        )

    async def _post_generic(self, url: str, message: RenderedMessage) -> DeliveryResult:
        payload = {
            "title": message.subject,
            "message": message.body,
            "category": message.category,
            "event": message.event,
            "notification_ids": list(message.notification_ids),
        }
        payload_str = json.dumps(payload, separators=(",", ":"))
        headers = {
            "Content-Type": "application/json",
            "User-Agent": "notify-service-webhook/1.0",
        }
        if message.event:
            headers["X-Webhook-Event-Type"] = message.event

        if self._settings.webhook_signing_secret:
            timestamp = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
            headers["X-Webhook-Timestamp"] = timestamp
            headers["X-Webhook-Signature"] = generate_signature(
                self._settings.webhook_signing_secret.get_secret_value(),
                timestamp,
                payload_str,
            )

        return await self._post(url, content=payload_str, headers=headers)


__all__ = [
    "SLACK_URL_KEY",
    "TEAMS_URL_KEY",
    "WebhookChannelSender",
    "generate_signature",
    "slack_payload",
    "teams_payload",
]
