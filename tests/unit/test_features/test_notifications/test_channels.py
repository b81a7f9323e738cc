"""Unit tests for the channel senders.

HTTP gateways are exercised through ``httpx.MockTransport``; SMTP is patched.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch
from urllib.parse import parse_qs

import httpx
import pytest

from notify_service.core.settings import ChannelSettings, EmailSettings
from notify_service.features.notifications.channels.base import RenderedMessage
from notify_service.features.notifications.channels.email import EmailChannelSender
from notify_service.features.notifications.channels.in_app import (
    REALTIME_EVENT,
    InAppChannelSender,
    InMemoryRealtimeEmitter,
)
from notify_service.features.notifications.channels.push import PushChannelSender
from notify_service.features.notifications.channels.sms import MAX_SMS_LENGTH, SmsChannelSender, format_sms_body
from notify_service.features.notifications.channels.webhook import (
    SLACK_URL_KEY,
    WebhookChannelSender,
    generate_signature,
)
from notify_service.features.notifications.exceptions import ChannelConfigurationError

MESSAGE = RenderedMessage(
    subject="Work order assignment",
    body='Work order "Replace pump seal" assigned to you.',
    category="assigned",
    event="assigned",
    notification_ids=("n-1",),
)


class Recorder:
    """MockTransport handler that records requests and answers with a fixed status."""

    def __init__(self, status_code: int = 200, body: str = "ok") -> None:
        self.status_code = status_code
        self.body = body
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, text=self.body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def sms_settings(**overrides) -> ChannelSettings:
    values = {
        "sms_api_base_url": "https://sms.test/2010-04-01",
        "sms_account_sid": "AC123",
        "sms_auth_token": "secret",
        "sms_from_number": "+15550000",
    }
    values.update(overrides)
    return ChannelSettings(**values)


# ============================================================================
# SMS
# ============================================================================


@pytest.mark.unit
class TestSmsChannelSender:
    @pytest.mark.asyncio
    async def test_posts_form_to_gateway(self):
        recorder = Recorder(201)
        async with recorder.client() as client:
            result = await SmsChannelSender(sms_settings(), client).send("+15550100", MESSAGE)

        assert result.success is True
        assert result.status_code == 201
        request = recorder.requests[0]
        assert str(request.url) == "https://sms.test/2010-04-01/Accounts/AC123/Messages.json"
        form = parse_qs(request.content.decode())
        assert form["To"] == ["+15550100"]
        assert form["From"] == ["+15550000"]
        assert form["Body"] == [f"{MESSAGE.subject}: {MESSAGE.body}"]
        assert request.headers["Authorization"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_gateway_error_is_failure(self):
        recorder = Recorder(503, "try later")
        async with recorder.client() as client:
            result = await SmsChannelSender(sms_settings(), client).send("+15550100", MESSAGE)

        assert result.success is False
        assert result.status_code == 503

    @pytest.mark.asyncio
    async def test_missing_number_is_validation_failure(self):
        recorder = Recorder()
        async with recorder.client() as client:
            result = await SmsChannelSender(sms_settings(), client).send(None, MESSAGE)

        assert result.success is False
        assert result.error_category == "validation"
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_unconfigured_gateway_raises(self):
        with pytest.raises(ChannelConfigurationError):
            await SmsChannelSender(ChannelSettings(sms_account_sid=None)).send("+15550100", MESSAGE)

    def test_long_body_truncated(self):
        message = RenderedMessage(subject="", body="x" * (MAX_SMS_LENGTH + 50))

        body = format_sms_body(message)

        assert len(body) == MAX_SMS_LENGTH
        assert body.endswith("...")


# ============================================================================
# Push
# ============================================================================


@pytest.mark.unit
class TestPushChannelSender:
    @pytest.mark.asyncio
    async def test_posts_json_with_bearer_key(self):
        recorder = Recorder()
        settings = ChannelSettings(push_gateway_url="https://push.test/send", push_api_key="k-1")
        async with recorder.client() as client:
            result = await PushChannelSender(settings, client).send("tok-123", MESSAGE)

        assert result.success is True
        request = recorder.requests[0]
        assert request.headers["Authorization"] == "Bearer k-1"
        payload = json.loads(request.content)
        assert payload["token"] == "tok-123"
        assert payload["title"] == MESSAGE.subject
        assert payload["data"]["notification_ids"] == ["n-1"]

    @pytest.mark.asyncio
    async def test_missing_token_is_validation_failure(self):
        settings = ChannelSettings(push_gateway_url="https://push.test/send")

        result = await PushChannelSender(settings).send(None, MESSAGE)

        assert result.success is False
        assert result.error_category == "validation"

    @pytest.mark.asyncio
    async def test_unconfigured_gateway_raises(self):
        with pytest.raises(ChannelConfigurationError):
            await PushChannelSender(ChannelSettings(push_gateway_url=None)).send("tok-123", MESSAGE)

    @pytest.mark.asyncio
    async def test_transport_error_is_network_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        settings = ChannelSettings(push_gateway_url="https://push.test/send")
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            result = await PushChannelSender(settings, client).send("tok-123", MESSAGE)

        assert result.success is False
        assert result.error_category == "network"


# ============================================================================
# Webhook
# ============================================================================


@pytest.mark.unit
class TestWebhookChannelSender:
    @pytest.mark.asyncio
    async def test_signed_generic_webhook(self):
        recorder = Recorder()
        settings = ChannelSettings(webhook_signing_secret="whsec")
        async with recorder.client() as client:
            result = await WebhookChannelSender(settings, client).send("https://hooks.test/cmms", MESSAGE)

        assert result.success is True
        request = recorder.requests[0]
        assert request.headers["X-Webhook-Event-Type"] == "assigned"
        timestamp = request.headers["X-Webhook-Timestamp"]
        expected = generate_signature("whsec", timestamp, request.content.decode())
        assert request.headers["X-Webhook-Signature"] == expected
        assert json.loads(request.content)["notification_ids"] == ["n-1"]

    @pytest.mark.asyncio
    async def test_unsigned_without_secret(self):
        recorder = Recorder()
        async with recorder.client() as client:
            await WebhookChannelSender(ChannelSettings(), client).send("https://hooks.test/cmms", MESSAGE)

        assert "X-Webhook-Signature" not in recorder.requests[0].headers

    @pytest.mark.asyncio
    async def test_posts_to_slack_and_teams(self):
        recorder = Recorder()
        settings = ChannelSettings(
            webhook_default_url="https://hooks.test/cmms",
            slack_webhook_url="https://hooks.slack.test/T0",
            teams_webhook_url="https://teams.test/hook",
        )
        async with recorder.client() as client:
            result = await WebhookChannelSender(settings, client).send(None, MESSAGE)

        assert result.success is True
        assert [str(request.url) for request in recorder.requests] == [
            "https://hooks.test/cmms",
            "https://hooks.slack.test/T0",
            "https://teams.test/hook",
        ]
        assert result.metadata == {"webhook": True, "slack": True, "teams": True}
        assert "*[assigned]*" in json.loads(recorder.requests[1].content)["text"]

    @pytest.mark.asyncio
    async def test_slack_override_from_message_metadata(self):
        recorder = Recorder()
        message = RenderedMessage(
            subject="Low stock",
            body="Bearing 6204 has fallen to 2",
            metadata={SLACK_URL_KEY: "https://hooks.slack.test/T1"},
        )
        async with recorder.client() as client:
            await WebhookChannelSender(ChannelSettings(), client).send(None, message)

        assert [str(request.url) for request in recorder.requests] == ["https://hooks.slack.test/T1"]

    @pytest.mark.asyncio
    async def test_any_rejected_post_fails_delivery(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "hooks.slack.test":
                return httpx.Response(500, text="boom")
            return httpx.Response(200)

        settings = ChannelSettings(slack_webhook_url="https://hooks.slack.test/T0")
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            result = await WebhookChannelSender(settings, client).send("https://hooks.test/cmms", MESSAGE)

        assert result.success is False
        assert result.error_message.startswith("slack:")
        assert result.metadata == {"webhook": True, "slack": False}

    @pytest.mark.asyncio
    async def test_no_url_is_validation_failure(self):
        result = await WebhookChannelSender(ChannelSettings()).send(None, MESSAGE)

        assert result.success is False
        assert result.error_category == "validation"


# ============================================================================
# Email
# ============================================================================


def smtp_mock(send_result=({}, "2.0.0 OK")) -> MagicMock:
    smtp = MagicMock()
    smtp.__aenter__.return_value = smtp
    smtp.login = AsyncMock()
    smtp.send_message = AsyncMock(return_value=send_result)
    return smtp


@pytest.mark.unit
class TestEmailChannelSender:
    @pytest.mark.asyncio
    async def test_sends_through_smtp(self):
        settings = EmailSettings(smtp_host="smtp.test", default_from_email="cmms@example.com")
        smtp = smtp_mock()

        with patch("notify_service.features.notifications.channels.email.aiosmtplib.SMTP", return_value=smtp):
            result = await EmailChannelSender(settings, enabled=True).send("tech@example.com", MESSAGE)

        assert result.success is True
        mime = smtp.send_message.await_args.args[0]
        assert mime["To"] == "tech@example.com"
        assert mime["Subject"] == MESSAGE.subject
        assert mime["X-Notification-Category"] == "assigned"
        assert result.metadata["recipient"] == "tech@example.com"

    @pytest.mark.asyncio
    async def test_rejected_recipient_is_failure(self):
        settings = EmailSettings(smtp_host="smtp.test", default_from_email="cmms@example.com")
        smtp = smtp_mock(({"tech@example.com": (550, "no such user")}, "partial"))

        with patch("notify_service.features.notifications.channels.email.aiosmtplib.SMTP", return_value=smtp):
            result = await EmailChannelSender(settings, enabled=True).send("tech@example.com", MESSAGE)

        assert result.success is False
        assert result.error_category == "recipient_refused"

    @pytest.mark.asyncio
    async def test_disabled_flag_fails_without_connecting(self):
        settings = EmailSettings(smtp_host="smtp.test", default_from_email="cmms@example.com")

        with patch("notify_service.features.notifications.channels.email.aiosmtplib.SMTP") as smtp_cls:
            result = await EmailChannelSender(settings, enabled=False).send("tech@example.com", MESSAGE)

        assert result.success is False
        assert result.error_category == "disabled"
        smtp_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_address_is_validation_failure(self):
        settings = EmailSettings(smtp_host="smtp.test", default_from_email="cmms@example.com")

        result = await EmailChannelSender(settings, enabled=True).send(None, MESSAGE)

        assert result.error_category == "validation"

    @pytest.mark.asyncio
    async def test_unconfigured_relay_raises(self):
        with pytest.raises(ChannelConfigurationError):
            await EmailChannelSender(EmailSettings(smtp_host=None), enabled=True).send("tech@example.com", MESSAGE)


# ============================================================================
# In-app
# ============================================================================


@pytest.mark.unit
class TestInAppChannelSender:
    @pytest.mark.asyncio
    async def test_emits_to_user_room(self):
        emitter = InMemoryRealtimeEmitter()

        result = await InAppChannelSender(emitter).send("u-1", MESSAGE)

        assert result.success is True
        room, event, payload = emitter.events[0]
        assert room == "user:u-1"
        assert event == REALTIME_EVENT
        assert payload["title"] == MESSAGE.subject

    @pytest.mark.asyncio
    async def test_group_target_used_as_room(self):
        emitter = InMemoryRealtimeEmitter()

        result = await InAppChannelSender(emitter).send("group:technicians", MESSAGE)

        assert result.metadata == {"room": "group:technicians"}

    @pytest.mark.asyncio
    async def test_missing_recipient_is_failure(self):
        result = await InAppChannelSender().send(None, MESSAGE)

        assert result.success is False
        assert result.error_category == "validation"
