"""Transport settings for the SMS, push and webhook channel senders.

Environment variables use CHANNEL_ prefix.
Example: CHANNEL_SMS_ACCOUNT_SID=AC123, CHANNEL_SLACK_WEBHOOK_URL=https://hooks.slack.com/...
"""

from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ChannelSettings(BaseSettings):
    """Gateway endpoints and credentials for non-email channels."""

    # SMS gateway (Twilio-compatible REST API)
    sms_api_base_url: str = Field(
        default="https://api.twilio.com/2010-04-01",
        description="Base URL of the SMS REST gateway",
    )
    sms_account_sid: str | None = Field(default=None, description="SMS gateway account SID")
    sms_auth_token: SecretStr | None = Field(default=None, description="SMS gateway auth token")
    sms_from_number: str | None = Field(default=None, description="Sender phone number (E.164)")

    # Push gateway
    push_gateway_url: str | None = Field(
        default=None,
        description="HTTP endpoint accepting push payloads ({token, title, body})",
    )
    push_api_key: SecretStr | None = Field(default=None, description="Bearer key for the push gateway")

    # Webhooks
    webhook_signing_secret: SecretStr | None = Field(
        default=None,
        description="HMAC-SHA256 secret used to sign outbound webhook bodies",
    )
    webhook_default_url: str | None = Field(
        default=None,
        description="Generic webhook endpoint used when a subscription names none",
    )
    slack_webhook_url: str | None = Field(
        default=None,
        description="Slack incoming webhook posted to alongside the generic webhook",
    )
    teams_webhook_url: str | None = Field(
        default=None,
        description="Microsoft Teams incoming webhook posted to alongside the generic webhook",
    )

    http_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        description="Timeout for gateway HTTP requests (seconds)",
    )

    model_config = SettingsConfigDict(
        env_prefix="CHANNEL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    @property
    def sms_configured(self) -> bool:
        """Whether all SMS gateway credentials are present."""
        return bool(self.sms_account_sid and self.sms_auth_token and self.sms_from_number)


__all__ = ["ChannelSettings"]
