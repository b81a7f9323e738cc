"""Email channel sender over SMTP (aiosmtplib)."""

from __future__ import annotations

import logging
import ssl
import time
import uuid
from datetime import UTC, datetime
from email.mime.text import MIMEText
from typing import TYPE_CHECKING

import aiosmtplib

from notify_service.core.settings import get_email_settings, get_notification_settings
from notify_service.features.notifications.channels.base import (
    DeliveryResult,
    RenderedMessage,
    elapsed_ms,
)
from notify_service.features.notifications.exceptions import ChannelConfigurationError
from notify_service.features.notifications.models import Channel
from notify_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from notify_service.core.settings import EmailSettings

logger = logging.getLogger(__name__)
_lazy = get_lazy_logger(__name__)


class EmailChannelSender:
    """Sends plain-text email through the configured SMTP relay.

    A connection is opened per send; aiosmtplib does not pool.
    """

    channel = Channel.EMAIL

    def __init__(
        self,
        settings: EmailSettings | None = None,
        *,
        enabled: bool | None = None,
    ) -> None:
        self._settings = settings or get_email_settings()
        self._enabled = get_notification_settings().email_enabled if enabled is None else enabled

    async def send(self, target: str | None, message: RenderedMessage) -> DeliveryResult:
        start_time = time.time()

        if not self._enabled:
            return DeliveryResult.failure("Email delivery disabled", "disabled", started=start_time)
        if not target:
            return DeliveryResult.failure("No email address found for recipient", "validation", started=start_time)
        if not self._settings.is_configured:
            raise ChannelConfigurationError(Channel.EMAIL, "SMTP host or sender address not configured")

        mime_message = self._build_mime_message(target, message)
        tls_context = ssl.create_default_context() if self._settings.use_tls or self._settings.use_ssl else None

        smtp = aiosmtplib.SMTP(
            hostname=self._settings.smtp_host,
            port=self._settings.smtp_port,
            use_tls=self._settings.use_ssl,  # Implicit TLS
            start_tls=self._settings.use_tls,  # STARTTLS
            tls_context=tls_context,
            timeout=self._settings.timeout,
        )

        try:
            async with smtp:
                if self._settings.smtp_username and self._settings.smtp_password:
                    await smtp.login(
                        self._settings.smtp_username,
                        self._settings.smtp_password.get_secret_value(),
                    )
                errors, response = await smtp.send_message(mime_message)
        except aiosmtplib.SMTPRecipientsRefused as exc:
            logger.warning("Email recipient refused", extra={"recipient": target, "error": str(exc)})
            return DeliveryResult.failure(str(exc), "recipient_refused", started=start_time)
        except aiosmtplib.SMTPAuthenticationError as exc:
            logger.error("SMTP authentication failed", extra={"error": str(exc)})
            return DeliveryResult.failure(str(exc), "auth", started=start_time)
        except aiosmtplib.SMTPException as exc:
            logger.warning("SMTP error", extra={"recipient": target, "error": str(exc)})
            return DeliveryResult.failure(str(exc), "smtp_error", started=start_time)
        except OSError as exc:
            logger.warning("SMTP connection failed", extra={"host": self._settings.smtp_host, "error": str(exc)})
            return DeliveryResult.failure(str(exc), "network", started=start_time)

        if errors:
            return DeliveryResult.failure(
                f"Recipient rejected: {errors}",
                "recipient_refused",
                started=start_time,
                response_body=response,
            )

        message_id = mime_message["Message-ID"]
        _lazy.debug(lambda: f"Email {message_id} accepted for {target}")
        return DeliveryResult(
            success=True,
            response_body=response,
            response_time_ms=elapsed_ms(start_time),
            metadata={"message_id": message_id, "recipient": target},
        )

    def _build_mime_message(self, recipient: str, message: RenderedMessage) -> MIMEText:
        mime_msg = MIMEText(message.body, "plain", "utf-8")
        from_email = self._settings.sender_address
        from_name = self._settings.default_from_name
        mime_msg["From"] = f"{from_name} <{from_email}>" if from_name else str(from_email)
        mime_msg["To"] = recipient
        mime_msg["Subject"] = message.subject
        mime_msg["Message-ID"] = f"<{uuid.uuid4()}@{self._settings.smtp_host}>"
        mime_msg["Date"] = datetime.now(UTC).strftime("%a, %d %b %Y %H:%M:%S +0000")
        if message.category:
            mime_msg["X-Notification-Category"] = message.category
        return mime_msg


__all__ = ["EmailChannelSender"]
