"""Shared HTTP plumbing for gateway-backed channel senders."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from notify_service.core.settings import get_channel_settings
from notify_service.features.notifications.channels.base import DeliveryResult, elapsed_ms
from notify_service.infra.logging import get_lazy_logger

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

# Upper bound on stored response bodies
MAX_RESPONSE_BODY = 5000


class HttpChannelSender:
    """Base class for senders that POST to an HTTP endpoint.

    Pass ``client`` to share a connection pool or to inject an
    ``httpx.MockTransport`` in tests; otherwise a client is opened per call.
    """

    channel: str = ""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._client = client
        self.timeout_seconds = timeout_seconds or get_channel_settings().http_timeout_seconds

    async def _post(self, url: str, **kwargs: Any) -> DeliveryResult:
        """POST and translate the outcome into a DeliveryResult.

        Non-2xx responses, timeouts and transport errors become failures.
        """
        start_time = time.time()
        lazy_logger.debug(lambda: f"{self.channel}.post: url={url}")

        try:
            if self._client is not None:
                response = await self._client.post(url, timeout=self.timeout_seconds, **kwargs)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(url, timeout=self.timeout_seconds, **kwargs)
        except httpx.TimeoutException:
            logger.warning(
                "Gateway request timed out",
                extra={"channel": self.channel, "timeout_seconds": self.timeout_seconds},
            )
            return DeliveryResult.failure(
                f"Request timeout after {self.timeout_seconds}s",
                "timeout",
                started=start_time,
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "Gateway request failed",
                extra={"channel": self.channel, "error": str(exc)},
            )
            return DeliveryResult.failure(str(exc) or type(exc).__name__, "network", started=start_time)

        response_body = response.text[:MAX_RESPONSE_BODY] if response.text else None
        if response.is_success:
            return DeliveryResult(
                success=True,
                status_code=response.status_code,
                response_body=response_body,
                response_time_ms=elapsed_ms(start_time),
            )

        logger.warning(
            "Gateway returned non-2xx status",
            extra={"channel": self.channel, "status_code": response.status_code},
        )
        return DeliveryResult.failure(
            f"HTTP {response.status_code}",
            "http_error",
            started=start_time,
            status_code=response.status_code,
            response_body=response_body,
        )


__all__ = ["MAX_RESPONSE_BODY", "HttpChannelSender"]
