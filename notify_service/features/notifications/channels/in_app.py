"""In-app channel sender.

The notification row itself is what the UI lists; delivery here means
pushing a realtime event to the recipient's open sessions. The emitter is
pluggable (socket server, pub/sub); the default keeps events in memory.
"""

from __future__ import annotations

import time
from collections import deque
from typing import Any, Protocol

from notify_service.features.notifications.channels.base import DeliveryResult, RenderedMessage, elapsed_ms
from notify_service.features.notifications.models import Channel
from notify_service.infra.logging import get_lazy_logger

_lazy = get_lazy_logger(__name__)

REALTIME_EVENT = "notification"


class RealtimeEmitter(Protocol):
    async def emit(self, room: str, event: str, payload: dict[str, Any]) -> None: ...


class InMemoryRealtimeEmitter:
    """Keeps the most recent emitted events; useful for tests and single-node dev."""

    def __init__(self, max_events: int = 1000) -> None:
        self.events: deque[tuple[str, str, dict[str, Any]]] = deque(maxlen=max_events)

    async def emit(self, room: str, event: str, payload: dict[str, Any]) -> None:
        self.events.append((room, event, payload))


class InAppChannelSender:
    """Emits the notification to the ``user:{id}`` (or ``group:{name}``) realtime room."""

    channel = Channel.IN_APP

    def __init__(self, emitter: RealtimeEmitter | None = None) -> None:
        self.emitter = emitter or InMemoryRealtimeEmitter()

    async def send(self, target: str | None, message: RenderedMessage) -> DeliveryResult:
        start_time = time.time()
        if not target:
            return DeliveryResult.failure("No in-app recipient", "validation", started=start_time)

        room = target if target.startswith("group:") else f"user:{target}"
        await self.emitter.emit(
            room,
            REALTIME_EVENT,
            {
                "title": message.subject,
                "message": message.body,
                "category": message.category,
                "notification_ids": list(message.notification_ids),
            },
        )
        _lazy.debug(lambda: f"In-app event emitted to {room}")
        return DeliveryResult(
            success=True,
            response_time_ms=elapsed_ms(start_time),
            metadata={"room": room},
        )


__all__ = [
    "REALTIME_EVENT",
    "InAppChannelSender",
    "InMemoryRealtimeEmitter",
    "RealtimeEmitter",
]
