"""Channel senders: one implementation per delivery medium."""

from __future__ import annotations

from notify_service.features.notifications.channels.base import (
    ChannelSender,
    DeliveryResult,
    RenderedMessage,
)
from notify_service.features.notifications.channels.email import EmailChannelSender
from notify_service.features.notifications.channels.in_app import (
    InAppChannelSender,
    InMemoryRealtimeEmitter,
    RealtimeEmitter,
)
from notify_service.features.notifications.channels.push import PushChannelSender
from notify_service.features.notifications.channels.registry import (
    ChannelSenderRegistry,
    get_channel_sender_registry,
    set_channel_sender_registry,
)
from notify_service.features.notifications.channels.sms import SmsChannelSender
from notify_service.features.notifications.channels.webhook import WebhookChannelSender

__all__ = [
    "ChannelSender",
    "ChannelSenderRegistry",
    "DeliveryResult",
    "EmailChannelSender",
    "InAppChannelSender",
    "InMemoryRealtimeEmitter",
    "PushChannelSender",
    "RealtimeEmitter",
    "RenderedMessage",
    "SmsChannelSender",
    "WebhookChannelSender",
    "get_channel_sender_registry",
    "set_channel_sender_registry",
]
