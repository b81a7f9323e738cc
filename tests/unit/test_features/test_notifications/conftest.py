"""Fixtures wiring the delivery engine to fake senders and the test database."""

from __future__ import annotations

import pytest

from notify_service.core.settings import NotificationSettings
from notify_service.features.notifications.channels.registry import ChannelSenderRegistry
from notify_service.features.notifications.composer import MessageComposer
from notify_service.features.notifications.digest import DigestSweeper
from notify_service.features.notifications.dispatcher import DeliveryDispatcher
from notify_service.features.notifications.registry import SubscriptionRegistry
from notify_service.features.notifications.retry import RetrySweeper
from notify_service.features.notifications.service import NotificationService


@pytest.fixture
def notify_settings() -> NotificationSettings:
    """Three attempts; retry delays of 60s, 120s and 240s."""
    return NotificationSettings(
        max_attempts=3,
        backoff_base_seconds=30,
        backoff_max_seconds=3600,
        fallback_channels=["in_app"],
        sweep_batch_size=50,
    )


@pytest.fixture
def senders(fake_senders) -> ChannelSenderRegistry:
    return ChannelSenderRegistry(fake_senders, timeout_seconds=1.0)


@pytest.fixture
def composer(directory) -> MessageComposer:
    return MessageComposer(directory=directory)


@pytest.fixture
def dispatcher(senders, directory, composer, notify_settings) -> DeliveryDispatcher:
    return DeliveryDispatcher(
        senders=senders,
        registry=SubscriptionRegistry(directory=directory),
        composer=composer,
        settings=notify_settings,
    )


@pytest.fixture
def notification_service(dispatcher) -> NotificationService:
    return NotificationService(dispatcher=dispatcher)


@pytest.fixture
def retry_sweeper(senders, composer, notify_settings) -> RetrySweeper:
    return RetrySweeper(senders=senders, composer=composer, settings=notify_settings)


@pytest.fixture
def digest_sweeper(senders, composer, notify_settings) -> DigestSweeper:
    return DigestSweeper(senders=senders, composer=composer, settings=notify_settings)
