"""End-to-end: quiet hours defer into an hourly digest that a later sweep flushes."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from notify_service.features.notifications import (
    DeliveryState,
    DeliveryStatus,
    get_digest_sweeper,
    get_notification_service,
)
from notify_service.features.notifications.registry import get_subscription_registry
from notify_service.features.notifications.repository import (
    get_delivery_log_repository,
    get_digest_queue_repository,
)
from notify_service.features.notifications.scheduling import ensure_utc
from notify_service.features.notifications.schemas import SubscriptionCreate
from tests.utils import NOW, TENANT

pytestmark = [pytest.mark.e2e, pytest.mark.asyncio]


async def test_hourly_digest_flushes_both_channels(db_session, sender_registry, directory, fake_senders):
    await get_subscription_registry().create(
        db_session,
        SubscriptionCreate(
            tenant_id=TENANT,
            user_id="tech@example.com",
            events=["assigned"],
            channels=["email", "in_app"],
            quiet_hours_start="00:00",
            quiet_hours_end="23:59",
            digest_enabled=True,
            digest_frequency="hourly",
        ),
    )
    await db_session.commit()

    notification, outcome = await get_notification_service().create_notification(
        db_session,
        tenant_id=TENANT,
        recipient_id="tech@example.com",
        category="assigned",
        title="Work order assignment",
        message='Work order "Replace pump seal" assigned to you.',
        now=NOW,
    )

    # Routed into one digest per channel, nothing sent yet
    assert outcome.deferred == 2
    queue = get_digest_queue_repository()
    entries = await queue.list_for_tenant(db_session, TENANT)
    assert sorted(entry.channel for entry in entries) == ["email", "in_app"]
    assert all(ensure_utc(entry.deliver_at) == datetime(2026, 3, 11, 11, 0, tzinfo=UTC) for entry in entries)

    logs = get_delivery_log_repository()
    deferred = await logs.list_for_notification(db_session, notification.id)
    assert [entry.status for entry in deferred] == [DeliveryStatus.DEFERRED, DeliveryStatus.DEFERRED]
    assert notification.delivery_state == DeliveryState.PENDING
    assert all(sender.calls == [] for sender in fake_senders.values())

    report = await get_digest_sweeper().run(db_session, NOW + timedelta(hours=1, minutes=5))

    assert report.sent == 2
    assert len(fake_senders["email"].calls) == 1
    assert len(fake_senders["in_app"].calls) == 1
    entries_after = await logs.list_for_notification(db_session, notification.id)
    sent = [entry for entry in entries_after if entry.status == DeliveryStatus.SENT]
    assert sorted(entry.channel for entry in sent) == ["email", "in_app"]
    assert await queue.list_for_tenant(db_session, TENANT) == []
    assert notification.delivery_state == DeliveryState.SENT
