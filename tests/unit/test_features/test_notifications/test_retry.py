"""Unit tests for the retry sweeper."""

from __future__ import annotations

from datetime import timedelta

import pytest

from notify_service.features.notifications.models import DeliveryState, DeliveryStatus
from notify_service.features.notifications.repository import get_delivery_log_repository
from notify_service.features.notifications.scheduling import ensure_utc
from tests.utils import NOW, make_notification, make_subscription


async def failed_dispatch(session, dispatcher, **subscription_overrides):
    subscription = await make_subscription(session, **subscription_overrides)
    notification = await make_notification(session)
    await dispatcher.dispatch(session, notification, now=NOW)
    await session.commit()
    return subscription, notification


async def attempts_for(session, notification, subscription_id, channel="email"):
    return list(
        await get_delivery_log_repository().list_pair(session, notification.id, subscription_id, channel),
    )


@pytest.mark.unit
class TestRetrySweep:
    @pytest.mark.asyncio
    async def test_retry_succeeds_on_second_attempt(self, db_session, dispatcher, retry_sweeper, fake_senders):
        fake_senders["email"].outcomes.append(False)
        subscription, notification = await failed_dispatch(db_session, dispatcher)

        report = await retry_sweeper.run(db_session, NOW + timedelta(seconds=61))

        assert (report.claimed, report.sent, report.failed) == (1, 1, 0)
        entries = await attempts_for(db_session, notification, subscription.id)
        assert [(entry.attempt, entry.status) for entry in entries] == [
            (1, DeliveryStatus.FAILED),
            (2, DeliveryStatus.SENT),
        ]
        assert entries[1].delivery_metadata["retry_of"] == str(entries[0].id)
        assert notification.delivery_state == DeliveryState.SENT

    @pytest.mark.asyncio
    async def test_not_retried_before_backoff_elapses(self, db_session, dispatcher, retry_sweeper, fake_senders):
        fake_senders["email"].outcomes.append(False)
        await failed_dispatch(db_session, dispatcher)

        report = await retry_sweeper.run(db_session, NOW + timedelta(seconds=59))

        assert report.claimed == 0
        assert len(fake_senders["email"].calls) == 1

    @pytest.mark.asyncio
    async def test_stops_at_exactly_max_attempts(
        self, db_session, dispatcher, retry_sweeper, fake_senders, notify_settings
    ):
        fake_senders["email"].default = False
        subscription, notification = await failed_dispatch(db_session, dispatcher)

        now = NOW
        for _ in range(notify_settings.max_attempts + 2):
            now += timedelta(hours=1)
            await retry_sweeper.run(db_session, now)

        entries = await attempts_for(db_session, notification, subscription.id)
        assert [entry.attempt for entry in entries] == list(range(1, notify_settings.max_attempts + 1))
        assert all(entry.status == DeliveryStatus.FAILED for entry in entries)
        assert entries[-1].next_attempt_at is None
        assert all(entry.next_attempt_at is not None for entry in entries[:-1])
        assert len(fake_senders["email"].calls) == notify_settings.max_attempts
        assert notification.delivery_state == DeliveryState.FAILED

    @pytest.mark.asyncio
    async def test_backoff_grows_between_attempts(self, db_session, dispatcher, retry_sweeper, fake_senders):
        fake_senders["email"].default = False
        subscription, notification = await failed_dispatch(db_session, dispatcher)

        second_run = NOW + timedelta(seconds=61)
        await retry_sweeper.run(db_session, second_run)

        first, second = await attempts_for(db_session, notification, subscription.id)
        assert ensure_utc(first.next_attempt_at) == NOW + timedelta(seconds=60)
        assert ensure_utc(second.next_attempt_at) == second_run + timedelta(seconds=120)

    @pytest.mark.asyncio
    async def test_rerun_at_same_instant_does_not_resend(self, db_session, dispatcher, retry_sweeper, fake_senders):
        fake_senders["email"].default = False
        await failed_dispatch(db_session, dispatcher)
        now = NOW + timedelta(seconds=61)

        await retry_sweeper.run(db_session, now)
        report = await retry_sweeper.run(db_session, now)

        assert report.claimed == 0
        assert len(fake_senders["email"].calls) == 2

    @pytest.mark.asyncio
    async def test_deleted_subscription_fails_terminally(self, db_session, dispatcher, retry_sweeper, fake_senders):
        fake_senders["email"].default = False
        subscription, notification = await failed_dispatch(db_session, dispatcher)
        subscription_id = subscription.id
        await db_session.delete(subscription)
        await db_session.commit()

        report = await retry_sweeper.run(db_session, NOW + timedelta(seconds=61))

        assert report.failed == 1
        assert len(fake_senders["email"].calls) == 1
        entries = await attempts_for(db_session, notification, subscription_id)
        assert entries[-1].attempt == 2
        assert entries[-1].error_category == "subscription_deleted"
        assert entries[-1].next_attempt_at is None
        assert notification.delivery_state == DeliveryState.FAILED

    @pytest.mark.asyncio
    async def test_fallback_delivery_is_retried(self, db_session, dispatcher, retry_sweeper, fake_senders):
        fake_senders["in_app"].outcomes.append(False)
        notification = await make_notification(db_session, recipient_id="u-9")
        await dispatcher.dispatch(db_session, notification, now=NOW)
        await db_session.commit()

        report = await retry_sweeper.run(db_session, NOW + timedelta(seconds=61))

        assert report.sent == 1
        entries = await attempts_for(db_session, notification, None, "in_app")
        assert [entry.attempt for entry in entries] == [1, 2]
        assert fake_senders["in_app"].calls[-1][0] == "u-9"
