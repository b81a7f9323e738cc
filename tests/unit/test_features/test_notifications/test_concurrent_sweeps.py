"""Concurrent sweepers against one file-backed SQLite database.

Two sweepers with their own connections process the same due work; the
claim must ensure each due item is attempted exactly once. A dispatcher
appending to a digest that a sweeper flushes away underneath it must land
the notification in a fresh digest.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notify_service.features.notifications.channels.registry import ChannelSenderRegistry
from notify_service.features.notifications.digest import DigestSweeper
from notify_service.features.notifications.dispatcher import DeliveryDispatcher
from notify_service.features.notifications.models import DeliveryLogEntry, DeliveryStatus
from notify_service.features.notifications.registry import SubscriptionRegistry
from notify_service.features.notifications.repository import DigestQueueRepository, get_digest_queue_repository
from notify_service.features.notifications.retry import RetrySweeper
from tests.utils import NOW, TENANT, FakeSender, make_notification, make_subscription

ITEMS = 6


@pytest.fixture
def file_sessions(file_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


async def run_pair(file_sessions, sweepers, now):
    async with file_sessions() as first, file_sessions() as second:
        return await asyncio.gather(sweepers[0].run(first, now), sweepers[1].run(second, now))


@pytest.mark.unit
@pytest.mark.asyncio
async def test_each_due_retry_attempted_once(file_sessions, dispatcher, composer, notify_settings, fake_senders):
    fake_senders["email"].default = False
    async with file_sessions() as session:
        subscription = await make_subscription(session)
        for index in range(ITEMS):
            notification = await make_notification(session, title=f"Assignment {index}")
            await dispatcher.dispatch(session, notification, [subscription], now=NOW)
        await session.commit()

    email = FakeSender("email", delay=0.01)
    senders = ChannelSenderRegistry({"email": email}, timeout_seconds=5.0)
    sweepers = [RetrySweeper(senders=senders, composer=composer, settings=notify_settings) for _ in range(2)]

    reports = await run_pair(file_sessions, sweepers, NOW + timedelta(seconds=61))

    assert len(email.calls) == ITEMS
    assert sum(report.sent for report in reports) == ITEMS
    assert sum(report.claimed for report in reports) == ITEMS
    assert Counter(message.notification_ids for _, message in email.calls).most_common(1)[0][1] == 1

    async with file_sessions() as session:
        second_attempts = (
            await session.execute(
                DeliveryLogEntry.__table__.select().where(DeliveryLogEntry.attempt == 2),
            )
        ).all()
    assert len(second_attempts) == ITEMS
    assert all(row.status == DeliveryStatus.SENT for row in second_attempts)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_each_due_digest_flushed_once(file_sessions, dispatcher, composer, notify_settings):
    async with file_sessions() as session:
        for index in range(ITEMS):
            subscription = await make_subscription(
                session,
                user_id=f"tech-{index}@example.com",
                digest_enabled=True,
                quiet_hours_start="00:00",
                quiet_hours_end="23:59",
            )
            for _ in range(2):
                notification = await make_notification(session, recipient_id=subscription.user_id)
                await dispatcher.dispatch(session, notification, [subscription], now=NOW)
        await session.commit()

    email = FakeSender("email", delay=0.01)
    senders = ChannelSenderRegistry({"email": email}, timeout_seconds=5.0)
    sweepers = [DigestSweeper(senders=senders, composer=composer, settings=notify_settings) for _ in range(2)]

    reports = await run_pair(file_sessions, sweepers, NOW + timedelta(hours=2))

    assert len(email.calls) == ITEMS
    assert sorted(target for target, _ in email.calls) == sorted(f"tech-{i}@example.com" for i in range(ITEMS))
    assert sum(report.sent for report in reports) == ITEMS
    assert all(len(message.notification_ids) == 2 for _, message in email.calls)

    async with file_sessions() as session:
        assert await get_digest_queue_repository().list_for_tenant(session, TENANT) == []


class FlushAfterRead(DigestQueueRepository):
    """Runs ``flush`` once, right after the open entry has been read."""

    def __init__(self, flush) -> None:
        super().__init__()
        self._flush = flush

    async def get_open(self, session, subscription_id, channel):
        entry = await super().get_open(session, subscription_id, channel)
        if entry is not None and self._flush is not None:
            flush, self._flush = self._flush, None
            await flush()
        return entry


@pytest.mark.unit
@pytest.mark.asyncio
async def test_append_during_flush_reopens_digest(
    file_sessions, senders, directory, composer, notify_settings, fake_senders
):
    flush_at = NOW + timedelta(hours=1, minutes=5)
    sweeper = DigestSweeper(senders=senders, composer=composer, settings=notify_settings)
    flushed = []

    async def flush():
        async with file_sessions() as other:
            flushed.append(await sweeper.run(other, flush_at))

    dispatcher = DeliveryDispatcher(
        senders=senders,
        registry=SubscriptionRegistry(directory=directory),
        composer=composer,
        digest_queue=FlushAfterRead(flush),
        settings=notify_settings,
    )
    queue = get_digest_queue_repository()

    async with file_sessions() as session:
        subscription = await make_subscription(
            session,
            digest_enabled=True,
            quiet_hours_start="00:00",
            quiet_hours_end="23:59",
        )
        first = await make_notification(session, title="Assignment 1")
        outcome = await dispatcher.dispatch(session, first, [subscription], now=NOW)
        await session.commit()
        (flushed_entry_id,) = outcome.digest_entry_ids

        second = await make_notification(session, title="Assignment 2")
        await session.commit()
        outcome = await dispatcher.dispatch(session, second, [subscription], now=flush_at)
        await session.commit()

    assert flushed[0].sent == 1
    assert outcome.deferred == 1
    (reopened_id,) = outcome.digest_entry_ids
    assert reopened_id != flushed_entry_id

    async with file_sessions() as session:
        (entry,) = await queue.list_for_tenant(session, TENANT)
        assert entry.id == reopened_id
        assert await queue.item_notification_ids(session, entry.id) == [second.id]

        report = await sweeper.run(session, flush_at + timedelta(hours=1))

    assert report.sent == 1
    first_send, second_send = fake_senders["email"].calls
    assert list(first_send[1].notification_ids) == [str(first.id)]
    assert list(second_send[1].notification_ids) == [str(second.id)]
