"""Repositories for the notifications feature.

Claims are atomic conditional UPDATEs: a row is taken only if nobody holds
it or the previous holder's claim has gone stale. ``rowcount == 1`` means
this worker owns the row.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import aliased

from notify_service.core.database.repository import BaseRepository
from notify_service.features.notifications.models import (
    DeliveryLogEntry,
    DeliveryStatus,
    DigestQueueEntry,
    DigestQueueItem,
    Notification,
    NotificationSubscription,
    NotificationTemplate,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession


class NotificationRepository(BaseRepository[Notification]):
    """Repository for Notification model."""

    def __init__(self) -> None:
        super().__init__(Notification)

    async def list_for_tenant(
        self,
        session: AsyncSession,
        tenant_id: str,
        *,
        recipient_id: str | None = None,
        delivery_state: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Notification]:
        """List a tenant's notifications, newest first."""
        stmt = select(Notification).where(Notification.tenant_id == tenant_id)
        if recipient_id is not None:
            stmt = stmt.where(Notification.recipient_id == recipient_id)
        if delivery_state is not None:
            stmt = stmt.where(Notification.delivery_state == delivery_state)
        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc())
        stmt = stmt.limit(limit).offset(offset)

        result = await session.execute(stmt)
        items = result.scalars().all()
        self._lazy.debug(
            lambda: f"db.list_for_tenant({tenant_id=}, {recipient_id=}) -> {len(items)} items"
        )
        return items

    async def get_many(self, session: AsyncSession, ids: Iterable[UUID]) -> Sequence[Notification]:
        """Load notifications by id, oldest first."""
        ids_list = list(ids)
        if not ids_list:
            return []
        stmt = (
            select(Notification)
            .where(Notification.id.in_(ids_list))
            .order_by(Notification.created_at, Notification.id)
        )
        result = await session.execute(stmt)
        return result.scalars().all()


class SubscriptionRepository(BaseRepository[NotificationSubscription]):
    """Repository for NotificationSubscription model.

    Event matching happens in Python: ``events`` is a JSON list on SQLite and
    wildcard entries need the same treatment on every backend.
    """

    def __init__(self) -> None:
        super().__init__(NotificationSubscription)

    async def list_for_tenant(
        self,
        session: AsyncSession,
        tenant_id: str,
        *,
        user_id: str | None = None,
        group: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> Sequence[NotificationSubscription]:
        stmt = select(NotificationSubscription).where(NotificationSubscription.tenant_id == tenant_id)
        if user_id is not None:
            stmt = stmt.where(NotificationSubscription.user_id == user_id)
        if group is not None:
            stmt = stmt.where(NotificationSubscription.group == group)
        stmt = stmt.order_by(NotificationSubscription.created_at, NotificationSubscription.id)
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)

        result = await session.execute(stmt)
        return result.scalars().all()

    async def list_for_event(
        self,
        session: AsyncSession,
        tenant_id: str,
        event: str,
    ) -> list[NotificationSubscription]:
        """Tenant subscriptions interested in ``event``."""
        subscriptions = await self.list_for_tenant(session, tenant_id)
        matched = [sub for sub in subscriptions if sub.matches_event(event)]
        self._lazy.debug(
            lambda: f"db.list_for_event({tenant_id=}, {event=}) -> {len(matched)}/{len(subscriptions)} matched"
        )
        return matched


class TemplateRepository(BaseRepository[NotificationTemplate]):
    """Repository for NotificationTemplate model."""

    def __init__(self) -> None:
        super().__init__(NotificationTemplate)

    async def find(
        self,
        session: AsyncSession,
        tenant_id: str,
        event: str,
        channel: str,
    ) -> NotificationTemplate | None:
        """Template for (tenant, event, channel), if one exists."""
        stmt = select(NotificationTemplate).where(
            and_(
                NotificationTemplate.tenant_id == tenant_id,
                NotificationTemplate.event == event,
                NotificationTemplate.channel == channel,
            ),
        )
        result = await session.execute(stmt)
        template = result.scalar_one_or_none()
        self._lazy.debug(
            lambda: f"db.find_template({tenant_id=}, {event=}, {channel=}) -> {'found' if template else 'not found'}"
        )
        return template

    async def list_for_tenant(
        self,
        session: AsyncSession,
        tenant_id: str,
        *,
        event: str | None = None,
    ) -> Sequence[NotificationTemplate]:
        stmt = select(NotificationTemplate).where(NotificationTemplate.tenant_id == tenant_id)
        if event is not None:
            stmt = stmt.where(NotificationTemplate.event == event)
        stmt = stmt.order_by(NotificationTemplate.event, NotificationTemplate.channel)
        result = await session.execute(stmt)
        return result.scalars().all()


def _claimable(model: Any, stale_before: datetime) -> Any:
    return or_(model.claim_token.is_(None), model.claimed_at < stale_before)


class DigestQueueRepository(BaseRepository[DigestQueueEntry]):
    """Repository for digest queue entries and their items."""

    def __init__(self) -> None:
        super().__init__(DigestQueueEntry)

    async def get_open(
        self,
        session: AsyncSession,
        subscription_id: UUID,
        channel: str,
    ) -> DigestQueueEntry | None:
        """The open entry for (subscription, channel), if any."""
        stmt = select(DigestQueueEntry).where(
            DigestQueueEntry.subscription_id == subscription_id,
            DigestQueueEntry.channel == channel,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_due_ids(
        self,
        session: AsyncSession,
        now: datetime,
        stale_before: datetime,
        limit: int,
    ) -> list[UUID]:
        """Ids of entries due at ``now`` that nobody currently holds."""
        stmt = (
            select(DigestQueueEntry.id)
            .where(
                DigestQueueEntry.deliver_at <= now,
                _claimable(DigestQueueEntry, stale_before),
            )
            .order_by(DigestQueueEntry.deliver_at, DigestQueueEntry.id)
            .limit(limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def list_for_tenant(self, session: AsyncSession, tenant_id: str) -> Sequence[DigestQueueEntry]:
        stmt = (
            select(DigestQueueEntry)
            .where(DigestQueueEntry.tenant_id == tenant_id)
            .order_by(DigestQueueEntry.deliver_at)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def claim(
        self,
        session: AsyncSession,
        entry_id: UUID,
        token: str,
        now: datetime,
        stale_before: datetime,
    ) -> bool:
        """Atomically take ``entry_id`` if it is still due and unclaimed."""
        stmt = (
            update(DigestQueueEntry)
            .where(
                DigestQueueEntry.id == entry_id,
                DigestQueueEntry.deliver_at <= now,
                _claimable(DigestQueueEntry, stale_before),
            )
            .values(claim_token=token, claimed_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        claimed = (result.rowcount or 0) == 1
        self._lazy.debug(lambda: f"db.claim_digest({entry_id}) -> {claimed}")
        return claimed

    async def add_item(self, session: AsyncSession, entry_id: UUID, notification_id: UUID) -> DigestQueueItem:
        item = DigestQueueItem(entry_id=entry_id, notification_id=notification_id)
        session.add(item)
        await session.flush()
        return item

    async def item_notification_ids(self, session: AsyncSession, entry_id: UUID) -> list[UUID]:
        """Notification ids accumulated in an entry, in arrival order."""
        stmt = (
            select(DigestQueueItem.notification_id)
            .where(DigestQueueItem.entry_id == entry_id)
            .order_by(DigestQueueItem.created_at, DigestQueueItem.id)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def remove_items(
        self,
        session: AsyncSession,
        entry_id: UUID,
        notification_ids: Iterable[UUID],
    ) -> int:
        ids_list = list(notification_ids)
        if not ids_list:
            return 0
        stmt = delete(DigestQueueItem).where(
            DigestQueueItem.entry_id == entry_id,
            DigestQueueItem.notification_id.in_(ids_list),
        )
        result = await session.execute(stmt)
        return result.rowcount or 0

    async def count_items(self, session: AsyncSession, entry_id: UUID) -> int:
        stmt = select(func.count()).select_from(DigestQueueItem).where(DigestQueueItem.entry_id == entry_id)
        result = await session.execute(stmt)
        return int(result.scalar_one())

    async def delete_entry(self, session: AsyncSession, entry_id: UUID) -> None:
        """Delete an entry together with its items."""
        await session.execute(delete(DigestQueueItem).where(DigestQueueItem.entry_id == entry_id))
        await session.execute(
            delete(DigestQueueEntry)
            .where(DigestQueueEntry.id == entry_id)
            .execution_options(synchronize_session=False),
        )
        self._lazy.debug(lambda: f"db.delete_digest_entry({entry_id})")

    async def delete_if_empty(self, session: AsyncSession, entry_id: UUID) -> bool:
        """Delete an entry only if it holds no items.

        Returns False when items remain, including ones a dispatcher appended
        in a transaction that has not committed yet; the item's foreign key
        then rejects the delete and the entry is kept.
        """
        has_items = select(DigestQueueItem.id).where(DigestQueueItem.entry_id == entry_id).exists()
        stmt = (
            delete(DigestQueueEntry)
            .where(DigestQueueEntry.id == entry_id, ~has_items)
            .execution_options(synchronize_session=False)
        )
        try:
            async with session.begin_nested():
                result = await session.execute(stmt)
        except IntegrityError:
            return False
        deleted = (result.rowcount or 0) == 1
        self._lazy.debug(lambda: f"db.delete_digest_entry_if_empty({entry_id}) -> {deleted}")
        return deleted

    async def release(
        self,
        session: AsyncSession,
        entry_id: UUID,
        token: str,
        **values: Any,
    ) -> bool:
        """Drop this worker's claim, applying ``values`` in the same UPDATE."""
        stmt = (
            update(DigestQueueEntry)
            .where(DigestQueueEntry.id == entry_id, DigestQueueEntry.claim_token == token)
            .values(claim_token=None, claimed_at=None, **values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return (result.rowcount or 0) == 1


class DeliveryLogRepository(BaseRepository[DeliveryLogEntry]):
    """Repository for the append-only delivery log."""

    def __init__(self) -> None:
        super().__init__(DeliveryLogEntry)

    async def list_for_notification(
        self,
        session: AsyncSession,
        notification_id: UUID,
    ) -> Sequence[DeliveryLogEntry]:
        """All entries for a notification in write order."""
        stmt = (
            select(DeliveryLogEntry)
            .where(DeliveryLogEntry.notification_id == notification_id)
            .order_by(DeliveryLogEntry.created_at, DeliveryLogEntry.attempt, DeliveryLogEntry.id)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def list_due_retry_ids(
        self,
        session: AsyncSession,
        now: datetime,
        max_attempts: int,
        stale_before: datetime,
        limit: int,
    ) -> list[UUID]:
        """Failed entries whose retry is due and has not been written yet."""
        successor = aliased(DeliveryLogEntry)
        has_successor = (
            select(successor.id)
            .where(
                successor.notification_id == DeliveryLogEntry.notification_id,
                successor.subscription_id.is_not_distinct_from(DeliveryLogEntry.subscription_id),
                successor.channel == DeliveryLogEntry.channel,
                successor.attempt == DeliveryLogEntry.attempt + 1,
            )
            .exists()
        )
        stmt = (
            select(DeliveryLogEntry.id)
            .where(
                DeliveryLogEntry.status == DeliveryStatus.FAILED,
                DeliveryLogEntry.attempt < max_attempts,
                DeliveryLogEntry.next_attempt_at.is_not(None),
                DeliveryLogEntry.next_attempt_at <= now,
                _claimable(DeliveryLogEntry, stale_before),
                ~has_successor,
            )
            .order_by(DeliveryLogEntry.next_attempt_at, DeliveryLogEntry.id)
            .limit(limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def claim(
        self,
        session: AsyncSession,
        entry_id: UUID,
        token: str,
        now: datetime,
        stale_before: datetime,
    ) -> bool:
        """Atomically take a failed entry for retry."""
        stmt = (
            update(DeliveryLogEntry)
            .where(
                DeliveryLogEntry.id == entry_id,
                DeliveryLogEntry.status == DeliveryStatus.FAILED,
                _claimable(DeliveryLogEntry, stale_before),
            )
            .values(claim_token=token, claimed_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        claimed = (result.rowcount or 0) == 1
        self._lazy.debug(lambda: f"db.claim_retry({entry_id}) -> {claimed}")
        return claimed

    async def has_successor(self, session: AsyncSession, entry: DeliveryLogEntry) -> bool:
        stmt = select(
            select(DeliveryLogEntry.id)
            .where(
                DeliveryLogEntry.notification_id == entry.notification_id,
                DeliveryLogEntry.subscription_id.is_not_distinct_from(entry.subscription_id),
                DeliveryLogEntry.channel == entry.channel,
                DeliveryLogEntry.attempt == entry.attempt + 1,
            )
            .exists(),
        )
        result = await session.execute(stmt)
        return bool(result.scalar())

    async def list_pair(
        self,
        session: AsyncSession,
        notification_id: UUID,
        subscription_id: UUID | None,
        channel: str,
    ) -> Sequence[DeliveryLogEntry]:
        """Every attempt for one (notification, subscription, channel)."""
        stmt = (
            select(DeliveryLogEntry)
            .where(
                DeliveryLogEntry.notification_id == notification_id,
                DeliveryLogEntry.subscription_id.is_not_distinct_from(subscription_id),
                DeliveryLogEntry.channel == channel,
            )
            .order_by(DeliveryLogEntry.attempt, DeliveryLogEntry.created_at)
        )
        result = await session.execute(stmt)
        return result.scalars().all()


# Singleton factories
_notification_repository: NotificationRepository | None = None
_subscription_repository: SubscriptionRepository | None = None
_template_repository: TemplateRepository | None = None
_digest_queue_repository: DigestQueueRepository | None = None
_delivery_log_repository: DeliveryLogRepository | None = None


def get_notification_repository() -> NotificationRepository:
    global _notification_repository
    if _notification_repository is None:
        _notification_repository = NotificationRepository()
    return _notification_repository


def get_subscription_repository() -> SubscriptionRepository:
    global _subscription_repository
    if _subscription_repository is None:
        _subscription_repository = SubscriptionRepository()
    return _subscription_repository


def get_template_repository() -> TemplateRepository:
    global _template_repository
    if _template_repository is None:
        _template_repository = TemplateRepository()
    return _template_repository


def get_digest_queue_repository() -> DigestQueueRepository:
    global _digest_queue_repository
    if _digest_queue_repository is None:
        _digest_queue_repository = DigestQueueRepository()
    return _digest_queue_repository


def get_delivery_log_repository() -> DeliveryLogRepository:
    global _delivery_log_repository
    if _delivery_log_repository is None:
        _delivery_log_repository = DeliveryLogRepository()
    return _delivery_log_repository


__all__ = [
    "DeliveryLogRepository",
    "DigestQueueRepository",
    "NotificationRepository",
    "SubscriptionRepository",
    "TemplateRepository",
    "get_delivery_log_repository",
    "get_digest_queue_repository",
    "get_notification_repository",
    "get_subscription_repository",
    "get_template_repository",
]
