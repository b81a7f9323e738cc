"""Subscription registry: who is interested in which events."""

from __future__ import annotations

from typing import TYPE_CHECKING

from notify_service.core.services import BaseService
from notify_service.features.notifications.exceptions import (
    InvalidSubscriptionError,
    SubscriptionNotFoundError,
)
from notify_service.features.notifications.models import NotificationSubscription
from notify_service.features.notifications.recipients import get_recipient_directory
from notify_service.features.notifications.repository import get_subscription_repository

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from notify_service.features.notifications.models import Notification
    from notify_service.features.notifications.recipients import RecipientDirectory
    from notify_service.features.notifications.repository import SubscriptionRepository
    from notify_service.features.notifications.schemas import SubscriptionCreate, SubscriptionUpdate


class SubscriptionRegistry(BaseService):
    """Per-tenant subscriptions and candidate resolution for dispatch."""

    def __init__(
        self,
        repository: SubscriptionRepository | None = None,
        directory: RecipientDirectory | None = None,
    ) -> None:
        super().__init__()
        self._repository = repository or get_subscription_repository()
        self._directory = directory

    @property
    def directory(self) -> RecipientDirectory:
        return self._directory or get_recipient_directory()

    async def find_candidates(
        self,
        session: AsyncSession,
        notification: Notification,
        subscription_group: str | None = None,
    ) -> list[NotificationSubscription]:
        """Subscriptions that should receive ``notification``.

        A subscription matches when it is in the notification's tenant, wants
        the notification's event and targets its recipient, either directly
        or through group membership. Broadcasts (no recipient) match every
        subscription for the event. ``subscription_group`` narrows the result
        to subscriptions of that group.
        """
        subscriptions = await self._repository.list_for_event(session, notification.tenant_id, notification.event)
        if subscription_group is not None:
            subscriptions = [sub for sub in subscriptions if sub.group == subscription_group]

        recipient = notification.recipient_id
        if recipient is None:
            return subscriptions

        members_by_group: dict[str, set[str]] = {}
        candidates: list[NotificationSubscription] = []
        for subscription in subscriptions:
            if subscription.user_id is not None:
                if subscription.user_id == recipient:
                    candidates.append(subscription)
                continue
            if subscription.group is None:
                continue
            if subscription.group not in members_by_group:
                members = await self.directory.resolve_group_members(notification.tenant_id, subscription.group)
                members_by_group[subscription.group] = set(members)
            if recipient in members_by_group[subscription.group]:
                candidates.append(subscription)

        self._lazy.debug(
            lambda: f"Resolved {len(candidates)} candidate subscriptions for notification {notification.id}"
        )
        return candidates

    async def get(self, session: AsyncSession, subscription_id: UUID) -> NotificationSubscription:
        subscription = await self._repository.get(session, subscription_id)
        if subscription is None:
            raise SubscriptionNotFoundError(subscription_id)
        return subscription

    async def list_subscriptions(
        self,
        session: AsyncSession,
        tenant_id: str,
        *,
        user_id: str | None = None,
        group: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Sequence[NotificationSubscription]:
        return await self._repository.list_for_tenant(
            session,
            tenant_id,
            user_id=user_id,
            group=group,
            limit=limit,
            offset=offset,
        )

    async def create(self, session: AsyncSession, payload: SubscriptionCreate) -> NotificationSubscription:
        """Create a subscription; ``channels`` must be non-empty."""
        channels = [str(channel) for channel in payload.channels]
        self._validate_channels(channels)

        subscription = NotificationSubscription(
            tenant_id=payload.tenant_id,
            user_id=payload.user_id,
            group=payload.group,
            events=list(payload.events),
            channels=channels,
            channel_targets=payload.channel_targets,
            quiet_hours_start=payload.quiet_hours_start,
            quiet_hours_end=payload.quiet_hours_end,
            timezone=payload.timezone,
            digest_enabled=payload.digest_enabled,
            digest_frequency=str(payload.digest_frequency),
        )
        subscription = await self._repository.create(session, subscription)
        self.logger.info(
            "Subscription created",
            extra={
                "subscription_id": str(subscription.id),
                "tenant_id": subscription.tenant_id,
                "recipient": subscription.recipient_label,
                "channels": channels,
            },
        )
        return subscription

    async def update(
        self,
        session: AsyncSession,
        subscription_id: UUID,
        payload: SubscriptionUpdate,
    ) -> NotificationSubscription:
        subscription = await self.get(session, subscription_id)
        changes = payload.model_dump(exclude_unset=True)

        if "channels" in changes:
            channels = [str(channel) for channel in changes["channels"] or []]
            self._validate_channels(channels)
            changes["channels"] = channels
        if changes.get("digest_frequency") is not None:
            changes["digest_frequency"] = str(changes["digest_frequency"])
        elif "digest_frequency" in changes:
            del changes["digest_frequency"]
        if "digest_enabled" in changes and changes["digest_enabled"] is None:
            del changes["digest_enabled"]
        if "events" in changes and changes["events"] is None:
            changes["events"] = []

        for field, value in changes.items():
            setattr(subscription, field, value)
        await session.flush()
        await session.refresh(subscription)

        self.logger.info(
            "Subscription updated",
            extra={"subscription_id": str(subscription.id), "fields": sorted(changes)},
        )
        return subscription

    async def delete(self, session: AsyncSession, subscription_id: UUID) -> None:
        """Delete a subscription.

        Open digest entries and pending retries for it are cleaned up by the
        sweepers on their next pass.
        """
        subscription = await self.get(session, subscription_id)
        await self._repository.delete(session, subscription)

    @staticmethod
    def _validate_channels(channels: list[str]) -> None:
        if not channels:
            msg = "A subscription needs at least one channel"
            raise InvalidSubscriptionError(msg)


_registry: SubscriptionRegistry | None = None


def get_subscription_registry() -> SubscriptionRegistry:
    global _registry
    if _registry is None:
        _registry = SubscriptionRegistry()
    return _registry


__all__ = ["SubscriptionRegistry", "get_subscription_registry"]
