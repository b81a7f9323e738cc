"""Message composition and delivery target resolution."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from notify_service.features.notifications.channels.base import RenderedMessage
from notify_service.features.notifications.channels.webhook import SLACK_URL_KEY, TEAMS_URL_KEY
from notify_service.features.notifications.models import Channel
from notify_service.features.notifications.recipients import get_recipient_directory
from notify_service.features.notifications.repository import get_template_repository
from notify_service.features.notifications.templates import render_or_fallback
from notify_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from notify_service.features.notifications.models import Notification, NotificationSubscription
    from notify_service.features.notifications.recipients import RecipientDirectory
    from notify_service.features.notifications.repository import TemplateRepository

DIGEST_TITLE = "Notification digest"
DIGEST_EVENT = "digest"

# channel_targets keys for chat webhook overrides
_CHAT_TARGET_KEYS = {"slack": SLACK_URL_KEY, "teams": TEAMS_URL_KEY}

_lazy = get_lazy_logger(__name__)


def template_context(notification: Notification) -> dict[str, Any]:
    """Substitution context: notification fields overlaid with its context data."""
    context: dict[str, Any] = {
        "title": notification.title,
        "message": notification.message,
        "category": notification.category,
        "event": notification.event,
        "type": notification.notification_type,
        "recipient_id": notification.recipient_id,
        "asset_id": notification.asset_id,
        "work_order_id": notification.work_order_id,
        "inventory_item_id": notification.inventory_item_id,
        "pm_task_id": notification.pm_task_id,
    }
    context.update(notification.context_data or {})
    return context


def digest_body(notifications: Sequence[Notification]) -> str:
    lines = [f"You have {len(notifications)} notifications waiting in your digest."]
    lines.extend(f"- {notification.title}" for notification in notifications)
    return "\n".join(lines)


class MessageComposer:
    """Renders per-channel messages and resolves where to send them."""

    def __init__(
        self,
        templates: TemplateRepository | None = None,
        directory: RecipientDirectory | None = None,
    ) -> None:
        self._templates = templates or get_template_repository()
        self._directory = directory

    @property
    def directory(self) -> RecipientDirectory:
        return self._directory or get_recipient_directory()

    async def compose(
        self,
        session: AsyncSession,
        notification: Notification,
        channel: str,
        subscription: NotificationSubscription | None = None,
    ) -> RenderedMessage:
        """Render ``notification`` for ``channel``.

        Uses the tenant's template for (event, channel) when one exists;
        otherwise, or when rendering fails, the raw title and message.
        """
        subject = notification.title
        body = notification.message

        template = await self._templates.find(session, notification.tenant_id, notification.event, channel)
        if template is not None:
            context = template_context(notification)
            subject = render_or_fallback(template.subject, context, notification.title)
            body = render_or_fallback(template.body, context, notification.message)
            _lazy.debug(lambda: f"Rendered template {template.id} for {notification.event}/{channel}")

        return RenderedMessage(
            subject=subject,
            body=body,
            category=notification.category,
            event=notification.event,
            notification_ids=(str(notification.id),),
            metadata=self._chat_overrides(subscription),
        )

    def compose_digest(
        self,
        notifications: Sequence[Notification],
        subscription: NotificationSubscription | None = None,
    ) -> RenderedMessage:
        """One combined message summarizing ``notifications`` by title."""
        return RenderedMessage(
            subject=DIGEST_TITLE,
            body=digest_body(notifications),
            category=DIGEST_EVENT,
            event=DIGEST_EVENT,
            notification_ids=tuple(str(notification.id) for notification in notifications),
            metadata={"batch_size": len(notifications), **self._chat_overrides(subscription)},
        )

    async def resolve_target(
        self,
        tenant_id: str,
        channel: str,
        subscription: NotificationSubscription | None,
        recipient_id: str | None,
    ) -> str | None:
        """Delivery address for one (subscription, channel).

        Lookup order:
        1. Explicit ``channel_targets`` on the subscription
        2. The subscribed user, else the notification's recipient (group
           subscriptions), through the recipient directory
        3. For in-app only: the group room of a group subscription
        """
        if subscription is not None and subscription.channel_targets:
            explicit = subscription.channel_targets.get(str(channel))
            if explicit:
                return explicit

        user_id = subscription.user_id if subscription is not None and subscription.user_id else recipient_id
        if user_id:
            return await self.directory.resolve_target(tenant_id, user_id, str(channel))

        if channel == Channel.IN_APP and subscription is not None and subscription.group:
            return subscription.recipient_label
        return None

    @staticmethod
    def _chat_overrides(subscription: NotificationSubscription | None) -> dict[str, Any]:
        if subscription is None or not subscription.channel_targets:
            return {}
        return {
            metadata_key: subscription.channel_targets[target_key]
            for target_key, metadata_key in _CHAT_TARGET_KEYS.items()
            if subscription.channel_targets.get(target_key)
        }


__all__ = [
    "DIGEST_EVENT",
    "DIGEST_TITLE",
    "MessageComposer",
    "digest_body",
    "template_context",
]
