"""Notification and template services.

``NotificationService.create_notification`` is the trigger API: it persists
the notification, runs the dispatcher's first routing pass and commits.
Retries and digests happen later in the sweepers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import IntegrityError

from notify_service.core.services import BaseService
from notify_service.features.notifications.dispatcher import get_delivery_dispatcher
from notify_service.features.notifications.exceptions import (
    NotificationNotFoundError,
    TemplateConflictError,
    TemplateNotFoundError,
)
from notify_service.features.notifications.metrics import notification_created_total
from notify_service.features.notifications.models import (
    DeliveryState,
    Notification,
    NotificationTemplate,
    NotificationType,
)
from notify_service.features.notifications.repository import (
    get_delivery_log_repository,
    get_notification_repository,
    get_template_repository,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from notify_service.features.notifications.dispatcher import DeliveryDispatcher, DispatchOutcome
    from notify_service.features.notifications.models import DeliveryLogEntry
    from notify_service.features.notifications.repository import (
        DeliveryLogRepository,
        NotificationRepository,
        TemplateRepository,
    )
    from notify_service.features.notifications.schemas import TemplateCreate


class NotificationService(BaseService):
    """Creates notifications and reads them back with their delivery log."""

    def __init__(
        self,
        dispatcher: DeliveryDispatcher | None = None,
        repository: NotificationRepository | None = None,
        logs: DeliveryLogRepository | None = None,
    ) -> None:
        super().__init__()
        self._dispatcher = dispatcher
        self._repository = repository or get_notification_repository()
        self._logs = logs or get_delivery_log_repository()

    @property
    def dispatcher(self) -> DeliveryDispatcher:
        return self._dispatcher or get_delivery_dispatcher()

    async def create_notification(
        self,
        session: AsyncSession,
        *,
        tenant_id: str,
        category: str,
        title: str,
        message: str,
        recipient_id: str | None = None,
        notification_type: str = NotificationType.INFO,
        template_context: dict[str, Any] | None = None,
        event: str | None = None,
        subscription_group: str | None = None,
        asset_id: str | None = None,
        work_order_id: str | None = None,
        inventory_item_id: str | None = None,
        pm_task_id: str | None = None,
        now: datetime | None = None,
    ) -> tuple[Notification, DispatchOutcome]:
        """Create a notification and route it.

        Returns once every (subscription, channel) pair has been sent,
        deferred or queued; it does not wait for retries.

        Args:
            session: Database session (committed on success)
            tenant_id: Owning tenant
            category: Semantic bucket, e.g. "assigned"
            title: Short title
            message: Body text
            recipient_id: Target user; None broadcasts to all tenant subscribers
            notification_type: info, warning or critical
            template_context: Values for ``{{key}}`` template placeholders
            event: Event key matched against subscriptions (defaults to category)
            subscription_group: Only route to subscriptions of this group
            now: Routing time, for quiet hours and digest boundaries

        Returns:
            The notification and the dispatcher's routing outcome
        """
        notification = Notification(
            tenant_id=tenant_id,
            recipient_id=recipient_id,
            category=category,
            event=event or category,
            notification_type=str(notification_type),
            title=title,
            message=message,
            context_data=template_context,
            asset_id=asset_id,
            work_order_id=work_order_id,
            inventory_item_id=inventory_item_id,
            pm_task_id=pm_task_id,
            delivery_state=DeliveryState.PENDING,
        )
        notification = await self._repository.create(session, notification)
        notification_created_total.labels(
            category=category,
            notification_type=str(notification_type),
        ).inc()

        try:
            outcome = await self.dispatcher.dispatch(
                session,
                notification,
                subscription_group=subscription_group,
                now=now,
            )
        except Exception:
            await session.rollback()
            raise
        await session.commit()

        self.logger.info(
            "Notification created",
            extra={
                "notification_id": str(notification.id),
                "tenant_id": tenant_id,
                "category": category,
                "recipient_id": recipient_id,
                "delivery_state": notification.delivery_state,
            },
        )
        return notification, outcome

    async def get_notification(self, session: AsyncSession, notification_id: UUID) -> Notification:
        notification = await self._repository.get(session, notification_id)
        if notification is None:
            raise NotificationNotFoundError(notification_id)
        return notification

    async def list_notifications(
        self,
        session: AsyncSession,
        tenant_id: str,
        *,
        recipient_id: str | None = None,
        delivery_state: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Notification]:
        return await self._repository.list_for_tenant(
            session,
            tenant_id,
            recipient_id=recipient_id,
            delivery_state=delivery_state,
            limit=limit,
            offset=offset,
        )

    async def get_delivery_log(self, session: AsyncSession, notification_id: UUID) -> Sequence[DeliveryLogEntry]:
        await self.get_notification(session, notification_id)
        return await self._logs.list_for_notification(session, notification_id)


class TemplateService(BaseService):
    """Per-tenant (event, channel) templates."""

    def __init__(self, repository: TemplateRepository | None = None) -> None:
        super().__init__()
        self._repository = repository or get_template_repository()

    async def create_template(self, session: AsyncSession, payload: TemplateCreate) -> NotificationTemplate:
        existing = await self._repository.find(session, payload.tenant_id, payload.event, str(payload.channel))
        if existing is not None:
            raise TemplateConflictError(payload.tenant_id, payload.event, str(payload.channel))

        template = NotificationTemplate(
            tenant_id=payload.tenant_id,
            event=payload.event,
            channel=str(payload.channel),
            subject=payload.subject,
            body=payload.body,
        )
        try:
            template = await self._repository.create(session, template)
        except IntegrityError as exc:
            await session.rollback()
            raise TemplateConflictError(payload.tenant_id, payload.event, str(payload.channel)) from exc

        self.logger.info(
            "Template created",
            extra={"template_id": str(template.id), "event": template.event, "channel": template.channel},
        )
        return template

    async def list_templates(
        self,
        session: AsyncSession,
        tenant_id: str,
        event: str | None = None,
    ) -> Sequence[NotificationTemplate]:
        return await self._repository.list_for_tenant(session, tenant_id, event=event)

    async def delete_template(self, session: AsyncSession, template_id: UUID) -> None:
        template = await self._repository.get(session, template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        await self._repository.delete(session, template)


_notification_service: NotificationService | None = None
_template_service: TemplateService | None = None


def get_notification_service() -> NotificationService:
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service


def get_template_service() -> TemplateService:
    global _template_service
    if _template_service is None:
        _template_service = TemplateService()
    return _template_service


__all__ = [
    "NotificationService",
    "TemplateService",
    "get_notification_service",
    "get_template_service",
]
