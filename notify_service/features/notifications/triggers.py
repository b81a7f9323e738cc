"""Trigger helpers for maintenance domain events.

Business entities (work orders, inventory, PM tasks) live elsewhere; these
helpers take the few fields they need and call the trigger API. Each
created notification is committed before the next one is routed.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from notify_service.features.notifications.models import NotificationType
from notify_service.features.notifications.service import get_notification_service

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from notify_service.features.notifications.models import Notification
    from notify_service.features.notifications.service import NotificationService

logger = logging.getLogger(__name__)

# Work order statuses that no longer breach an SLA
CLOSED_WORK_ORDER_STATUSES = frozenset({"completed", "cancelled"})


async def notify_work_order_assigned(
    session: AsyncSession,
    *,
    tenant_id: str,
    work_order_id: str,
    work_order_title: str,
    assignees: Iterable[str],
    service: NotificationService | None = None,
) -> list[Notification]:
    """One ``assigned`` notification per assignee."""
    service = service or get_notification_service()
    message = f'Work order "{work_order_title}" assigned to you.'
    created = []
    for assignee in dict.fromkeys(assignees):
        notification, _ = await service.create_notification(
            session,
            tenant_id=tenant_id,
            recipient_id=assignee,
            work_order_id=work_order_id,
            category="assigned",
            notification_type=NotificationType.INFO,
            title="Work order assignment",
            message=message,
            template_context={"work_order_title": work_order_title},
        )
        created.append(notification)
    return created


async def notify_sla_breach(
    session: AsyncSession,
    *,
    tenant_id: str,
    work_order_id: str,
    work_order_title: str,
    status: str,
    sla_due_at: datetime | None,
    assignees: Iterable[str] = (),
    now: datetime | None = None,
    service: NotificationService | None = None,
) -> list[Notification]:
    """Critical ``overdue`` notification once a work order passes its SLA.

    Closed work orders and those not yet due produce nothing. Without
    assignees the breach is broadcast to the tenant's subscribers.
    """
    if sla_due_at is None or status in CLOSED_WORK_ORDER_STATUSES:
        return []
    now = now or datetime.now(UTC)
    if sla_due_at.tzinfo is None:
        sla_due_at = sla_due_at.replace(tzinfo=UTC)
    if sla_due_at > now:
        return []

    service = service or get_notification_service()
    recipients: list[str | None] = list(dict.fromkeys(user for user in assignees if user)) or [None]
    created = []
    for recipient in recipients:
        notification, _ = await service.create_notification(
            session,
            tenant_id=tenant_id,
            recipient_id=recipient,
            work_order_id=work_order_id,
            category="overdue",
            notification_type=NotificationType.CRITICAL,
            title="SLA breached",
            message=f'Work order "{work_order_title}" breached its SLA deadline.',
            template_context={"work_order_title": work_order_title, "sla_due_at": sla_due_at.isoformat()},
            now=now,
        )
        created.append(notification)
    logger.info(
        "SLA breach notified",
        extra={"work_order_id": work_order_id, "recipients": len(created)},
    )
    return created


async def notify_low_stock(
    session: AsyncSession,
    *,
    tenant_id: str,
    inventory_item_id: str,
    item_name: str,
    quantity: float,
    reorder_threshold: float,
    service: NotificationService | None = None,
) -> Notification | None:
    """Warning broadcast when stock falls to or below its reorder threshold."""
    if quantity > reorder_threshold:
        return None
    service = service or get_notification_service()
    notification, _ = await service.create_notification(
        session,
        tenant_id=tenant_id,
        inventory_item_id=inventory_item_id,
        category="overdue",
        notification_type=NotificationType.WARNING,
        title="Low stock threshold reached",
        message=f"{item_name} has fallen to {quantity:g} (threshold {reorder_threshold:g}).",
        template_context={"item_name": item_name, "quantity": quantity, "threshold": reorder_threshold},
    )
    return notification


async def notify_pm_due(
    session: AsyncSession,
    *,
    tenant_id: str,
    pm_task_id: str,
    task_title: str,
    due_at: datetime,
    service: NotificationService | None = None,
) -> Notification:
    """Warning broadcast that a preventive maintenance task is due."""
    service = service or get_notification_service()
    notification, _ = await service.create_notification(
        session,
        tenant_id=tenant_id,
        pm_task_id=pm_task_id,
        category="pm_due",
        notification_type=NotificationType.WARNING,
        title="Preventive maintenance due",
        message=f'PM task "{task_title}" is due on {due_at:%Y-%m-%d %H:%M}.',
        template_context={"task_title": task_title, "due_at": due_at.isoformat()},
    )
    return notification


__all__ = [
    "CLOSED_WORK_ORDER_STATUSES",
    "notify_low_stock",
    "notify_pm_due",
    "notify_sla_breach",
    "notify_work_order_assigned",
]
