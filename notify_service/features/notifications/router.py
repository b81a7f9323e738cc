"""API router for the notifications feature.

Notification Endpoints:
- POST /notifications - Create a notification and route it
- GET /notifications - List a tenant's notifications
- GET /notifications/{notification_id} - Notification with its delivery log

Subscription Endpoints:
- POST /notifications/subscriptions - Create subscription
- GET /notifications/subscriptions - List a tenant's subscriptions
- GET /notifications/subscriptions/{subscription_id} - Get subscription
- PATCH /notifications/subscriptions/{subscription_id} - Update subscription
- DELETE /notifications/subscriptions/{subscription_id} - Delete subscription

Template Endpoints:
- POST /notifications/templates - Create template
- GET /notifications/templates - List a tenant's templates
- DELETE /notifications/templates/{template_id} - Delete template

Admin Endpoints:
- GET /notifications/admin/digests - Open digest batches for a tenant
- POST /notifications/admin/sweeps/retry - Run one retry sweep inline
- POST /notifications/admin/sweeps/digest - Run one digest sweep inline
"""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, status

from notify_service.features.notifications.dependencies import (
    DigestQueueRepositoryDep,
    DigestSweeperDep,
    NotificationServiceDep,
    RetrySweeperDep,
    SessionDep,
    SubscriptionRegistryDep,
    TemplateServiceDep,
)
from notify_service.features.notifications.models import DeliveryState
from notify_service.features.notifications.schemas import (
    DeliveryLogResponse,
    DigestEntryResponse,
    DispatchSummary,
    NotificationCreate,
    NotificationCreatedResponse,
    NotificationDetailResponse,
    NotificationResponse,
    SubscriptionCreate,
    SubscriptionResponse,
    SubscriptionUpdate,
    SweepReportResponse,
    TemplateCreate,
    TemplateResponse,
)
from notify_service.infra.logging import get_lazy_logger

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])

admin_router = APIRouter(prefix="/notifications/admin", tags=["notifications-admin"])


# ============================================================================
# Subscription Endpoints
# ============================================================================


@router.post(
    "/subscriptions",
    response_model=SubscriptionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create subscription",
    description="""
Subscribe one user or one group to events over an ordered list of channels.

- `channels` must contain at least one channel
- `quiet_hours_start` / `quiet_hours_end` use `HH:mm`; windows may wrap midnight
- `digest_enabled` defers quiet-hour notifications into a periodic digest
""",
)
async def create_subscription(
    payload: SubscriptionCreate,
    session: SessionDep,
    registry: SubscriptionRegistryDep,
) -> SubscriptionResponse:
    subscription = await registry.create(session, payload)
    await session.commit()
    return SubscriptionResponse.model_validate(subscription)


@router.get(
    "/subscriptions",
    response_model=list[SubscriptionResponse],
    summary="List subscriptions",
)
async def list_subscriptions(
    session: SessionDep,
    registry: SubscriptionRegistryDep,
    tenant_id: Annotated[str, Query(min_length=1, description="Owning tenant")],
    user_id: Annotated[str | None, Query(description="Filter by user")] = None,
    group: Annotated[str | None, Query(description="Filter by group")] = None,
    limit: Annotated[int, Query(ge=1, le=500, description="Maximum results")] = 100,
    offset: Annotated[int, Query(ge=0, description="Pagination offset")] = 0,
) -> list[SubscriptionResponse]:
    subscriptions = await registry.list_subscriptions(
        session,
        tenant_id,
        user_id=user_id,
        group=group,
        limit=limit,
        offset=offset,
    )
    return [SubscriptionResponse.model_validate(sub) for sub in subscriptions]


@router.get(
    "/subscriptions/{subscription_id}",
    response_model=SubscriptionResponse,
    summary="Get subscription",
    responses={404: {"description": "Subscription not found"}},
)
async def get_subscription(
    subscription_id: UUID,
    session: SessionDep,
    registry: SubscriptionRegistryDep,
) -> SubscriptionResponse:
    subscription = await registry.get(session, subscription_id)
    return SubscriptionResponse.model_validate(subscription)


@router.patch(
    "/subscriptions/{subscription_id}",
    response_model=SubscriptionResponse,
    summary="Update subscription",
    description="Partial update. Changes apply to notifications routed afterwards.",
    responses={404: {"description": "Subscription not found"}},
)
async def update_subscription(
    subscription_id: UUID,
    payload: SubscriptionUpdate,
    session: SessionDep,
    registry: SubscriptionRegistryDep,
) -> SubscriptionResponse:
    subscription = await registry.update(session, subscription_id, payload)
    await session.commit()
    return SubscriptionResponse.model_validate(subscription)


@router.delete(
    "/subscriptions/{subscription_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete subscription",
    responses={404: {"description": "Subscription not found"}},
)
async def delete_subscription(
    subscription_id: UUID,
    session: SessionDep,
    registry: SubscriptionRegistryDep,
) -> None:
    await registry.delete(session, subscription_id)
    await session.commit()
    logger.info("Subscription deleted", extra={"subscription_id": str(subscription_id)})


# ============================================================================
# Template Endpoints
# ============================================================================


@router.post(
    "/templates",
    response_model=TemplateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create template",
    description="""
Register a per-tenant template for one (event, channel) pair.

Placeholders use `{{key}}` and are filled from the notification's
`template_context`; unknown placeholders are left in place.
""",
    responses={409: {"description": "Template already exists"}},
)
async def create_template(
    payload: TemplateCreate,
    session: SessionDep,
    service: TemplateServiceDep,
) -> TemplateResponse:
    template = await service.create_template(session, payload)
    await session.commit()
    return TemplateResponse.model_validate(template)


@router.get(
    "/templates",
    response_model=list[TemplateResponse],
    summary="List templates",
)
async def list_templates(
    session: SessionDep,
    service: TemplateServiceDep,
    tenant_id: Annotated[str, Query(min_length=1, description="Owning tenant")],
    event: Annotated[str | None, Query(description="Filter by event")] = None,
) -> list[TemplateResponse]:
    templates = await service.list_templates(session, tenant_id, event)
    return [TemplateResponse.model_validate(template) for template in templates]


@router.delete(
    "/templates/{template_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete template",
    responses={404: {"description": "Template not found"}},
)
async def delete_template(
    template_id: UUID,
    session: SessionDep,
    service: TemplateServiceDep,
) -> None:
    await service.delete_template(session, template_id)
    await session.commit()


# ============================================================================
# Notification Endpoints
# ============================================================================


@router.post(
    "",
    response_model=NotificationCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create notification",
    description="""
Create a notification and run its first routing pass.

Returns once every matching (subscription, channel) pair has been sent,
deferred into a digest or queued. Failed sends are retried later by the
retry sweep.
""",
)
async def create_notification(
    payload: NotificationCreate,
    session: SessionDep,
    service: NotificationServiceDep,
) -> NotificationCreatedResponse:
    notification, outcome = await service.create_notification(
        session,
        tenant_id=payload.tenant_id,
        recipient_id=payload.recipient_id,
        category=payload.category,
        notification_type=payload.notification_type,
        title=payload.title,
        message=payload.message,
        template_context=payload.template_context,
        event=payload.event,
        subscription_group=payload.subscription_group,
        asset_id=payload.asset_id,
        work_order_id=payload.work_order_id,
        inventory_item_id=payload.inventory_item_id,
        pm_task_id=payload.pm_task_id,
    )
    return NotificationCreatedResponse(
        notification=NotificationResponse.model_validate(notification),
        dispatch=DispatchSummary(
            sent=outcome.sent,
            failed=outcome.failed,
            deferred=outcome.deferred,
            queued=outcome.queued,
        ),
    )


@router.get(
    "",
    response_model=list[NotificationResponse],
    summary="List notifications",
)
async def list_notifications(
    session: SessionDep,
    service: NotificationServiceDep,
    tenant_id: Annotated[str, Query(min_length=1, description="Owning tenant")],
    recipient_id: Annotated[str | None, Query(description="Filter by recipient")] = None,
    delivery_state: Annotated[DeliveryState | None, Query(description="Filter by delivery state")] = None,
    limit: Annotated[int, Query(ge=1, le=100, description="Maximum results")] = 50,
    offset: Annotated[int, Query(ge=0, description="Pagination offset")] = 0,
) -> list[NotificationResponse]:
    notifications = await service.list_notifications(
        session,
        tenant_id,
        recipient_id=recipient_id,
        delivery_state=str(delivery_state) if delivery_state is not None else None,
        limit=limit,
        offset=offset,
    )
    return [NotificationResponse.model_validate(notification) for notification in notifications]


@router.get(
    "/{notification_id}",
    response_model=NotificationDetailResponse,
    summary="Get notification with delivery log",
    description="""
Get a notification with every delivery log entry recorded for it,
ordered by creation time. The log is append-only: retries add rows with
increasing `attempt` numbers.
""",
    responses={404: {"description": "Notification not found"}},
)
async def get_notification(
    notification_id: UUID,
    session: SessionDep,
    service: NotificationServiceDep,
) -> NotificationDetailResponse:
    notification = await service.get_notification(session, notification_id)
    deliveries = await service.get_delivery_log(session, notification_id)
    return NotificationDetailResponse(
        **NotificationResponse.model_validate(notification).model_dump(),
        deliveries=[DeliveryLogResponse.model_validate(entry) for entry in deliveries],
    )


# ============================================================================
# Admin Endpoints
# ============================================================================


@admin_router.get(
    "/digests",
    response_model=list[DigestEntryResponse],
    summary="List open digest batches",
)
async def list_digest_entries(
    session: SessionDep,
    queue: DigestQueueRepositoryDep,
    tenant_id: Annotated[str, Query(min_length=1, description="Owning tenant")],
) -> list[DigestEntryResponse]:
    entries = await queue.list_for_tenant(session, tenant_id)
    responses = []
    for entry in entries:
        response = DigestEntryResponse.model_validate(entry)
        response.item_count = await queue.count_items(session, entry.id)
        responses.append(response)
    return responses


@admin_router.post(
    "/sweeps/retry",
    response_model=SweepReportResponse,
    summary="Run retry sweep",
    description="Run one retry pass inline. Safe to call while scheduled sweeps are running.",
)
async def run_retry_sweep(
    session: SessionDep,
    sweeper: RetrySweeperDep,
) -> SweepReportResponse:
    report = await sweeper.run(session)
    lazy_logger.debug(lambda: f"Manual retry sweep: {report.to_dict()}")
    return SweepReportResponse(**report.to_dict())


@admin_router.post(
    "/sweeps/digest",
    response_model=SweepReportResponse,
    summary="Run digest sweep",
    description="Flush every digest batch that is due now.",
)
async def run_digest_sweep(
    session: SessionDep,
    sweeper: DigestSweeperDep,
) -> SweepReportResponse:
    report = await sweeper.run(session)
    lazy_logger.debug(lambda: f"Manual digest sweep: {report.to_dict()}")
    return SweepReportResponse(**report.to_dict())


__all__ = ["admin_router", "router"]
