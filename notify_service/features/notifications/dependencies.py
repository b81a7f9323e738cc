"""FastAPI dependencies for the notifications feature.

Annotated aliases keep route signatures short:

    @router.get("/subscriptions")
    async def list_subscriptions(
        session: SessionDep,
        registry: SubscriptionRegistryDep,
        tenant_id: str,
    ) -> list[SubscriptionResponse]:
        ...
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from notify_service.core.dependencies.database import get_db_session
from notify_service.features.notifications.digest import DigestSweeper, get_digest_sweeper
from notify_service.features.notifications.registry import SubscriptionRegistry, get_subscription_registry
from notify_service.features.notifications.repository import DigestQueueRepository, get_digest_queue_repository
from notify_service.features.notifications.retry import RetrySweeper, get_retry_sweeper
from notify_service.features.notifications.service import (
    NotificationService,
    TemplateService,
    get_notification_service,
    get_template_service,
)

# Database session dependency
SessionDep = Annotated[AsyncSession, Depends(get_db_session)]

# Repository dependencies
DigestQueueRepositoryDep = Annotated[DigestQueueRepository, Depends(get_digest_queue_repository)]

# Service dependencies
NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]
TemplateServiceDep = Annotated[TemplateService, Depends(get_template_service)]
SubscriptionRegistryDep = Annotated[SubscriptionRegistry, Depends(get_subscription_registry)]

# Sweeper dependencies
RetrySweeperDep = Annotated[RetrySweeper, Depends(get_retry_sweeper)]
DigestSweeperDep = Annotated[DigestSweeper, Depends(get_digest_sweeper)]


__all__ = [
    "DigestQueueRepositoryDep",
    "DigestSweeperDep",
    "NotificationServiceDep",
    "RetrySweeperDep",
    "SessionDep",
    "SubscriptionRegistryDep",
    "TemplateServiceDep",
]
