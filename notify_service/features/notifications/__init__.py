"""Notification delivery engine.

Routes notifications created by maintenance events to subscribers over
email, SMS, push, webhook and in-app channels:

- Subscriptions: per user or group, ordered channels, quiet hours, digests
- Dispatcher: sends now, defers into a digest, or queues during quiet hours
- Delivery log: append-only, one row per attempt per (subscription, channel)
- Sweeps: retry failed deliveries with exponential backoff and flush due
  digests; both claim rows so concurrent runs never double-send

Example:
    ```python
    notification, outcome = await get_notification_service().create_notification(
        session,
        tenant_id="plant-7",
        recipient_id="user-123",
        category="assigned",
        title="Work order assignment",
        message='Work order "Replace pump seal" assigned to you.',
    )

    # From a scheduler or worker
    await run_retry_sweep()
    await run_digest_sweep()
    ```
"""

from notify_service.features.notifications.digest import DigestSweeper, get_digest_sweeper, run_digest_sweep
from notify_service.features.notifications.dispatcher import (
    DeliveryDispatcher,
    DispatchOutcome,
    get_delivery_dispatcher,
)
from notify_service.features.notifications.models import (
    Channel,
    DeliveryLogEntry,
    DeliveryState,
    DeliveryStatus,
    DigestFrequency,
    DigestQueueEntry,
    DigestQueueItem,
    Notification,
    NotificationSubscription,
    NotificationTemplate,
    NotificationType,
)
from notify_service.features.notifications.registry import SubscriptionRegistry, get_subscription_registry
from notify_service.features.notifications.retry import (
    RetrySweeper,
    SweepReport,
    get_retry_sweeper,
    run_retry_sweep,
)
from notify_service.features.notifications.service import (
    NotificationService,
    TemplateService,
    get_notification_service,
    get_template_service,
)

__all__ = [
    "Channel",
    "DeliveryDispatcher",
    "DeliveryLogEntry",
    "DeliveryState",
    "DeliveryStatus",
    "DigestFrequency",
    "DigestQueueEntry",
    "DigestQueueItem",
    "DigestSweeper",
    "DispatchOutcome",
    "Notification",
    "NotificationService",
    "NotificationSubscription",
    "NotificationTemplate",
    "NotificationType",
    "RetrySweeper",
    "SubscriptionRegistry",
    "SweepReport",
    "TemplateService",
    "get_delivery_dispatcher",
    "get_digest_sweeper",
    "get_notification_service",
    "get_retry_sweeper",
    "get_subscription_registry",
    "get_template_service",
    "run_digest_sweep",
    "run_retry_sweep",
]
