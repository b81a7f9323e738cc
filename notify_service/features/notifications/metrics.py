"""Prometheus metrics for the notification delivery engine.

Usage:
    from notify_service.features.notifications.metrics import (
        notification_delivered_total,
    )

    notification_delivered_total.labels(channel="email", status="sent").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Lifecycle Metrics
# =============================================================================

notification_created_total = Counter(
    "notification_created_total",
    "Total number of notifications created",
    labelnames=["category", "notification_type"],
)
"""
Counter for notification creation.

Labels:
    category: Semantic bucket (assigned, overdue, pm_due, ...)
    notification_type: Severity (info, warning, critical)
"""

notification_delivered_total = Counter(
    "notification_delivered_total",
    "Total delivery log entries written by channel and status",
    labelnames=["channel", "status"],
)
"""
Counter for every delivery log entry.

Labels:
    channel: Delivery channel (email, sms, push, webhook, in_app)
    status: sent, failed, deferred or queued

Example:
    notification_delivered_total.labels(channel="sms", status="failed").inc()
"""

# =============================================================================
# Delivery Performance Metrics
# =============================================================================

notification_delivery_duration_seconds = Histogram(
    "notification_delivery_duration_seconds",
    "Channel sender call duration in seconds",
    labelnames=["channel"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)
"""
Histogram of channel sender latency, timeouts included.

Labels:
    channel: Delivery channel
"""

notification_errors_total = Counter(
    "notification_errors_total",
    "Failed channel sends by channel and error category",
    labelnames=["channel", "error_category"],
)
"""
Counter for failed sends.

Labels:
    channel: Delivery channel
    error_category: timeout, exception, http_error, configuration, ...
"""

# =============================================================================
# Retry Metrics
# =============================================================================

notification_retry_total = Counter(
    "notification_retry_total",
    "Total number of delivery retries attempted by the retry sweeper",
    labelnames=["channel"],
)

notification_retry_exhausted_total = Counter(
    "notification_retry_exhausted_total",
    "Total number of deliveries that failed terminally",
    labelnames=["channel"],
)
"""
Counter for (notification, subscription, channel) pairs that gave up.

Example:
    notification_retry_exhausted_total.labels(channel="webhook").inc()
"""

# =============================================================================
# Quiet Hours and Digest Metrics
# =============================================================================

notification_quiet_hours_deferred_total = Counter(
    "notification_quiet_hours_deferred_total",
    "Deliveries suppressed by quiet hours",
    labelnames=["channel", "outcome"],
)
"""
Counter for quiet-hours suppression.

Labels:
    channel: Delivery channel
    outcome: deferred (into a digest) or queued (no automatic delivery)
"""

notification_digest_flushed_total = Counter(
    "notification_digest_flushed_total",
    "Digest batches processed by the digest sweeper",
    labelnames=["channel", "status"],
)

notification_digest_batch_size = Histogram(
    "notification_digest_batch_size",
    "Number of notifications combined into one digest",
    buckets=[1, 2, 5, 10, 25, 50, 100, 250],
)

# =============================================================================
# Sweep Metrics
# =============================================================================

notification_claim_conflicts_total = Counter(
    "notification_claim_conflicts_total",
    "Rows skipped because another worker claimed them first",
    labelnames=["sweep"],
)
"""
Counter for lost claims during concurrent sweeps.

Labels:
    sweep: retry or digest
"""

notification_sweep_duration_seconds = Histogram(
    "notification_sweep_duration_seconds",
    "Duration of one sweep pass",
    labelnames=["sweep"],
    buckets=[0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0],
)


__all__ = [
    "notification_claim_conflicts_total",
    "notification_created_total",
    "notification_delivered_total",
    "notification_delivery_duration_seconds",
    "notification_digest_batch_size",
    "notification_digest_flushed_total",
    "notification_errors_total",
    "notification_quiet_hours_deferred_total",
    "notification_retry_exhausted_total",
    "notification_retry_total",
    "notification_sweep_duration_seconds",
]
