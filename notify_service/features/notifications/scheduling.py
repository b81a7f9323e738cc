"""Time arithmetic for retries and digest releases.

All values returned here are timezone-aware UTC datetimes. SQLite hands
back naive datetimes for ``DateTime(timezone=True)`` columns, so anything
read from the database goes through :func:`ensure_utc` before comparison.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from notify_service.features.notifications.models import DigestFrequency
from notify_service.features.notifications.quiet_hours import resolve_timezone

if TYPE_CHECKING:
    from notify_service.core.settings import NotificationSettings


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def compute_backoff(attempt: int, now: datetime, settings: NotificationSettings) -> datetime:
    """When the attempt after ``attempt`` becomes due.

    ``now + min(base * 2**attempt, cap)``. The settings validator guarantees
    the delay is strictly increasing for attempts 1..max_attempts.
    """
    return ensure_utc(now) + timedelta(seconds=settings.backoff_delay_seconds(attempt))


def next_digest_boundary(
    frequency: str,
    now: datetime,
    timezone: str | None = None,
) -> datetime:
    """Start of the next digest period strictly after ``now``.

    Boundaries are computed in the subscription's timezone:

    - hourly: the next top of the hour (10:00 and 10:37 both give 11:00)
    - daily: the next local midnight
    - weekly: the next Monday 00:00

    Unknown frequencies are treated as daily.
    """
    local = ensure_utc(now).astimezone(resolve_timezone(timezone))

    if frequency == DigestFrequency.HOURLY:
        boundary = local.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
        return boundary.astimezone(UTC)

    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    if frequency == DigestFrequency.WEEKLY:
        days_ahead = 7 - local.weekday()
        boundary_date = (midnight + timedelta(days=days_ahead)).date()
    else:
        boundary_date = (midnight + timedelta(days=1)).date()

    # Rebuild from the date so DST shifts land on local midnight
    boundary = datetime(
        boundary_date.year,
        boundary_date.month,
        boundary_date.day,
        tzinfo=local.tzinfo,
    )
    return boundary.astimezone(UTC)


__all__ = [
    "compute_backoff",
    "ensure_utc",
    "next_digest_boundary",
    "utc_now",
]
