"""Quiet-hours evaluation.

A quiet-hours window is a pair of ``HH:mm`` strings. Windows whose start is
later than their end wrap past midnight (``23:00``-``05:00``). Both bounds
are inclusive.

Malformed or incomplete windows never suppress delivery: a typo in a
subscription must not swallow a critical alert.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True, slots=True)
class QuietHoursWindow:
    """Time-of-day window in ``HH:mm``, interpreted in ``timezone``."""

    start: str | None
    end: str | None
    timezone: str | None = None


def parse_time_of_day(value: str | None) -> int | None:
    """Convert ``HH:mm`` to minutes since midnight.

    Returns None for anything that is not a valid time of day.
    """
    if not value or not isinstance(value, str):
        return None
    parts = value.strip().split(":")
    if len(parts) != 2:
        return None
    hours_text, minutes_text = parts
    if not (hours_text.isdigit() and minutes_text.isdigit()):
        return None
    hours, minutes = int(hours_text), int(minutes_text)
    if hours > 23 or minutes > 59:
        return None
    return hours * 60 + minutes


def resolve_timezone(name: str | None) -> tzinfo:
    """Return the named IANA zone, or UTC when unset or unknown."""
    if not name:
        return UTC
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone, using UTC", extra={"timezone": name})
        return UTC


def minutes_in_window(start: int, end: int, minute: int) -> bool:
    """Containment test on minutes since midnight.

    Total over every (start, end, minute) in [0, 1440).
    """
    if start <= end:
        return start <= minute <= end
    return minute >= start or minute <= end


def is_within_quiet_hours(window: QuietHoursWindow | None, now: datetime) -> bool:
    """Whether ``now`` falls inside the quiet-hours window.

    Args:
        window: Subscription quiet hours; None means no quiet hours
        now: Current instant; naive values are treated as UTC

    Returns:
        True when immediate delivery should be suppressed
    """
    if window is None:
        return False
    start = parse_time_of_day(window.start)
    end = parse_time_of_day(window.end)
    if start is None or end is None:
        return False

    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    local = now.astimezone(resolve_timezone(window.timezone))
    return minutes_in_window(start, end, local.hour * 60 + local.minute)


__all__ = [
    "MINUTES_PER_DAY",
    "QuietHoursWindow",
    "is_within_quiet_hours",
    "minutes_in_window",
    "parse_time_of_day",
    "resolve_timezone",
]
