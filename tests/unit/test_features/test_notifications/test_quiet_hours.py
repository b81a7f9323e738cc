"""Unit tests for quiet-hours evaluation."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from notify_service.features.notifications.quiet_hours import (
    MINUTES_PER_DAY,
    QuietHoursWindow,
    is_within_quiet_hours,
    minutes_in_window,
    parse_time_of_day,
    resolve_timezone,
)


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, 10, hour, minute, tzinfo=UTC)


@pytest.mark.unit
class TestParseTimeOfDay:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("00:00", 0), ("05:30", 330), ("23:59", 1439), (" 7:05 ", 425)],
    )
    def test_valid_values(self, value, expected):
        assert parse_time_of_day(value) == expected

    @pytest.mark.parametrize("value", [None, "", "24:00", "12:60", "noon", "12", "12:00:00", "-1:30", "ab:cd"])
    def test_invalid_values_return_none(self, value):
        assert parse_time_of_day(value) is None


@pytest.mark.unit
class TestIsWithinQuietHours:
    def test_overnight_window(self):
        """23:00-05:00 wraps midnight."""
        window = QuietHoursWindow(start="23:00", end="05:00")

        assert is_within_quiet_hours(window, at(1)) is True
        assert is_within_quiet_hours(window, at(23, 30)) is True
        assert is_within_quiet_hours(window, at(12)) is False

    def test_bounds_are_inclusive(self):
        window = QuietHoursWindow(start="22:00", end="06:30")

        assert is_within_quiet_hours(window, at(22, 0)) is True
        assert is_within_quiet_hours(window, at(6, 30)) is True
        assert is_within_quiet_hours(window, at(6, 31)) is False
        assert is_within_quiet_hours(window, at(21, 59)) is False

    def test_same_day_window(self):
        window = QuietHoursWindow(start="12:00", end="13:00")

        assert is_within_quiet_hours(window, at(12, 30)) is True
        assert is_within_quiet_hours(window, at(13, 1)) is False

    def test_no_window_never_suppresses(self):
        assert is_within_quiet_hours(None, at(3)) is False

    @pytest.mark.parametrize(
        ("start", "end"),
        [(None, "05:00"), ("23:00", None), ("late", "05:00"), ("23:00", "25:00"), ("", "")],
    )
    def test_malformed_window_fails_open(self, start, end):
        window = QuietHoursWindow(start=start, end=end)

        assert is_within_quiet_hours(window, at(1)) is False

    def test_window_evaluated_in_subscription_timezone(self):
        """01:00 UTC is 21:00 the previous evening in New York (EDT)."""
        window = QuietHoursWindow(start="20:00", end="22:00", timezone="America/New_York")
        now = datetime(2026, 6, 10, 1, 0, tzinfo=UTC)

        assert is_within_quiet_hours(window, now) is True
        assert is_within_quiet_hours(QuietHoursWindow(start="20:00", end="22:00"), now) is False

    def test_unknown_timezone_uses_utc(self):
        window = QuietHoursWindow(start="00:00", end="02:00", timezone="Mars/Olympus_Mons")

        assert is_within_quiet_hours(window, at(1)) is True

    def test_naive_now_treated_as_utc(self):
        window = QuietHoursWindow(start="00:00", end="02:00")

        assert is_within_quiet_hours(window, datetime(2026, 3, 10, 1, 0)) is True


@pytest.mark.unit
class TestMinutesInWindow:
    def test_agrees_with_interval_containment(self):
        """Non-wrapping windows match direct containment; wrapping ones its complement."""
        samples = range(0, MINUTES_PER_DAY, 37)
        for start in samples:
            for end in samples:
                for minute in range(0, MINUTES_PER_DAY, 53):
                    result = minutes_in_window(start, end, minute)
                    if start <= end:
                        assert result == (start <= minute <= end)
                    elif end < minute < start:
                        assert result is False
                    else:
                        assert result is True

    def test_full_day_window(self):
        assert all(minutes_in_window(0, MINUTES_PER_DAY - 1, minute) for minute in range(MINUTES_PER_DAY))


@pytest.mark.unit
def test_resolve_timezone_defaults_to_utc():
    assert resolve_timezone(None) is UTC
    assert resolve_timezone("") is UTC
    assert str(resolve_timezone("Europe/Berlin")) == "Europe/Berlin"
