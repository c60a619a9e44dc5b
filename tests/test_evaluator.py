"""Tests for next-prayer and alert-window evaluation."""

from __future__ import annotations

from datetime import datetime, time

import pytest

from conftest import make_day_record
from prayer_notifier.prayer.evaluator import (
    NEXT_DAY,
    alert_due,
    format_remaining,
    is_within_alert_window,
    next_prayer,
    time_remaining,
    time_to_minutes,
)
from prayer_notifier.prayer.provider import parse_prayer_set


@pytest.mark.parametrize(
    "value, expected",
    [
        ("00:00", 0),
        ("05:07", 307),
        ("23:59", 1439),
        (time(12, 30), 750),
        (datetime(2026, 10, 19, 13, 0), 780),
    ],
)
def test_time_to_minutes(value, expected) -> None:
    assert time_to_minutes(value) == expected


def test_format_remaining() -> None:
    assert format_remaining(45) == "45m"
    assert format_remaining(0) == "0m"
    assert format_remaining(60) == "1h 0m"
    assert format_remaining(125) == "2h 5m"


def test_time_remaining_wraps_past_midnight() -> None:
    assert time_remaining("23:30", "00:15") == "45m"
    assert time_remaining("13:00", "15:45") == "2h 45m"


def test_next_prayer_after_dhuhr_is_asr(prayer_set, fixed_now) -> None:
    result = next_prayer(prayer_set, fixed_now)

    assert result.prayer == "asr"
    assert result.time == "15:45"
    assert result.remaining == "2h 45m"
    assert result.is_tomorrow is False


def test_next_prayer_excludes_prayer_at_exactly_now(prayer_set) -> None:
    assert next_prayer(prayer_set, "12:30").prayer == "asr"


def test_next_prayer_ignores_sunrise(prayer_set) -> None:
    assert next_prayer(prayer_set, "06:00").prayer == "dhuhr"


def test_next_prayer_after_isha_is_tomorrows_fajr(prayer_set) -> None:
    result = next_prayer(prayer_set, "21:00")

    assert result.prayer == "fajr"
    assert result.time == "05:00"
    assert result.remaining == NEXT_DAY
    assert result.is_tomorrow is True


def test_alert_window_before_prayer(prayer_set) -> None:
    match = is_within_alert_window(prayer_set, "12:25", 10)

    assert match.matched is True
    assert match.prayer == "dhuhr"
    assert match.time == "12:30"
    assert match.minutes_until == 5


def test_alert_window_counts_shortly_after_prayer(prayer_set) -> None:
    match = is_within_alert_window(prayer_set, "12:38", 10)

    assert match.matched is True
    assert match.prayer == "dhuhr"
    assert match.minutes_until == -8


def test_alert_window_boundary_is_inclusive(prayer_set) -> None:
    assert is_within_alert_window(prayer_set, "12:20", 10).matched is True
    assert is_within_alert_window(prayer_set, "12:19", 10).matched is False


def test_no_prayer_in_window(prayer_set) -> None:
    match = is_within_alert_window(prayer_set, "12:50", 10)

    assert match.matched is False
    assert match.prayer is None


def test_alert_window_does_not_wrap_midnight() -> None:
    late = parse_prayer_set(make_day_record(fajr="00:05", isha="23:50"))

    assert is_within_alert_window(late, "23:58", 10).prayer == "isha"
    match = alert_due(late, "fajr", "23:58", 10)
    assert match.matched is False


def test_alert_due_for_jumma_and_unknown(prayer_set) -> None:
    assert alert_due(prayer_set, "jumma", "12:00", 30).matched is True
    assert alert_due(prayer_set, "tahajjud", "12:00", 30).matched is False


@pytest.mark.parametrize("value", ["5", "", "ab:cd", "12-30"])
def test_time_to_minutes_rejects_malformed_strings(value) -> None:
    with pytest.raises(ValueError, match="expected HH:MM"):
        time_to_minutes(value)
