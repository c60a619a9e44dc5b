"""Prayer Notifier — Prayer Window Evaluator.

Pure functions over a PrayerSet. "now" is always passed in, never read
from the system clock. All comparisons are done in minutes since
midnight on a single day: an alert window that straddles midnight does
not match the neighbouring day's prayer.
"""

from __future__ import annotations

from datetime import datetime, time
from typing import Union

from prayer_notifier.models import DAILY_PRAYERS, AlertWindowMatch, NextPrayer, PrayerSet

TimeLike = Union[str, time, datetime]

MINUTES_PER_DAY = 24 * 60
NEXT_DAY = "Tomorrow"


def time_to_minutes(value: TimeLike) -> int:
    """Convert "HH:MM", a time or a datetime into minutes since midnight.

    Raises:
        ValueError: If a string is not in HH:MM form.
    """
    if isinstance(value, datetime):
        return value.hour * 60 + value.minute
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    parts = str(value).strip().split(":")
    if len(parts) < 2 or not parts[0].isdigit() or not parts[1].isdigit():
        raise ValueError(f"expected HH:MM, got {value!r}")
    return int(parts[0]) * 60 + int(parts[1])


def format_remaining(minutes: int) -> str:
    """Render a duration: "45m" below an hour, otherwise "2h 5m"."""
    hours, mins = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def time_remaining(now: TimeLike, target: TimeLike) -> str:
    """Duration from now until target, wrapping past midnight."""
    diff = time_to_minutes(target) - time_to_minutes(now)
    if diff < 0:
        diff += MINUTES_PER_DAY
    return format_remaining(diff)


def next_prayer(prayer_set: PrayerSet, now: TimeLike) -> NextPrayer:
    """First of fajr..isha whose time is strictly after now.

    When all five have passed, returns fajr flagged as tomorrow with
    remaining set to NEXT_DAY instead of a duration.
    """
    current = time_to_minutes(now)

    for prayer in DAILY_PRAYERS:
        prayer_time = prayer_set.prayers.get(prayer)
        if time_to_minutes(prayer_time) > current:
            return NextPrayer(
                prayer=prayer,
                time=prayer_time,
                remaining=time_remaining(now, prayer_time),
            )

    return NextPrayer(
        prayer="fajr",
        time=prayer_set.prayers.fajr,
        remaining=NEXT_DAY,
        is_tomorrow=True,
    )


def alert_due(
    prayer_set: PrayerSet,
    prayer: str,
    now: TimeLike,
    alert_minutes: int,
) -> AlertWindowMatch:
    """Check a single named prayer against an alert window."""
    prayer_time = prayer_set.prayers.get(prayer)
    if prayer_time is None:
        return AlertWindowMatch(matched=False)

    minutes_until = time_to_minutes(prayer_time) - time_to_minutes(now)
    if abs(minutes_until) <= alert_minutes:
        return AlertWindowMatch(
            matched=True,
            prayer=prayer,
            time=prayer_time,
            minutes_until=minutes_until,
        )
    return AlertWindowMatch(matched=False)


def is_within_alert_window(
    prayer_set: PrayerSet,
    now: TimeLike,
    alert_minutes: int,
) -> AlertWindowMatch:
    """First of fajr..isha within alert_minutes of now, either side.

    Ties go to the earlier prayer in list order.
    """
    for prayer in DAILY_PRAYERS:
        match = alert_due(prayer_set, prayer, now, alert_minutes)
        if match.matched:
            return match
    return AlertWindowMatch(matched=False)
