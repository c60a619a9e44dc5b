"""Prayer Notifier — Prayer Package.

Prayer-time data and timing logic.
Components:
  - client: AlAdhan HTTP client (httpx)
  - provider: cached daily/monthly times, Qibla, Hijri date
  - evaluator: next prayer and alert-window checks (pure)
"""

from prayer_notifier.prayer.client import AlAdhanClient
from prayer_notifier.prayer.evaluator import (
    alert_due,
    format_remaining,
    is_within_alert_window,
    next_prayer,
    time_to_minutes,
)
from prayer_notifier.prayer.provider import (
    PrayerTimeProvider,
    calculation_methods,
    format_time,
    method_name,
)

__all__ = [
    "AlAdhanClient",
    "PrayerTimeProvider",
    "calculation_methods",
    "method_name",
    "format_time",
    "next_prayer",
    "is_within_alert_window",
    "alert_due",
    "format_remaining",
    "time_to_minutes",
]
