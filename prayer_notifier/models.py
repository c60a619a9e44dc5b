"""Prayer Notifier — Data Models.

Dataclasses for every entity the engine produces or consumes: cache
entries, normalized prayer-time sets, Qibla and Hijri info, the read-only
preference view supplied by the preference store, composed messages and
dispatch results.

Everything the engine hands back to callers is frozen. Lists inside
result objects are built once and not touched afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

# ── Prayer names ─────────────────────────────────────────
DAILY_PRAYERS = ("fajr", "dhuhr", "asr", "maghrib", "isha")
ALERTABLE_PRAYERS = DAILY_PRAYERS + ("jumma",)
SUPPORTED_LANGUAGES = ("en", "ar", "ur")

CHANNEL_A = "A"
CHANNEL_B = "B"

KIND_PRAYER = "prayer"
KIND_EVENT = "event"
KIND_TEST = "test"


# ═══════════════════════════════════════════════════════════
# Cache
# ═══════════════════════════════════════════════════════════


@dataclass
class CacheEntry:
    """A single cached value.

    Attributes:
        key: Composite cache key.
        value: The stored value (a private copy).
        stored_at: Monotonic timestamp of insertion.
        ttl: Lifetime in seconds; math.inf for entries that never expire.
    """

    key: str
    value: Any
    stored_at: float
    ttl: float


# ═══════════════════════════════════════════════════════════
# Prayer-time data
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class PrayerTimes:
    """Normalized "HH:MM" times for one day.

    jumma always carries the same value as dhuhr.
    """

    fajr: str
    sunrise: str
    dhuhr: str
    asr: str
    maghrib: str
    isha: str
    jumma: str

    def get(self, name: str) -> Optional[str]:
        """Look up a time by prayer name, or None if the name is unknown."""
        if name not in ALERTABLE_PRAYERS and name != "sunrise":
            return None
        return getattr(self, name)

    def to_dict(self) -> dict[str, str]:
        return {
            "fajr": self.fajr,
            "sunrise": self.sunrise,
            "dhuhr": self.dhuhr,
            "asr": self.asr,
            "maghrib": self.maghrib,
            "isha": self.isha,
            "jumma": self.jumma,
        }


@dataclass(frozen=True)
class PrayerDate:
    """Date block of a prayer set.

    Attributes:
        readable: Human date, e.g. "19 Oct 2026".
        gregorian: Gregorian date object as returned by the service.
        hijri: Hijri date object as returned by the service.
    """

    readable: str
    gregorian: Mapping[str, Any] = field(default_factory=dict)
    hijri: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PrayerSet:
    """One day of prayer times for a location and calculation method."""

    date: PrayerDate
    prayers: PrayerTimes
    meta: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class QiblaInfo:
    """Compass bearing toward the Kaaba for a coordinate pair."""

    direction: float
    latitude: float
    longitude: float


@dataclass(frozen=True)
class IslamicDate:
    """Hijri and Gregorian date objects for a single day."""

    hijri: Mapping[str, Any]
    gregorian: Mapping[str, Any]


@dataclass(frozen=True)
class NextPrayer:
    """Result of next_prayer().

    Attributes:
        prayer: Prayer name.
        time: "HH:MM" time of that prayer.
        remaining: "2h 15m" style duration, or "Tomorrow".
        is_tomorrow: True when every prayer today has already passed.
    """

    prayer: str
    time: str
    remaining: str
    is_tomorrow: bool = False


@dataclass(frozen=True)
class AlertWindowMatch:
    """Result of an alert-window check.

    minutes_until is negative when the prayer time has already passed.
    """

    matched: bool
    prayer: Optional[str] = None
    time: Optional[str] = None
    minutes_until: Optional[int] = None


# ═══════════════════════════════════════════════════════════
# Preferences (read-only view from the preference store)
# ═══════════════════════════════════════════════════════════

# Defaults of the preference store schema.
_DEFAULT_PRAYER_TOGGLES = {
    "fajr": (True, 10),
    "dhuhr": (True, 15),
    "asr": (False, 5),
    "maghrib": (True, 10),
    "isha": (True, 15),
    "jumma": (True, 30),
}
_DEFAULT_TIMEZONE = "Europe/London"
_DEFAULT_EVENT_CATEGORIES = {
    "religious": True,
    "community": True,
    "educational": True,
    "fundraising": False,
    "announcements": True,
}


@dataclass(frozen=True)
class PrayerToggle:
    """Per-prayer notification switch and alert lead time."""

    enabled: bool
    alert_minutes: int


@dataclass(frozen=True)
class DeviceTokens:
    """Push tokens: channel A is FCM (Android), channel B is APNs (iOS)."""

    channel_a: Optional[str] = None
    channel_b: Optional[str] = None


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    timezone: Optional[str] = None


@dataclass(frozen=True)
class NotificationPreferenceView:
    """Read-only projection of a user's notification preferences.

    Attributes:
        user_id: Identifier in the preference store.
        per_prayer: Toggle per prayer name.
        event_categories: Opt-in flag per event category.
        events_enabled: Master switch for event notifications.
        device_tokens: Configured push tokens.
        language: One of en, ar, ur.
        location: Where the user's prayer times are computed, if known.
        calculation_method: Preferred method code, or None for the default.
    """

    user_id: str
    per_prayer: Mapping[str, PrayerToggle] = field(default_factory=dict)
    event_categories: Mapping[str, bool] = field(default_factory=dict)
    events_enabled: bool = True
    device_tokens: DeviceTokens = field(default_factory=DeviceTokens)
    language: str = "en"
    location: Optional[Location] = None
    calculation_method: Optional[int] = None

    def prayer_enabled(self, prayer_name: str) -> bool:
        """Whether alerts are on for a prayer. Unknown names count as off."""
        toggle = self.per_prayer.get(prayer_name)
        return bool(toggle and toggle.enabled)

    def category_enabled(self, category: Optional[str]) -> bool:
        """Whether an event category passes both event switches."""
        if not self.events_enabled or category is None:
            return False
        return bool(self.event_categories.get(category, False))

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "NotificationPreferenceView":
        """Build a view from a preference-store document.

        Understands the store's field names (notifications,
        eventNotifications, deviceTokens.android/ios, preferences.language,
        location) and fills in the store's defaults for anything missing.

        Args:
            record: Document as returned by the preference store.

        Returns:
            A NotificationPreferenceView.
        """
        notifications = record.get("notifications") or {}
        per_prayer: dict[str, PrayerToggle] = {}
        for name, (enabled, minutes) in _DEFAULT_PRAYER_TOGGLES.items():
            raw = notifications.get(name) or {}
            per_prayer[name] = PrayerToggle(
                enabled=bool(raw.get("enabled", enabled)),
                alert_minutes=int(raw.get("alertMinutes", minutes)),
            )

        events = record.get("eventNotifications") or {}
        categories = dict(_DEFAULT_EVENT_CATEGORIES)
        categories.update({
            k: bool(v) for k, v in (events.get("categories") or {}).items()
        })

        tokens = record.get("deviceTokens") or {}
        prefs = record.get("preferences") or {}
        language = prefs.get("language", "en")
        if language not in SUPPORTED_LANGUAGES:
            language = "en"

        location = None
        raw_location = record.get("location") or {}
        if raw_location.get("latitude") is not None and raw_location.get("longitude") is not None:
            location = Location(
                latitude=float(raw_location["latitude"]),
                longitude=float(raw_location["longitude"]),
                timezone=raw_location.get("timezone") or _DEFAULT_TIMEZONE,
            )

        return cls(
            user_id=str(record.get("userId", "")),
            per_prayer=per_prayer,
            event_categories=categories,
            events_enabled=bool(events.get("enabled", True)),
            device_tokens=DeviceTokens(
                channel_a=tokens.get("android") or None,
                channel_b=tokens.get("ios") or None,
            ),
            language=language,
            location=location,
            calculation_method=prefs.get("prayerTimeCalculationMethod"),
        )


# ═══════════════════════════════════════════════════════════
# Messages & dispatch results
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class CommunityEvent:
    """A mosque event announced to subscribers.

    Attributes:
        event_id: Identifier in the events system.
        title: Event title.
        description: Short description.
        date: Display date, if any.
        category: One of the preference store's event categories.
    """

    event_id: str
    title: str
    description: str
    date: Optional[str] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class ComposedMessage:
    """A localized notification ready for dispatch."""

    title: str
    body: str
    kind: str
    sound: str
    channel_group: str
    tap_action: str
    prayer_name: Optional[str] = None
    event_id: Optional[str] = None


@dataclass(frozen=True)
class DispatchOutcome:
    """Result of one channel attempt.

    Attributes:
        channel: "A" or "B".
        success: Whether the provider accepted the message.
        provider_message_id: Provider-assigned id on success.
        error_detail: Failure description on failure.
        sent_count: Recipients delivered (channel B only).
        failed_count: Recipients rejected (channel B only).
    """

    channel: str
    success: bool
    provider_message_id: Optional[str] = None
    error_detail: Optional[str] = None
    sent_count: Optional[int] = None
    failed_count: Optional[int] = None


@dataclass(frozen=True)
class DispatchResult:
    """Aggregated outcome of one dispatch call.

    An empty outcomes list with success=False means nothing was attempted
    (toggle off, unknown prayer/category, or no tokens); message says which.
    """

    success: bool
    outcomes: list[DispatchOutcome] = field(default_factory=list)
    message: str = ""

    @property
    def attempted(self) -> bool:
        return bool(self.outcomes)


@dataclass(frozen=True)
class UserDispatchResult:
    """One user's entry in a bulk dispatch."""

    user_id: str
    success: bool
    outcomes: list[DispatchOutcome] = field(default_factory=list)
    message: str = ""
    error: Optional[str] = None


@dataclass(frozen=True)
class BulkResult:
    """Aggregated outcome of a bulk dispatch, per_user in input order."""

    total_sent: int
    total_failed: int
    per_user: list[UserDispatchResult] = field(default_factory=list)
