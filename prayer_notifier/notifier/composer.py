"""Prayer Notifier — Message Composer.

Builds localized push notification copy for prayer, event and test
alerts. Templates exist for English and Arabic.

Fallbacks:
  - unsupported language (including "ur") → English
  - unknown prayer name → Fajr's copy
"""

from __future__ import annotations

from typing import Optional

from prayer_notifier.models import (
    KIND_EVENT,
    KIND_PRAYER,
    KIND_TEST,
    CommunityEvent,
    ComposedMessage,
)
from prayer_notifier.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_LANGUAGE = "en"
DEFAULT_SOUND = "default"

PRAYER_CHANNEL_GROUP = "prayer_notifications"
EVENT_CHANNEL_GROUP = "event_notifications"

TAP_PRAYER = "OPEN_PRAYER_TIMES"
TAP_EVENT = "OPEN_EVENTS"
TAP_TEST = "OPEN_APP"

# ── Prayer templates: (title, body with {time}) ──────────
_PRAYER_TEMPLATES: dict[str, dict[str, tuple[str, str]]] = {
    "en": {
        "fajr": ("🌅 Fajr Prayer Time", "Fajr prayer time is at {time}. Prepare for prayer."),
        "dhuhr": ("☀️ Dhuhr Prayer Time", "Dhuhr prayer time is at {time}. Time for midday prayer."),
        "asr": ("🌤️ Asr Prayer Time", "Asr prayer time is at {time}. Afternoon prayer time."),
        "maghrib": ("🌅 Maghrib Prayer Time", "Maghrib prayer time is at {time}. Sunset prayer time."),
        "isha": ("🌙 Isha Prayer Time", "Isha prayer time is at {time}. Night prayer time."),
        "jumma": ("🕌 Jumma Prayer", "Jumma prayer is at {time}. Don't miss the Friday congregation."),
    },
    "ar": {
        "fajr": ("🌅 صلاة الفجر", "وقت صلاة الفجر {time}. استعد للصلاة."),
        "dhuhr": ("☀️ صلاة الظهر", "وقت صلاة الظهر {time}. وقت صلاة الظهيرة."),
        "asr": ("🌤️ صلاة العصر", "وقت صلاة العصر {time}. وقت صلاة بعد الظهر."),
        "maghrib": ("🌅 صلاة المغرب", "وقت صلاة المغرب {time}. وقت صلاة الغروب."),
        "isha": ("🌙 صلاة العشاء", "وقت صلاة العشاء {time}. وقت صلاة الليل."),
        "jumma": ("🕌 صلاة الجمعة", "صلاة الجمعة {time}. لا تفوت جماعة الجمعة."),
    },
}

# Label placed before an event's date.
_EVENT_DATE_LABELS = {
    "en": "Date",
    "ar": "التاريخ",
}

_TEST_TITLE = "🧪 Test Notification"
_TEST_BODY = "This is a test notification from the Central Mosque Rochdale app."


def _language(language: Optional[str]) -> str:
    if language in _PRAYER_TEMPLATES:
        return language
    if language and language != DEFAULT_LANGUAGE:
        logger.debug("No templates for language %r, using English", language)
    return DEFAULT_LANGUAGE


def compose_prayer_message(
    prayer_name: str,
    prayer_time: str,
    language: Optional[str] = DEFAULT_LANGUAGE,
) -> ComposedMessage:
    """Build the alert for a prayer.

    Args:
        prayer_name: fajr, dhuhr, asr, maghrib, isha or jumma.
        prayer_time: "HH:MM" shown in the body.
        language: en or ar; anything else falls back to en.

    Returns:
        ComposedMessage with kind=prayer.
    """
    templates = _PRAYER_TEMPLATES[_language(language)]
    title, body = templates.get(prayer_name) or templates["fajr"]

    return ComposedMessage(
        title=title,
        body=body.format(time=prayer_time),
        kind=KIND_PRAYER,
        prayer_name=prayer_name,
        sound=DEFAULT_SOUND,
        channel_group=PRAYER_CHANNEL_GROUP,
        tap_action=TAP_PRAYER,
    )


def compose_event_message(
    event: CommunityEvent,
    language: Optional[str] = DEFAULT_LANGUAGE,
) -> ComposedMessage:
    """Build the alert for a community event.

    Body is the description, followed by a localized date line when the
    event has a date.
    """
    lang = _language(language)
    body = f"{event.description}."
    if event.date:
        body = f"{body} {_EVENT_DATE_LABELS[lang]}: {event.date}"

    return ComposedMessage(
        title=f"🕌 {event.title}",
        body=body,
        kind=KIND_EVENT,
        event_id=event.event_id,
        sound=DEFAULT_SOUND,
        channel_group=EVENT_CHANNEL_GROUP,
        tap_action=TAP_EVENT,
    )


def compose_test_message(prayer_name: Optional[str] = None) -> ComposedMessage:
    """Fixed test copy used to verify a user's device tokens."""
    return ComposedMessage(
        title=_TEST_TITLE,
        body=_TEST_BODY,
        kind=KIND_TEST,
        prayer_name=prayer_name or "fajr",
        sound=DEFAULT_SOUND,
        channel_group=PRAYER_CHANNEL_GROUP,
        tap_action=TAP_TEST,
    )


def message_data(message: ComposedMessage) -> dict[str, str]:
    """Custom key/value metadata sent alongside the visible alert.

    Both providers require string values, so missing ids become "".
    """
    return {
        "type": f"{message.kind}_notification",
        "prayer": message.prayer_name or "",
        "eventId": message.event_id or "",
        "clickAction": message.tap_action,
    }
