"""Tests for localized notification copy."""

from __future__ import annotations

from prayer_notifier.models import KIND_EVENT, KIND_PRAYER, KIND_TEST, CommunityEvent
from prayer_notifier.notifier.composer import (
    EVENT_CHANNEL_GROUP,
    PRAYER_CHANNEL_GROUP,
    TAP_EVENT,
    TAP_PRAYER,
    TAP_TEST,
    compose_event_message,
    compose_prayer_message,
    compose_test_message,
    message_data,
)


def test_english_prayer_message() -> None:
    message = compose_prayer_message("maghrib", "18:20", "en")

    assert message.title == "🌅 Maghrib Prayer Time"
    assert message.body == "Maghrib prayer time is at 18:20. Sunset prayer time."
    assert message.kind == KIND_PRAYER
    assert message.prayer_name == "maghrib"
    assert message.sound == "default"
    assert message.channel_group == PRAYER_CHANNEL_GROUP
    assert message.tap_action == TAP_PRAYER


def test_arabic_prayer_message() -> None:
    message = compose_prayer_message("asr", "15:45", "ar")

    assert message.title == "🌤️ صلاة العصر"
    assert message.body == "وقت صلاة العصر 15:45. وقت صلاة بعد الظهر."


def test_unsupported_language_falls_back_to_english() -> None:
    french = compose_prayer_message("isha", "20:00", "fr")
    urdu = compose_prayer_message("isha", "20:00", "ur")
    english = compose_prayer_message("isha", "20:00", "en")

    assert (french.title, french.body) == (english.title, english.body)
    assert (urdu.title, urdu.body) == (english.title, english.body)


def test_unknown_prayer_uses_fajr_copy() -> None:
    message = compose_prayer_message("tahajjud", "03:00", "en")

    assert message.title == "🌅 Fajr Prayer Time"
    assert message.body == "Fajr prayer time is at 03:00. Prepare for prayer."


def test_jumma_message() -> None:
    message = compose_prayer_message("jumma", "13:15")

    assert message.title == "🕌 Jumma Prayer"
    assert "13:15" in message.body


def test_event_message_with_date() -> None:
    event = CommunityEvent(
        event_id="evt-1",
        title="Quran Circle",
        description="Weekly recitation after Maghrib",
        date="2026-10-24",
        category="educational",
    )

    message = compose_event_message(event, "en")

    assert message.title == "🕌 Quran Circle"
    assert message.body == "Weekly recitation after Maghrib. Date: 2026-10-24"
    assert message.kind == KIND_EVENT
    assert message.event_id == "evt-1"
    assert message.channel_group == EVENT_CHANNEL_GROUP
    assert message.tap_action == TAP_EVENT


def test_event_message_without_date_has_no_date_label() -> None:
    event = CommunityEvent(event_id="evt-2", title="Iftar", description="Open iftar for all")

    english = compose_event_message(event, "en")
    arabic = compose_event_message(event, "ar")

    assert english.body == "Open iftar for all."
    assert "Date" not in english.body
    assert "التاريخ" not in arabic.body


def test_arabic_event_date_label() -> None:
    event = CommunityEvent(event_id="e", title="t", description="d", date="2026-11-01")

    assert compose_event_message(event, "ar").body == "d. التاريخ: 2026-11-01"


def test_test_message() -> None:
    default = compose_test_message()
    named = compose_test_message("isha")

    assert default.title == "🧪 Test Notification"
    assert default.kind == KIND_TEST
    assert default.prayer_name == "fajr"
    assert default.tap_action == TAP_TEST
    assert named.prayer_name == "isha"


def test_message_data_values_are_strings() -> None:
    prayer = message_data(compose_prayer_message("fajr", "05:00"))
    event = message_data(compose_event_message(CommunityEvent("evt-9", "t", "d")))

    assert prayer == {
        "type": "prayer_notification",
        "prayer": "fajr",
        "eventId": "",
        "clickAction": TAP_PRAYER,
    }
    assert event["type"] == "event_notification"
    assert event["eventId"] == "evt-9"
    assert all(isinstance(v, str) for v in event.values())
