"""Shared fixtures: fake clocks, AlAdhan payloads, fake push channels."""

from __future__ import annotations

import os
import tempfile

os.environ.setdefault("PRAYER_NOTIFIER_LOG_DIR", tempfile.mkdtemp(prefix="prayer-notifier-logs-"))

from datetime import datetime
from typing import Any, Optional

import pytest

from prayer_notifier.config import ProviderConfig
from prayer_notifier.models import (
    CHANNEL_A,
    CHANNEL_B,
    ComposedMessage,
    DeviceTokens,
    DispatchOutcome,
    NotificationPreferenceView,
    PrayerDate,
    PrayerSet,
    PrayerTimes,
    PrayerToggle,
)
from prayer_notifier.notifier.channels import PushChannel


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeChannel(PushChannel):
    """Push channel recording calls; fails for tokens listed in fail_tokens."""

    def __init__(self, channel: str, fail_tokens: Optional[set[str]] = None,
                 configured: bool = True, raise_tokens: Optional[set[str]] = None) -> None:
        self.channel = channel
        self.name = f"fake-{channel}"
        super().__init__()
        self.calls: list[tuple[str, ComposedMessage]] = []
        self.fail_tokens = fail_tokens or set()
        self.raise_tokens = raise_tokens or set()
        self._configured = configured

    @property
    def configured(self) -> bool:
        return self._configured

    async def _deliver(self, token: str, message: ComposedMessage) -> DispatchOutcome:
        self.calls.append((token, message))
        if token in self.raise_tokens:
            raise RuntimeError(f"boom for {token}")
        if token in self.fail_tokens:
            return DispatchOutcome(channel=self.channel, success=False, error_detail="rejected")
        return DispatchOutcome(
            channel=self.channel, success=True, provider_message_id=f"msg-{token}",
        )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider_config() -> ProviderConfig:
    return ProviderConfig(
        base_url="https://api.aladhan.test/v1",
        timeout_seconds=10,
        monthly_timeout_seconds=15,
        default_method=2,
        reference_latitude=51.5074,
        reference_longitude=-0.1278,
        local_timezone="Europe/London",
    )


@pytest.fixture
def fixed_now() -> datetime:
    # A Monday.
    return datetime(2026, 10, 19, 13, 0)


def make_day_record(
    fajr: str = "05:00 (BST)",
    dhuhr: str = "12:30 (BST)",
    asr: str = "15:45 (BST)",
    maghrib: str = "18:20 (BST)",
    isha: str = "20:00 (BST)",
    date: str = "19-10-2026",
) -> dict[str, Any]:
    return {
        "timings": {
            "Fajr": fajr,
            "Sunrise": "07:20 (BST)",
            "Dhuhr": dhuhr,
            "Asr": asr,
            "Sunset": "18:20 (BST)",
            "Maghrib": maghrib,
            "Isha": isha,
            "Imsak": "04:50 (BST)",
            "Midnight": "00:40 (BST)",
        },
        "date": {
            "readable": "19 Oct 2026",
            "timestamp": "1792396800",
            "gregorian": {"date": date, "day": date[:2], "month": {"number": 10, "en": "October"}},
            "hijri": {"date": "07-05-1448", "day": "07", "month": {"number": 5, "en": "Jumādá al-ūlá"}, "year": "1448"},
        },
        "meta": {"latitude": 53.6097, "longitude": -2.1561, "method": {"id": 2, "name": "ISNA"}},
    }


def envelope(data: Any, code: int = 200, status: str = "OK") -> dict[str, Any]:
    return {"code": code, "status": status, "data": data}


@pytest.fixture
def prayer_set() -> PrayerSet:
    return PrayerSet(
        date=PrayerDate(readable="19 Oct 2026"),
        prayers=PrayerTimes(
            fajr="05:00",
            sunrise="07:20",
            dhuhr="12:30",
            asr="15:45",
            maghrib="18:20",
            isha="20:00",
            jumma="12:30",
        ),
    )


def make_preferences(
    user_id: str = "user-1",
    android: Optional[str] = "android-token",
    ios: Optional[str] = "ios-token",
    language: str = "en",
    **overrides: Any,
) -> NotificationPreferenceView:
    per_prayer = {
        "fajr": PrayerToggle(enabled=True, alert_minutes=10),
        "dhuhr": PrayerToggle(enabled=True, alert_minutes=15),
        "asr": PrayerToggle(enabled=True, alert_minutes=5),
        "maghrib": PrayerToggle(enabled=True, alert_minutes=10),
        "isha": PrayerToggle(enabled=True, alert_minutes=15),
        "jumma": PrayerToggle(enabled=True, alert_minutes=30),
    }
    per_prayer.update(overrides.pop("per_prayer", {}))
    return NotificationPreferenceView(
        user_id=user_id,
        per_prayer=per_prayer,
        event_categories=overrides.pop(
            "event_categories", {"religious": True, "community": True, "fundraising": False},
        ),
        events_enabled=overrides.pop("events_enabled", True),
        device_tokens=DeviceTokens(channel_a=android, channel_b=ios),
        language=language,
        **overrides,
    )


@pytest.fixture
def channel_a() -> FakeChannel:
    return FakeChannel(CHANNEL_A)


@pytest.fixture
def channel_b() -> FakeChannel:
    return FakeChannel(CHANNEL_B)
