"""Tests for the AlAdhan client and the caching prayer-time provider."""

from __future__ import annotations

import asyncio
from datetime import datetime

import httpx
import pytest

from conftest import envelope, make_day_record
from prayer_notifier.errors import ProviderError
from prayer_notifier.prayer.client import AlAdhanClient
from prayer_notifier.prayer.provider import (
    PrayerTimeProvider,
    calculation_methods,
    daily_key,
    format_time,
    method_name,
    monthly_key,
)
from prayer_notifier.utils.ttl_cache import DEFAULT_TTL_SECONDS, TTLCache


class Recorder:
    """MockTransport handler that records requests and replays a response."""

    def __init__(self, responder) -> None:
        self.requests: list[httpx.Request] = []
        self._responder = responder

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responder(request)


def _provider(provider_config, clock, responder):
    recorder = Recorder(responder)
    http = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    client = AlAdhanClient(provider_config, http_client=http)
    provider = PrayerTimeProvider(
        client,
        TTLCache(clock=clock),
        provider_config,
        clock=lambda: datetime(2026, 10, 19, 9, 30),
    )
    return provider, recorder


def test_format_time_strips_timezone_annotation() -> None:
    assert format_time("15:45 (GMT)") == "15:45"
    assert format_time("05:12") == "05:12"
    assert format_time("") == ""


def test_daily_times_normalized_and_jumma_mirrors_dhuhr(provider_config, clock) -> None:
    provider, recorder = _provider(
        provider_config, clock, lambda r: httpx.Response(200, json=envelope(make_day_record())),
    )

    prayer_set = asyncio.run(provider.get_daily_times(53.6097, -2.1561))

    assert prayer_set.prayers.fajr == "05:00"
    assert prayer_set.prayers.asr == "15:45"
    assert prayer_set.prayers.sunrise == "07:20"
    assert prayer_set.prayers.jumma == prayer_set.prayers.dhuhr == "12:30"
    assert prayer_set.date.readable == "19 Oct 2026"
    assert prayer_set.date.hijri["year"] == "1448"

    request = recorder.requests[0]
    assert request.url.path == "/v1/timings/19-10-2026"
    assert request.url.params["method"] == "2"
    assert request.url.params["date"] == "19-10-2026"
    assert "timezonestring" not in request.url.params


def test_daily_times_sends_timezone_when_given(provider_config, clock) -> None:
    provider, recorder = _provider(
        provider_config, clock, lambda r: httpx.Response(200, json=envelope(make_day_record())),
    )

    asyncio.run(provider.get_daily_times(53.6, -2.1, date="20-10-2026", method=3,
                                         timezone="Europe/London"))

    params = recorder.requests[0].url.params
    assert params["timezonestring"] == "Europe/London"
    assert params["method"] == "3"
    assert recorder.requests[0].url.path.endswith("/timings/20-10-2026")


def test_daily_times_served_from_cache_until_expiry(provider_config, clock) -> None:
    provider, recorder = _provider(
        provider_config, clock, lambda r: httpx.Response(200, json=envelope(make_day_record())),
    )

    async def scenario() -> None:
        first = await provider.get_daily_times(53.6, -2.1)
        second = await provider.get_daily_times(53.6, -2.1)
        assert first == second
        assert len(recorder.requests) == 1

        clock.advance(DEFAULT_TTL_SECONDS)
        await provider.get_daily_times(53.6, -2.1)
        assert len(recorder.requests) == 2

    asyncio.run(scenario())


def test_different_methods_do_not_share_cache_entry(provider_config, clock) -> None:
    provider, recorder = _provider(
        provider_config, clock, lambda r: httpx.Response(200, json=envelope(make_day_record())),
    )

    async def scenario() -> None:
        await provider.get_daily_times(53.6, -2.1, method=2)
        await provider.get_daily_times(53.6, -2.1, method=4)

    asyncio.run(scenario())
    assert len(recorder.requests) == 2


def test_cache_keys_are_deterministic_and_distinct() -> None:
    assert daily_key(51.5, -0.1, "19-10-2026", 2, None) == daily_key(51.50, -0.10, "19-10-2026", 2, None)
    assert daily_key(51.5, -0.1, "19-10-2026", 2, None) != daily_key(51.5, -0.1, "19-10-2026", 2, "Europe/London")
    assert monthly_key(51.5, -0.1, 2026, 1, 2) != monthly_key(51.5, -0.1, 2026, 11, 2)
    assert monthly_key(51.5, -0.1, 2026, 11, 2) != monthly_key(51.5, -0.1, 2026, 1, 12)


def test_non_success_code_raises_provider_error(provider_config, clock) -> None:
    provider, _ = _provider(
        provider_config, clock,
        lambda r: httpx.Response(200, json=envelope("Invalid date", code=400, status="BAD_REQUEST")),
    )

    with pytest.raises(ProviderError, match="BAD_REQUEST"):
        asyncio.run(provider.get_daily_times(53.6, -2.1))
    assert provider.cache_stats()["count"] == 0


def test_http_error_status_raises_provider_error(provider_config, clock) -> None:
    provider, _ = _provider(provider_config, clock, lambda r: httpx.Response(503))

    with pytest.raises(ProviderError, match="HTTP 503") as exc_info:
        asyncio.run(provider.get_daily_times(53.6, -2.1))
    assert isinstance(exc_info.value.cause, httpx.HTTPStatusError)


def test_timeout_raises_provider_error_without_retry(provider_config, clock) -> None:
    def timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    provider, recorder = _provider(provider_config, clock, timeout)

    with pytest.raises(ProviderError, match="timed out"):
        asyncio.run(provider.get_daily_times(53.6, -2.1))
    assert len(recorder.requests) == 1


def test_malformed_record_raises_provider_error(provider_config, clock) -> None:
    provider, _ = _provider(
        provider_config, clock, lambda r: httpx.Response(200, json=envelope({"date": {}})),
    )

    with pytest.raises(ProviderError, match="Malformed"):
        asyncio.run(provider.get_daily_times(53.6, -2.1))


def test_monthly_times_default_to_current_month(provider_config, clock) -> None:
    days = [make_day_record(date=f"{d:02d}-10-2026") for d in (1, 2, 3)]
    provider, recorder = _provider(
        provider_config, clock, lambda r: httpx.Response(200, json=envelope(days)),
    )

    async def scenario() -> None:
        monthly = await provider.get_monthly_times(53.6, -2.1)
        assert len(monthly) == 3
        assert monthly[1].date.gregorian["date"] == "02-10-2026"
        assert monthly[0].date.hijri["date"] == "07-05-1448"
        assert all(day.prayers.jumma == day.prayers.dhuhr for day in monthly)

        await provider.get_monthly_times(53.6, -2.1, year=2026, month=10)

    asyncio.run(scenario())
    assert recorder.requests[0].url.path == "/v1/calendar/2026/10"
    assert len(recorder.requests) == 1


def test_qibla_cached_without_expiry(provider_config, clock) -> None:
    provider, recorder = _provider(
        provider_config, clock,
        lambda r: httpx.Response(200, json=envelope(
            {"latitude": 53.6097, "longitude": -2.1561, "direction": 118.97},
        )),
    )

    async def scenario() -> None:
        first = await provider.get_qibla(53.6097, -2.1561)
        clock.advance(DEFAULT_TTL_SECONDS * 30)
        second = await provider.get_qibla(53.6097, -2.1561)
        assert first == second
        assert first.direction == pytest.approx(118.97)

    asyncio.run(scenario())
    assert len(recorder.requests) == 1
    assert recorder.requests[0].url.path == "/v1/qibla/53.6097/-2.1561"


def test_islamic_date_defaults_to_reference_location(provider_config, clock) -> None:
    provider, recorder = _provider(
        provider_config, clock, lambda r: httpx.Response(200, json=envelope(make_day_record())),
    )

    async def scenario() -> None:
        islamic = await provider.get_islamic_date()
        assert islamic.hijri["year"] == "1448"
        assert islamic.gregorian["date"] == "19-10-2026"
        await provider.get_islamic_date()

    asyncio.run(scenario())
    assert len(recorder.requests) == 1
    params = recorder.requests[0].url.params
    assert params["latitude"] == "51.5074"
    assert params["longitude"] == "-0.1278"


def test_calculation_method_catalog() -> None:
    methods = calculation_methods()

    assert methods[2] == "Islamic Society of North America (ISNA)"
    assert methods[4] == "Umm Al-Qura University, Makkah"
    assert 6 not in methods
    assert method_name(99) == "Method 99"

    methods[2] = "changed"
    assert calculation_methods()[2] != "changed"
