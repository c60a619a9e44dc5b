"""Prayer Notifier — Prayer Time Provider.

Normalizes AlAdhan responses into PrayerSet / QiblaInfo / IslamicDate
values and caches them. Daily and monthly times expire with the cache's
default TTL; Qibla directions never expire.

Cache keys are built from every parameter that changes the result, so
two different requests never share an entry:

    daily|lat|lon|DD-MM-YYYY|method|timezone
    monthly|lat|lon|year|month|method
    qibla|lat|lon
    islamic-date|lat|lon|DD-MM-YYYY
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Mapping, Optional
from zoneinfo import ZoneInfo

from prayer_notifier.config import ProviderConfig
from prayer_notifier.errors import ProviderError
from prayer_notifier.models import IslamicDate, PrayerDate, PrayerSet, PrayerTimes, QiblaInfo
from prayer_notifier.prayer.client import AlAdhanClient
from prayer_notifier.utils.logger import get_logger
from prayer_notifier.utils.ttl_cache import NEVER_EXPIRES, TTLCache

logger = get_logger(__name__)

# ── Calculation methods (AlAdhan codes) ──────────────────
CALCULATION_METHODS: dict[int, str] = {
    1: "University of Islamic Sciences, Karachi",
    2: "Islamic Society of North America (ISNA)",
    3: "Muslim World League",
    4: "Umm Al-Qura University, Makkah",
    5: "Egyptian General Authority of Survey",
    7: "Institute of Geophysics, University of Tehran",
    8: "Gulf Region",
    9: "Kuwait",
    10: "Qatar",
    11: "Majlis Ugama Islam Singapura, Singapore",
    12: "Union Organization Islamic de France",
    13: "Diyanet İşleri Başkanlığı, Turkey",
    14: "Spiritual Administration of Muslims of Russia",
}


def calculation_methods() -> dict[int, str]:
    """Return a copy of the method code → authority name catalog."""
    return dict(CALCULATION_METHODS)


def method_name(code: int) -> str:
    return CALCULATION_METHODS.get(code, f"Method {code}")


def format_time(raw: str) -> str:
    """Strip the timezone annotation from an AlAdhan time string.

    "15:45 (GMT)" → "15:45", "05:12 (+03)" → "05:12".
    """
    parts = str(raw).split()
    return parts[0] if parts else ""


def _coord(value: float) -> str:
    return repr(float(value))


def daily_key(lat: float, lon: float, date_str: str, method: int, timezone: Optional[str]) -> str:
    return f"daily|{_coord(lat)}|{_coord(lon)}|{date_str}|{method}|{timezone or '-'}"


def monthly_key(lat: float, lon: float, year: int, month: int, method: int) -> str:
    return f"monthly|{_coord(lat)}|{_coord(lon)}|{year}|{month}|{method}"


def qibla_key(lat: float, lon: float) -> str:
    return f"qibla|{_coord(lat)}|{_coord(lon)}"


def islamic_date_key(lat: float, lon: float, date_str: str) -> str:
    return f"islamic-date|{_coord(lat)}|{_coord(lon)}|{date_str}"


def parse_prayer_set(data: Mapping[str, Any]) -> PrayerSet:
    """Build a PrayerSet from one AlAdhan day record.

    Raises:
        ProviderError: If the record lacks timings or date fields.
    """
    try:
        timings = data["timings"]
        date = data["date"]
        dhuhr = format_time(timings["Dhuhr"])
        prayers = PrayerTimes(
            fajr=format_time(timings["Fajr"]),
            sunrise=format_time(timings["Sunrise"]),
            dhuhr=dhuhr,
            asr=format_time(timings["Asr"]),
            maghrib=format_time(timings["Maghrib"]),
            isha=format_time(timings["Isha"]),
            jumma=dhuhr,
        )
        return PrayerSet(
            date=PrayerDate(
                readable=date.get("readable", ""),
                gregorian=dict(date.get("gregorian") or {}),
                hijri=dict(date.get("hijri") or {}),
            ),
            prayers=prayers,
            meta=dict(data.get("meta") or {}),
        )
    except (KeyError, TypeError, AttributeError) as e:
        raise ProviderError(f"Malformed prayer-time record: missing {e}", e) from e


class PrayerTimeProvider:
    """Cached access to prayer times, Qibla direction and Hijri date.

    Attributes:
        client: AlAdhan HTTP client.
        cache: Shared TTL cache.
        config: Provider configuration.
    """

    def __init__(
        self,
        client: AlAdhanClient,
        cache: TTLCache,
        config: ProviderConfig,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize the provider.

        Args:
            client: AlAdhanClient used on cache misses.
            cache: TTLCache holding normalized results.
            config: ProviderConfig (default method, reference location, timezone).
            clock: Returns the current local datetime; defaults to now()
                in config.local_timezone.
        """
        self.client = client
        self.cache = cache
        self.config = config
        self._clock = clock or (lambda: datetime.now(ZoneInfo(config.local_timezone)))

    def current_date(self) -> str:
        """Today's date in the provider's timezone, DD-MM-YYYY."""
        return self._clock().strftime("%d-%m-%Y")

    async def get_daily_times(
        self,
        latitude: float,
        longitude: float,
        date: Optional[str] = None,
        method: Optional[int] = None,
        timezone: Optional[str] = None,
    ) -> PrayerSet:
        """Prayer times for one day.

        Args:
            latitude: Location latitude.
            longitude: Location longitude.
            date: DD-MM-YYYY; defaults to today.
            method: Calculation method code; defaults to config (ISNA).
            timezone: Optional IANA zone forwarded to the service.

        Raises:
            ProviderError: If the service call fails or returns bad data.
        """
        date_str = date or self.current_date()
        calc_method = method or self.config.default_method
        key = daily_key(latitude, longitude, date_str, calc_method, timezone)

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit: %s", key)
            return cached

        data = await self.client.get_timings(
            date_str, latitude, longitude, calc_method, timezone,
        )
        prayer_set = parse_prayer_set(data)
        self.cache.set(key, prayer_set)

        logger.info(
            "Prayer times %s: Fajr %s, Dhuhr %s, Maghrib %s",
            date_str, prayer_set.prayers.fajr, prayer_set.prayers.dhuhr,
            prayer_set.prayers.maghrib,
        )
        return prayer_set

    async def get_monthly_times(
        self,
        latitude: float,
        longitude: float,
        year: Optional[int] = None,
        month: Optional[int] = None,
        method: Optional[int] = None,
    ) -> list[PrayerSet]:
        """Prayer times for every day of a month, in calendar order.

        Raises:
            ProviderError: If the service call fails or returns bad data.
        """
        now = self._clock()
        req_year = year or now.year
        req_month = month or now.month
        calc_method = method or self.config.default_method
        key = monthly_key(latitude, longitude, req_year, req_month, calc_method)

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit: %s", key)
            return cached

        days = await self.client.get_calendar(
            req_year, req_month, latitude, longitude, calc_method,
        )
        monthly = [parse_prayer_set(day) for day in days]
        self.cache.set(key, monthly)

        logger.info("Monthly prayer times %d-%02d: %d days", req_year, req_month, len(monthly))
        return monthly

    async def get_qibla(self, latitude: float, longitude: float) -> QiblaInfo:
        """Qibla direction; cached permanently once fetched."""
        key = qibla_key(latitude, longitude)

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        data = await self.client.get_qibla(latitude, longitude)
        try:
            qibla = QiblaInfo(
                direction=float(data["direction"]),
                latitude=float(data.get("latitude", latitude)),
                longitude=float(data.get("longitude", longitude)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(f"Malformed Qibla response: {e}", e) from e

        self.cache.set(key, qibla, ttl=NEVER_EXPIRES)
        logger.info("Qibla for (%s, %s): %.2f°", latitude, longitude, qibla.direction)
        return qibla

    async def get_islamic_date(
        self,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> IslamicDate:
        """Today's Hijri and Gregorian dates.

        Falls back to the configured reference location when no
        coordinates are given. Cached per calendar day.
        """
        lat = self.config.reference_latitude if latitude is None else latitude
        lon = self.config.reference_longitude if longitude is None else longitude
        today = self.current_date()
        key = islamic_date_key(lat, lon, today)

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        data = await self.client.get_timings(today, lat, lon, self.config.default_method)
        try:
            date = data["date"]
            islamic = IslamicDate(hijri=dict(date["hijri"]), gregorian=dict(date["gregorian"]))
        except (KeyError, TypeError) as e:
            raise ProviderError(f"Malformed date block: missing {e}", e) from e

        self.cache.set(key, islamic)
        return islamic

    def calculation_methods(self) -> dict[int, str]:
        return calculation_methods()

    def clear_cache(self) -> None:
        self.cache.clear()

    def cache_stats(self) -> dict[str, Any]:
        return self.cache.stats()
