"""Prayer Notifier — AlAdhan HTTP Client.

Thin async client for the AlAdhan prayer-time API built on
httpx.AsyncClient. One request per call, no retries: every timeout,
connection failure, HTTP error status, undecodable body or non-200
envelope code is raised as ProviderError so callers decide what to do.

API Documentation:
- Prayer Times: https://aladhan.com/prayer-times-api
- Qibla: https://aladhan.com/qibla-api
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from prayer_notifier.config import ProviderConfig
from prayer_notifier.errors import ProviderError
from prayer_notifier.utils.logger import get_logger

logger = get_logger(__name__)


class AlAdhanClient:
    """Async HTTP client for api.aladhan.com.

    Attributes:
        config: Provider configuration (base URL, timeouts).
        total_requests: Count of successful requests this session.
    """

    def __init__(
        self,
        config: ProviderConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: ProviderConfig from the app configuration.
            http_client: Pre-built httpx client (tests pass one with a
                MockTransport). Created lazily when omitted.
        """
        self.config = config
        self.total_requests: int = 0
        self._client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"Accept": "application/json"},
                follow_redirects=True,
            )
        return self._client

    async def get_timings(
        self,
        date_str: str,
        latitude: float,
        longitude: float,
        method: int,
        timezone: Optional[str] = None,
    ) -> dict[str, Any]:
        """Fetch one day's timings.

        Args:
            date_str: Date in DD-MM-YYYY format.
            latitude: Location latitude.
            longitude: Location longitude.
            method: Calculation method code.
            timezone: Optional IANA zone, sent as timezonestring.

        Returns:
            The 'data' object of the response (timings, date, meta).
        """
        params: dict[str, Any] = {
            "latitude": latitude,
            "longitude": longitude,
            "method": method,
            "date": date_str,
        }
        if timezone:
            params["timezonestring"] = timezone

        logger.info("Fetching prayer times for %s (%s, %s)", date_str, latitude, longitude)
        return await self._get(
            f"/timings/{date_str}", params, self.config.timeout_seconds,
        )

    async def get_calendar(
        self,
        year: int,
        month: int,
        latitude: float,
        longitude: float,
        method: int,
    ) -> list[dict[str, Any]]:
        """Fetch a month of timings, one record per day."""
        logger.info("Fetching prayer calendar %d-%02d (%s, %s)", year, month, latitude, longitude)
        data = await self._get(
            f"/calendar/{year}/{month}",
            {"latitude": latitude, "longitude": longitude, "method": method},
            self.config.monthly_timeout_seconds,
        )
        if not isinstance(data, list):
            raise ProviderError("Calendar response 'data' is not a list")
        return data

    async def get_qibla(self, latitude: float, longitude: float) -> dict[str, Any]:
        """Fetch the Qibla direction for a coordinate pair."""
        logger.info("Fetching Qibla direction for (%s, %s)", latitude, longitude)
        return await self._get(
            f"/qibla/{latitude}/{longitude}", None, self.config.timeout_seconds,
        )

    async def _get(
        self,
        path: str,
        params: Optional[dict[str, Any]],
        timeout: float,
    ) -> Any:
        """Issue one GET and unwrap the AlAdhan {code, status, data} envelope.

        Raises:
            ProviderError: On any transport, HTTP or envelope failure.
        """
        client = await self._get_client()
        url = f"{self.config.base_url}{path}"

        try:
            resp = await client.get(url, params=params, timeout=timeout)
            resp.raise_for_status()
            payload = resp.json()
        except httpx.TimeoutException as e:
            logger.warning("AlAdhan request timed out after %.0fs: %s", timeout, path)
            raise ProviderError(f"Prayer-time service timed out ({path})", e) from e
        except httpx.HTTPStatusError as e:
            logger.warning("AlAdhan HTTP %d for %s", e.response.status_code, path)
            raise ProviderError(
                f"Prayer-time service returned HTTP {e.response.status_code}", e,
            ) from e
        except httpx.HTTPError as e:
            logger.warning("AlAdhan request failed for %s: %s", path, e)
            raise ProviderError(f"Prayer-time service unreachable: {e}", e) from e
        except ValueError as e:
            raise ProviderError(f"Invalid JSON from prayer-time service ({path})", e) from e

        if not isinstance(payload, dict) or payload.get("code") != 200:
            status = payload.get("status", "unknown error") if isinstance(payload, dict) else "malformed"
            raise ProviderError(f"Prayer-time service error: {status}")

        self.total_requests += 1
        return payload.get("data")

    async def close(self) -> None:
        """Close the underlying httpx client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
            logger.debug("HTTP client closed (total requests: %d)", self.total_requests)

    async def __aenter__(self) -> "AlAdhanClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
