"""Prayer Notifier — Engine Wiring and Command Line.

Builds the engine from configuration (cache → AlAdhan client → provider,
FCM/APNs channels → dispatcher → orchestrator) and exposes a one-shot
command line for operators. Deciding when to run is left to whatever
invokes it (cron, a web handler, a task queue).

Usage:
    prayer-notifier times --lat 53.6097 --lon -2.1561
    prayer-notifier next --lat 53.6097 --lon -2.1561
    prayer-notifier qibla --lat 53.6097 --lon -2.1561
    prayer-notifier islamic-date
    prayer-notifier methods
    prayer-notifier test-push --android-token TOKEN --ios-token TOKEN
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

from prayer_notifier.config import AppConfig, load_config
from prayer_notifier.errors import NotifierError
from prayer_notifier.models import DeviceTokens, NotificationPreferenceView
from prayer_notifier.notifier.channels import ApnsChannel, ChannelDispatcher, FcmChannel
from prayer_notifier.notifier.orchestrator import NotificationOrchestrator
from prayer_notifier.prayer.client import AlAdhanClient
from prayer_notifier.prayer.evaluator import next_prayer
from prayer_notifier.prayer.provider import PrayerTimeProvider, calculation_methods, method_name
from prayer_notifier.utils.logger import get_logger, set_console_level
from prayer_notifier.utils.rate_limiter import AsyncRateLimiter
from prayer_notifier.utils.ttl_cache import TTLCache

logger = get_logger(__name__)


@dataclass
class Engine:
    """All engine components, built once per process."""

    config: AppConfig
    provider: PrayerTimeProvider
    dispatcher: ChannelDispatcher
    orchestrator: NotificationOrchestrator

    async def close(self) -> None:
        await self.provider.client.close()
        await self.dispatcher.close()


def build_engine(config: AppConfig) -> Engine:
    """Construct the engine from configuration.

    Args:
        config: Loaded AppConfig.

    Returns:
        Engine with shared cache, provider, channels and orchestrator.
    """
    cache = TTLCache(default_ttl=config.cache.ttl_hours * 3600)
    provider = PrayerTimeProvider(AlAdhanClient(config.provider), cache, config.provider)
    dispatcher = ChannelDispatcher(FcmChannel(config.fcm), ApnsChannel(config.apns))
    orchestrator = NotificationOrchestrator(
        dispatcher,
        provider=provider,
        rate_limiter=AsyncRateLimiter.per_second(config.dispatch.bulk_rate_per_second),
        bulk_concurrency=config.dispatch.bulk_concurrency,
    )
    logger.info(
        "Engine ready (fcm=%s, apns=%s, cache ttl=%.0fh)",
        dispatcher.channel_a.configured, dispatcher.channel_b.configured,
        config.cache.ttl_hours,
    )
    return Engine(config, provider, dispatcher, orchestrator)


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="prayer-notifier", description=__doc__.split("\n")[0])
    parser.add_argument("--settings", type=Path, help="Path to settings.yaml")
    sub = parser.add_subparsers(dest="command", required=True)

    def _coords(p: argparse.ArgumentParser) -> None:
        p.add_argument("--lat", type=float, required=True)
        p.add_argument("--lon", type=float, required=True)

    times = sub.add_parser("times", help="Prayer times for a day")
    _coords(times)
    times.add_argument("--date", help="DD-MM-YYYY (default: today)")
    times.add_argument("--method", type=int)
    times.add_argument("--timezone")

    nxt = sub.add_parser("next", help="Next prayer from now")
    _coords(nxt)
    nxt.add_argument("--method", type=int)

    _coords(sub.add_parser("qibla", help="Qibla direction"))

    islamic = sub.add_parser("islamic-date", help="Today's Hijri date")
    islamic.add_argument("--lat", type=float)
    islamic.add_argument("--lon", type=float)

    sub.add_parser("methods", help="List calculation methods")

    test = sub.add_parser("test-push", help="Send the test notification")
    test.add_argument("--android-token")
    test.add_argument("--ios-token")
    test.add_argument("--prayer")

    return parser.parse_args(argv)


async def _run(args: argparse.Namespace, engine: Engine) -> int:
    provider = engine.provider

    if args.command == "times":
        prayer_set = await provider.get_daily_times(
            args.lat, args.lon, date=args.date, method=args.method, timezone=args.timezone,
        )
        print(f"{prayer_set.date.readable}  ({method_name(args.method or engine.config.provider.default_method)})")
        for name, value in prayer_set.prayers.to_dict().items():
            print(f"  {name:<8} {value}")

    elif args.command == "next":
        prayer_set = await provider.get_daily_times(args.lat, args.lon, method=args.method)
        now = datetime.now(ZoneInfo(engine.config.provider.local_timezone))
        upcoming = next_prayer(prayer_set, now)
        print(f"Next: {upcoming.prayer} at {upcoming.time} ({upcoming.remaining})")

    elif args.command == "qibla":
        qibla = await provider.get_qibla(args.lat, args.lon)
        print(f"Qibla: {qibla.direction:.2f}°")

    elif args.command == "islamic-date":
        islamic = await provider.get_islamic_date(args.lat, args.lon)
        hijri = islamic.hijri
        print(f"{hijri.get('day')} {hijri.get('month', {}).get('en', '')} {hijri.get('year')} AH")

    elif args.command == "methods":
        for code, name in calculation_methods().items():
            print(f"  {code:>2}  {name}")

    elif args.command == "test-push":
        prefs = NotificationPreferenceView(
            user_id="cli",
            device_tokens=DeviceTokens(
                channel_a=args.android_token, channel_b=args.ios_token,
            ),
        )
        result = await engine.orchestrator.dispatch_test(prefs, args.prayer)
        print(f"{result.message} (success={result.success})")
        for outcome in result.outcomes:
            print(f"  channel {outcome.channel}: "
                  f"{outcome.provider_message_id if outcome.success else outcome.error_detail}")
        return 0 if result.success else 1

    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point. Returns a process exit code."""
    args = _parse_args(argv)
    config = load_config(settings_path=args.settings)
    set_console_level(config.log_level)
    engine = build_engine(config)

    async def _main() -> int:
        try:
            return await _run(args, engine)
        finally:
            await engine.close()

    try:
        return asyncio.run(_main())
    except NotifierError as e:
        logger.error("%s", e)
        return 2


if __name__ == "__main__":
    sys.exit(main())
