"""Prayer Notifier — Notification Orchestrator.

Decides whether a user should get an alert, composes it, pushes it
through both channels and aggregates the outcomes. A disabled toggle is
not an error: it yields DispatchResult(success=False) with no outcomes.

Bulk dispatch is sequential by default. With bulk_concurrency > 1 users
are processed concurrently under a semaphore, each writing only its own
result slot, so ordering and per-user isolation are unchanged.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Optional, Sequence

from prayer_notifier.models import (
    ALERTABLE_PRAYERS,
    BulkResult,
    CommunityEvent,
    ComposedMessage,
    DispatchResult,
    NotificationPreferenceView,
    UserDispatchResult,
)
from prayer_notifier.notifier.channels import ChannelDispatcher
from prayer_notifier.notifier.composer import (
    compose_event_message,
    compose_prayer_message,
    compose_test_message,
)
from prayer_notifier.prayer.evaluator import alert_due
from prayer_notifier.prayer.provider import PrayerTimeProvider
from prayer_notifier.utils.logger import get_logger
from prayer_notifier.utils.rate_limiter import AsyncRateLimiter

logger = get_logger(__name__)

_FRIDAY = 4


class NotificationOrchestrator:
    """Eligibility, composition and dispatch for prayer and event alerts.

    Attributes:
        dispatcher: Sends to channel A and channel B.
        provider: Prayer-time source for dispatch_due_prayer_alerts().
        rate_limiter: Optional pacing between bulk recipients.
        bulk_concurrency: Users processed at once in bulk dispatch.
    """

    def __init__(
        self,
        dispatcher: ChannelDispatcher,
        provider: Optional[PrayerTimeProvider] = None,
        rate_limiter: Optional[AsyncRateLimiter] = None,
        bulk_concurrency: int = 1,
    ) -> None:
        if bulk_concurrency < 1:
            raise ValueError(f"bulk_concurrency must be >= 1, got {bulk_concurrency}")
        self.dispatcher = dispatcher
        self.provider = provider
        self.rate_limiter = rate_limiter
        self.bulk_concurrency = bulk_concurrency

    async def dispatch_prayer_alert(
        self,
        preferences: NotificationPreferenceView,
        prayer_name: str,
        prayer_time: str,
    ) -> DispatchResult:
        """Send a prayer alert if the user has that prayer switched on.

        Unknown prayer names are treated as switched off and never reach
        the composer.
        """
        if prayer_name not in ALERTABLE_PRAYERS or not preferences.prayer_enabled(prayer_name):
            logger.debug(
                "Prayer alert skipped for %s: %s disabled", preferences.user_id, prayer_name,
            )
            return DispatchResult(
                success=False,
                message=f"Notification disabled for prayer '{prayer_name}'",
            )

        message = compose_prayer_message(prayer_name, prayer_time, preferences.language)
        return await self._send(preferences, message)

    async def dispatch_event_alert(
        self,
        preferences: NotificationPreferenceView,
        event: CommunityEvent,
    ) -> DispatchResult:
        """Send an event alert if events and the event's category are on."""
        if not preferences.category_enabled(event.category):
            logger.debug(
                "Event alert skipped for %s: category %r disabled",
                preferences.user_id, event.category,
            )
            return DispatchResult(
                success=False,
                message=f"Event notifications disabled for category '{event.category}'",
            )

        message = compose_event_message(event, preferences.language)
        return await self._send(preferences, message)

    async def dispatch_test(
        self,
        preferences: NotificationPreferenceView,
        prayer_name: Optional[str] = None,
    ) -> DispatchResult:
        """Send the test notification to every configured token, ignoring toggles."""
        return await self._send(preferences, compose_test_message(prayer_name))

    async def dispatch_bulk_event(
        self,
        preferences_list: Sequence[NotificationPreferenceView],
        event: CommunityEvent,
    ) -> BulkResult:
        """Send an event alert to many users.

        One user's failure or exception never stops the batch; it is
        recorded in that user's entry.

        Returns:
            BulkResult with per_user in the same order as preferences_list.
        """
        logger.info(
            "Bulk event %s to %d users (concurrency=%d)",
            event.event_id, len(preferences_list), self.bulk_concurrency,
        )

        if self.bulk_concurrency == 1:
            per_user = [await self._bulk_entry(p, event) for p in preferences_list]
        else:
            slots: list[Optional[UserDispatchResult]] = [None] * len(preferences_list)
            semaphore = asyncio.Semaphore(self.bulk_concurrency)

            async def _run(index: int, prefs: NotificationPreferenceView) -> None:
                async with semaphore:
                    slots[index] = await self._bulk_entry(prefs, event)

            await asyncio.gather(*(_run(i, p) for i, p in enumerate(preferences_list)))
            per_user = [slot for slot in slots if slot is not None]

        total_sent = sum(1 for r in per_user if r.success)
        result = BulkResult(
            total_sent=total_sent,
            total_failed=len(per_user) - total_sent,
            per_user=per_user,
        )
        logger.info(
            "Bulk event %s: %d sent, %d failed",
            event.event_id, result.total_sent, result.total_failed,
        )
        return result

    async def dispatch_due_prayer_alerts(
        self,
        preferences: NotificationPreferenceView,
        now: datetime,
    ) -> Optional[DispatchResult]:
        """Send the alert for whichever enabled prayer is due at `now`.

        Fetches the user's prayer times for now's date, then checks each
        enabled prayer against its own alert_minutes. On Fridays the
        jumma toggle replaces dhuhr.

        Returns:
            The dispatch result, or None if no prayer is due.

        Raises:
            ValueError: If no provider was given or preferences lack a location.
            ProviderError: If prayer times cannot be fetched.
        """
        if self.provider is None:
            raise ValueError("dispatch_due_prayer_alerts requires a PrayerTimeProvider")
        if preferences.location is None:
            raise ValueError(f"No location for user {preferences.user_id}")

        location = preferences.location
        prayer_set = await self.provider.get_daily_times(
            location.latitude,
            location.longitude,
            date=now.strftime("%d-%m-%Y"),
            method=preferences.calculation_method,
            timezone=location.timezone,
        )

        replaced = "dhuhr" if now.weekday() == _FRIDAY else "jumma"
        for prayer in ALERTABLE_PRAYERS:
            if prayer == replaced or not preferences.prayer_enabled(prayer):
                continue
            toggle = preferences.per_prayer[prayer]
            match = alert_due(prayer_set, prayer, now, toggle.alert_minutes)
            if match.matched:
                logger.info(
                    "%s due for %s (%s, %+d min)",
                    prayer, preferences.user_id, match.time, match.minutes_until,
                )
                return await self.dispatch_prayer_alert(preferences, prayer, match.time)

        return None

    async def _bulk_entry(
        self,
        preferences: NotificationPreferenceView,
        event: CommunityEvent,
    ) -> UserDispatchResult:
        try:
            if self.rate_limiter is not None:
                await self.rate_limiter.acquire()
            result = await self.dispatch_event_alert(preferences, event)
        except Exception as e:
            logger.error("Bulk event failed for %s: %s", preferences.user_id, e)
            return UserDispatchResult(
                user_id=preferences.user_id,
                success=False,
                message="Failed to send event notification",
                error=str(e),
            )
        return UserDispatchResult(
            user_id=preferences.user_id,
            success=result.success,
            outcomes=result.outcomes,
            message=result.message,
        )

    async def _send(
        self,
        preferences: NotificationPreferenceView,
        message: ComposedMessage,
    ) -> DispatchResult:
        outcomes = await self.dispatcher.send_all(preferences.device_tokens, message)
        if not outcomes:
            logger.debug("No device tokens for %s", preferences.user_id)
            return DispatchResult(success=False, message="No device tokens configured")

        success = any(o.success for o in outcomes)
        logger.info(
            "%s notification for %s: %d/%d channels succeeded",
            message.kind, preferences.user_id,
            sum(1 for o in outcomes if o.success), len(outcomes),
        )
        return DispatchResult(
            success=success,
            outcomes=outcomes,
            message="Notifications sent" if success else "All channels failed",
        )
