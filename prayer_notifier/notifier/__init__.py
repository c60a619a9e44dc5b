"""Prayer Notifier — Notifier Package.

Push notification system with localized messages.
Components:
  - composer: English/Arabic prayer, event and test copy
  - channels: FCM (channel A) and APNs (channel B) clients
  - orchestrator: eligibility checks, dispatch and bulk fan-out
"""

from prayer_notifier.notifier.channels import (
    ApnsChannel,
    ChannelDispatcher,
    FcmChannel,
    PushChannel,
)
from prayer_notifier.notifier.composer import (
    compose_event_message,
    compose_prayer_message,
    compose_test_message,
)
from prayer_notifier.notifier.orchestrator import NotificationOrchestrator

__all__ = [
    "compose_prayer_message",
    "compose_event_message",
    "compose_test_message",
    "PushChannel",
    "FcmChannel",
    "ApnsChannel",
    "ChannelDispatcher",
    "NotificationOrchestrator",
]
