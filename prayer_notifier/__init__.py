"""Prayer Notifier — prayer-time and community-event push notifications."""

__version__ = "1.0.0"
