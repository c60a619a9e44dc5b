"""Prayer Notifier — Exceptions.

ProviderError propagates to callers. ChannelError never leaves a push
channel: it is converted into a failed DispatchOutcome.
"""

from __future__ import annotations

from typing import Optional


class NotifierError(Exception):
    """Base class for all prayer_notifier errors."""


class ConfigError(NotifierError, ValueError):
    """Raised when configuration is missing keys or references unset env vars."""


class ProviderError(NotifierError):
    """The prayer-time service was unreachable, timed out, or returned an error.

    Attributes:
        cause: The underlying exception, if any.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        self.cause = cause
        super().__init__(message)


class ChannelError(NotifierError):
    """A push provider rejected or failed to deliver a message.

    Attributes:
        channel: Channel identifier ("A" or "B").
        status_code: HTTP status from the provider, when there was one.
    """

    def __init__(
        self,
        channel: str,
        message: str,
        status_code: Optional[int] = None,
    ) -> None:
        self.channel = channel
        self.status_code = status_code
        super().__init__(message)
