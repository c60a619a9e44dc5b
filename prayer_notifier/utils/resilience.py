"""Prayer Notifier — Resilience Utilities.

Circuit breaker tracking the health of each push channel. By default it
only records: every call is still made, and state changes are logged so
an operator can see a provider outage. With blocking=True an OPEN circuit
rejects calls for the cooldown period instead.

Circuit Breaker states:
  CLOSED    → normal operation, requests flow through
  OPEN      → provider is failing; blocked for the cooldown if blocking
  HALF_OPEN → cooldown expired, one test request allowed

Usage:
    cb = CircuitBreaker("fcm", failure_threshold=5, cooldown_seconds=300, blocking=True)
    result = await cb.call(some_async_func, arg1, arg2)
"""

from __future__ import annotations

import time
from typing import Any, Callable

from prayer_notifier.errors import NotifierError
from prayer_notifier.utils.logger import get_logger

logger = get_logger(__name__)


class CircuitOpenError(NotifierError):
    """Raised when a circuit breaker is OPEN and blocking requests."""

    def __init__(self, name: str, remaining_seconds: float) -> None:
        self.name = name
        self.remaining_seconds = remaining_seconds
        super().__init__(
            f"Circuit '{name}' is OPEN, retry in {remaining_seconds:.0f}s"
        )


class CircuitBreaker:
    """Circuit breaker for push-provider calls.

    Tracks consecutive failures. After `failure_threshold` failures the
    circuit opens. A blocking breaker then rejects calls for
    `cooldown_seconds`, lets one test call through after the cooldown, and
    reopens with `half_open_cooldown` if that test fails. A non-blocking
    breaker keeps calling through while OPEN and closes on the first
    success.

    Attributes:
        name: Provider name used in log lines.
        state: Current state ('CLOSED', 'OPEN', 'HALF_OPEN').
    """

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        cooldown_seconds: float = 300.0,
        half_open_cooldown: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
        blocking: bool = False,
    ) -> None:
        self.name = name
        self.blocking = blocking
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self.half_open_cooldown = half_open_cooldown
        self._base_cooldown = cooldown_seconds
        self._clock = clock

        self._state = self.CLOSED
        self._failure_count = 0
        self._opened_at: float = 0.0
        self._total_trips = 0

    @property
    def state(self) -> str:
        """Current circuit state, accounting for cooldown expiry."""
        if self._state == self.OPEN:
            if self._clock() - self._opened_at >= self.cooldown_seconds:
                return self.HALF_OPEN
        return self._state

    @property
    def is_open(self) -> bool:
        return self.state == self.OPEN

    @property
    def remaining_cooldown(self) -> float:
        if self._state != self.OPEN:
            return 0.0
        return max(0.0, self.cooldown_seconds - (self._clock() - self._opened_at))

    @property
    def total_trips(self) -> int:
        return self._total_trips

    async def call(
        self,
        func: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """Execute an async callable through the circuit breaker.

        Returns:
            The result of func(*args, **kwargs).

        Raises:
            CircuitOpenError: If the circuit is OPEN and blocking.
            Exception: Any exception from func (after recording failure).
        """
        current_state = self.state

        if current_state == self.OPEN and self.blocking:
            raise CircuitOpenError(self.name, self.remaining_cooldown)

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            self._on_failure(current_state, e)
            raise
        self._on_success(current_state)
        return result

    def _on_success(self, state: str) -> None:
        if state == self.HALF_OPEN:
            logger.info("Circuit '%s': HALF_OPEN → CLOSED (test succeeded)", self.name)
        elif state == self.OPEN:
            logger.info("Circuit '%s': OPEN → CLOSED (provider recovered)", self.name)
        self._state = self.CLOSED
        self._failure_count = 0
        self.cooldown_seconds = self._base_cooldown

    def _on_failure(self, state: str, error: Exception) -> None:
        self._failure_count += 1

        if state == self.OPEN:
            # Non-blocking breaker still failing: extend the outage window.
            self._opened_at = self._clock()
            return

        if state == self.HALF_OPEN:
            self._state = self.OPEN
            self._opened_at = self._clock()
            self.cooldown_seconds = self.half_open_cooldown
            logger.warning(
                "Circuit '%s': HALF_OPEN → OPEN (test failed: %s, cooldown: %.0fs)",
                self.name, type(error).__name__, self.cooldown_seconds,
            )
            return

        if self._failure_count >= self.failure_threshold:
            self._state = self.OPEN
            self._opened_at = self._clock()
            self._total_trips += 1
            logger.warning(
                "Circuit '%s': CLOSED → OPEN (trip #%d, %d failures, "
                "cooldown: %.0fs). Error: %s",
                self.name, self._total_trips, self._failure_count,
                self.cooldown_seconds, str(error)[:200],
            )
        else:
            logger.debug(
                "Circuit '%s': failure %d/%d: %s",
                self.name, self._failure_count, self.failure_threshold,
                type(error).__name__,
            )

    def reset(self) -> None:
        """Force-reset the circuit to CLOSED."""
        self._state = self.CLOSED
        self._failure_count = 0
        self.cooldown_seconds = self._base_cooldown
        logger.info("Circuit '%s': manually reset to CLOSED", self.name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state,
            "failure_count": self._failure_count,
            "total_trips": self._total_trips,
            "remaining_cooldown": round(self.remaining_cooldown, 1),
        }
