"""Prayer Notifier — TTL Cache.

In-memory key/value store with per-entry expiry. Expired entries are
evicted lazily when read; nothing runs in the background. Call
purge_expired() explicitly to drop stale entries that are never read again.

Values are deep-copied on the way in and out, so a caller mutating a
returned object can never corrupt the cached copy.
"""

from __future__ import annotations

import copy
import math
import time
from typing import Any, Callable, Optional

from prayer_notifier.models import CacheEntry
from prayer_notifier.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60
NEVER_EXPIRES = math.inf


class TTLCache:
    """Key/value cache with lazy expiry.

    Not guarded by a lock: it is meant to be used from a single event
    loop. Two coroutines missing the same key concurrently will both
    fetch, and the last set wins.

    Attributes:
        default_ttl: Lifetime in seconds for entries set without a ttl.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize an empty cache.

        Args:
            default_ttl: Seconds an entry stays fresh unless set() overrides it.
            clock: Monotonic time source, injectable for tests.
        """
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        """Return a copy of the cached value, or None if absent or expired.

        An expired entry is removed as a side effect.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._is_expired(entry):
            del self._entries[key]
            logger.debug("Cache expired: %s", key)
            return None

        return copy.deepcopy(entry.value)

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store a value, replacing any previous entry for the key.

        Args:
            key: Cache key.
            value: Value to store (deep-copied).
            ttl: Lifetime in seconds; None uses default_ttl,
                NEVER_EXPIRES pins the entry until invalidated.
        """
        self._entries[key] = CacheEntry(
            key=key,
            value=copy.deepcopy(value),
            stored_at=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
        )

    def invalidate(self, key: str) -> bool:
        """Remove one entry. Returns True if it existed."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        count = len(self._entries)
        self._entries.clear()
        logger.info("Cache cleared (%d entries)", count)

    def purge_expired(self) -> int:
        """Evict every expired entry now.

        Returns:
            Number of entries removed.
        """
        expired = [k for k, e in self._entries.items() if self._is_expired(e)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Purged %d expired cache entries", len(expired))
        return len(expired)

    def stats(self) -> dict[str, Any]:
        """Return {count, keys} for the entries currently held.

        Expired-but-unread entries are still counted.
        """
        return {
            "count": len(self._entries),
            "keys": list(self._entries.keys()),
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def _is_expired(self, entry: CacheEntry) -> bool:
        if math.isinf(entry.ttl):
            return False
        return self._clock() - entry.stored_at >= entry.ttl
