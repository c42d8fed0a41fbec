"""
In-memory response cache and upstream rate limiter.

Both are plain objects owned by the service that creates them. Shared state is
guarded per key, so unrelated keys never contend.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Optional

from .exceptions import RateLimited

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass
class CacheEntry:
    """Cached payload with its insertion time and lifetime."""
    value: Any
    inserted_at: float
    ttl: float

    def is_fresh(self, now: float) -> bool:
        return now - self.inserted_at < self.ttl


class _KeyedLocks:
    """Lazily created lock per key."""

    def __init__(self):
        self._locks: dict[Hashable, threading.Lock] = {}

    def get(self, key: Hashable) -> threading.Lock:
        # dict.setdefault is atomic, so two threads always end up with the same lock
        return self._locks.setdefault(key, threading.Lock())


class ResponseCache:
    """
    TTL cache for assembled responses (station lists, weather lookups).

    Entries are evicted lazily: a stale entry is ignored on read and replaced
    by the next ``set`` for the same key.
    """

    def __init__(self, clock: Clock = time.monotonic):
        self._clock = clock
        self._entries: dict[Hashable, CacheEntry] = {}
        self._locks = _KeyedLocks()

    @staticmethod
    def make_key(kind: str, *parts: Any) -> tuple:
        """Build a cache key, quantizing floats to 4 decimals (~11 m)."""
        return (kind,) + tuple(
            round(p, 4) if isinstance(p, float) else p for p in parts
        )

    def get(self, key: Hashable) -> Optional[Any]:
        """Return the cached value if still fresh, otherwise None."""
        with self._locks.get(key):
            entry = self._entries.get(key)
            if entry is None:
                return None
            if not entry.is_fresh(self._clock()):
                logger.debug(f"Cache entry {key} is stale")
                return None
            return entry.value

    def set(self, key: Hashable, value: Any, ttl: float) -> None:
        """Store a value for ``ttl`` seconds, overwriting any previous entry."""
        with self._locks.get(key):
            self._entries[key] = CacheEntry(value=value, inserted_at=self._clock(), ttl=ttl)

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()
        logger.info("Response cache cleared")

    def __len__(self) -> int:
        return len(self._entries)


class RateLimiter:
    """
    Minimum spacing between dispatches to an upstream endpoint class.

    Calls arriving sooner than the spacing are rejected with ``RateLimited``
    rather than queued.
    """

    def __init__(
        self,
        spacing_by_class: Optional[dict[str, float]] = None,
        default_spacing: float = 1.0,
        clock: Clock = time.monotonic
    ):
        self._spacing = dict(spacing_by_class or {})
        self._default_spacing = default_spacing
        self._clock = clock
        self._last_dispatch: dict[str, float] = {}
        self._locks = _KeyedLocks()

    def spacing_for(self, endpoint_class: str) -> float:
        return self._spacing.get(endpoint_class, self._default_spacing)

    def acquire(self, endpoint_class: str) -> None:
        """
        Record a dispatch to ``endpoint_class``.

        Raises:
            RateLimited: if the previous dispatch was less than the spacing ago.
        """
        spacing = self.spacing_for(endpoint_class)
        with self._locks.get(endpoint_class):
            now = self._clock()
            last = self._last_dispatch.get(endpoint_class)
            if last is not None and now - last < spacing:
                retry_after = spacing - (now - last)
                logger.warning(f"Rate limit hit for {endpoint_class}, retry in {retry_after:.2f}s")
                raise RateLimited(endpoint_class, retry_after)
            self._last_dispatch[endpoint_class] = now

    def reset(self, endpoint_class: Optional[str] = None) -> None:
        """Forget dispatch history for one class, or for all of them."""
        if endpoint_class is None:
            self._last_dispatch.clear()
        else:
            self._last_dispatch.pop(endpoint_class, None)
