"""
Result Cache
============

A tiny in-memory cache with one fixed time-to-live for every key.

HOW IT WORKS:
------------
    cache.set("station:DTN00872", record)     # remembers it with a timestamp
    cache.get("station:DTN00872")             # -> record   (within TTL)
    cache.get("station:DTN00872")             # -> None     (after TTL, entry evicted)

There is no per-key TTL, no size limit and no background sweeper. An entry
that is never read again after it expires stays in memory until the next
set() for that key or clear().

Author: CUUB Battery Team
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass
class CacheEntry:
    key: str
    value: Any
    cached_at: float


class ResultCache:
    """
    Time-boxed key -> value store.

    Args:
        ttl_seconds: How long an entry stays valid (default 10 seconds)
        clock: Returns "now" in seconds. Tests pass a fake clock.
    """

    DEFAULT_TTL = 10.0

    def __init__(self, ttl_seconds: float = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on a miss (expired entries are evicted)."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._clock() - entry.cached_at < self.ttl_seconds:
            return entry.value

        del self._entries[key]
        return None

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = CacheEntry(key=key, value=value, cached_at=self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
