from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict

log = logging.getLogger(__name__)


class _Miss:
    def __repr__(self) -> str:
        return "MISS"

    def __bool__(self) -> bool:
        return False


# Returned by TtlCache.get for absent and expired keys alike.
MISS: Any = _Miss()


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    expires_at: float


class TtlCache:
    """
    Key/value store whose entries expire after a per-entry TTL.

    There is no size bound and no LRU: expired entries are dropped lazily when
    read, or explicitly through remove(). Failed fetches are never cached.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return MISS
        if self._clock() >= entry.expires_at:
            # Only drop the entry we looked at; a concurrent set() may have replaced it.
            if self._entries.get(key) is entry:
                del self._entries[key]
            return MISS
        return entry.value

    def set(self, key: str, value: Any, ttl_s: float) -> None:
        self._entries[key] = CacheEntry(key, value, self._clock() + ttl_s)

    def remove(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    async def get_or_fetch(
        self,
        key: str,
        ttl_s: float,
        fetch: Callable[[], Awaitable[Any]],
    ) -> Any:
        value = self.get(key)
        if value is not MISS:
            log.debug("cache hit: %s", key)
            return value

        log.debug("cache miss: %s", key)
        value = await fetch()
        self.set(key, value, ttl_s)
        return value
