from __future__ import annotations

import time
from typing import Any, Callable, Hashable, Optional

from cachetools import TTLCache

from solviz.config import settings

_MISSING = object()


class ResponseCache:
    """
    Bounded TTL cache handed to fetch adapters.

    One instance per adapter (or shared on purpose); there is no module-level
    cache state.
    """

    def __init__(
        self,
        max_entries: int = settings.CACHE_MAX_ENTRIES,
        ttl_sec: float = settings.CACHE_TTL_SEC,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be > 0")
        if ttl_sec <= 0:
            raise ValueError("ttl_sec must be > 0")
        self._cache: TTLCache = TTLCache(maxsize=max_entries, ttl=ttl_sec, timer=timer)
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[Any]:
        val = self._cache.get(key, _MISSING)
        if val is _MISSING:
            self.misses += 1
            return None
        self.hits += 1
        return val

    def set(self, key: Hashable, value: Any) -> None:
        self._cache[key] = value

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        val = self._cache.get(key, _MISSING)
        if val is not _MISSING:
            self.hits += 1
            return val
        self.misses += 1
        val = loader()
        self._cache[key] = val
        return val

    def invalidate(self, key: Hashable) -> None:
        self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._cache
