from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from threading import RLock
from typing import Callable, Dict, Generic, Hashable, List, Optional, TypeVar

T = TypeVar("T")


@dataclass
class CachedValue(Generic[T]):
    value: T
    loaded_at: dt.datetime


class TimedCache(Generic[T]):
    """A simple in-process keyed cache with TTL.

    - Pricing files are re-read at most once per TTL per variant.
    - Explicit clear() lets admin operations take effect immediately.

    This cache is process-local. If you run multiple Uvicorn workers,
    each worker will maintain its own cache (still <= TTL).
    """

    def __init__(
        self,
        ttl_seconds: int,
        now: Optional[Callable[[], dt.datetime]] = None,
    ):
        self._ttl = dt.timedelta(seconds=ttl_seconds)
        self._now = now or (lambda: dt.datetime.now(dt.timezone.utc))
        self._items: Dict[Hashable, CachedValue[T]] = {}
        self._lock = RLock()
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable, loader: Callable[[], T]) -> T:
        with self._lock:
            now = self._now()
            cached = self._items.get(key)
            if cached is not None and now - cached.loaded_at < self._ttl:
                self.hits += 1
                return cached.value

            self.misses += 1
            # loader 失败时不缓存，异常直接抛给调用方
            value = loader()
            self._items[key] = CachedValue(value, now)
            return value

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def keys(self) -> List[Hashable]:
        with self._lock:
            return list(self._items.keys())

    def hit_rate(self) -> float:
        with self._lock:
            total = self.hits + self.misses
            return self.hits / total if total else 0.0
