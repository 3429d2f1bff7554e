from __future__ import annotations

import time
from collections import OrderedDict
from typing import Callable, Generic, Optional, Tuple, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class TTLCache(Generic[K, V]):
    """
    Minimal in-memory cache with one TTL for every entry and oldest-first eviction.

    A TTL of 0 disables the cache: `set` is a no-op and `get` always misses.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float,
        max_items: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = max(0.0, float(ttl_seconds))
        self._max_items = max(1, int(max_items))
        self._clock = clock
        self._data: "OrderedDict[K, Tuple[V, float]]" = OrderedDict()

    @property
    def enabled(self) -> bool:
        return self._ttl > 0

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: K) -> Optional[V]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            self._data.pop(key, None)
            return None
        return value

    def set(self, key: K, value: V) -> None:
        if not self.enabled:
            return
        self._data.pop(key, None)
        self._data[key] = (value, self._clock() + self._ttl)
        while len(self._data) > self._max_items:
            self._data.popitem(last=False)

    def delete(self, key: K) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()
