"""Bounded, expiring key/value store for OAuth state and tokens."""
from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Generic, TypeVar

V = TypeVar("V")


class TTLStore(Generic[V]):
    """
    In-process store with a per-entry time-to-live and a maximum size.

    When full, the oldest entry is evicted on insert. Expired entries are
    invisible to reads and removed by ``sweep()``.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, float, V]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def _expired(self, stored_at: float, ttl: float) -> bool:
        return self._clock() - stored_at > ttl

    def set(self, key: str, value: V, ttl: float | None = None) -> None:
        """Store ``value``; ``ttl`` overrides the store default for this entry."""
        if ttl is not None and ttl <= 0:
            raise ValueError("ttl must be positive")
        self._entries.pop(key, None)
        self._entries[key] = (self._clock(), ttl or self.ttl_seconds, value)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def get(self, key: str) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, ttl, value = entry
        if self._expired(stored_at, ttl):
            del self._entries[key]
            return None
        return value

    def pop(self, key: str) -> V | None:
        value = self.get(key)
        self._entries.pop(key, None)
        return value

    def newest(self) -> V | None:
        """Most recently stored live value."""
        for key in reversed(list(self._entries)):
            value = self.get(key)
            if value is not None:
                return value
        return None

    def sweep(self) -> int:
        """Remove expired entries and return how many were dropped."""
        expired = [key for key, (stored_at, ttl, _) in self._entries.items() if self._expired(stored_at, ttl)]
        for key in expired:
            del self._entries[key]
        return len(expired)
