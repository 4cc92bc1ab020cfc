"""Capacity-bounded response cache shared by all requests of one client."""

from __future__ import annotations

import enum

from dexter.constants import DEFAULT_CACHE_CAPACITY
from dexter.utils.concurrency import ReadWriteLock


class CachePolicy(enum.StrEnum):
    NORMAL = "normal"
    BYPASS = "bypass"

    @property
    def uses_cache(self) -> bool:
        return self is CachePolicy.NORMAL


class ResponseCache:
    """Key to completion-text store guarded by a reader/writer lock.

    When full, an insert of a new key evicts the oldest inserted entry. Reads
    do not refresh an entry, so this is insertion-order (FIFO) eviction rather
    than LRU.
    """

    def __init__(self, capacity: int = DEFAULT_CACHE_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self._capacity = capacity
        self._entries: dict[str, str] = {}
        self._lock = ReadWriteLock()
        self._hits = 0
        self._misses = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock.read():
            return key in self._entries

    def get(self, key: str) -> str | None:
        with self._lock.read():
            value = self._entries.get(key)
        # Counters are advisory; they are not updated under the write lock.
        if value is None:
            self._misses += 1
        else:
            self._hits += 1
        return value

    def put(self, key: str, value: str) -> None:
        with self._lock.write():
            if key not in self._entries and len(self._entries) >= self._capacity:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
            self._entries[key] = value

    def clear(self) -> None:
        with self._lock.write():
            self._entries.clear()

    def snapshot(self) -> dict[str, int]:
        with self._lock.read():
            size = len(self._entries)
        return {
            "capacity": self._capacity,
            "size": size,
            "hits": self._hits,
            "misses": self._misses,
        }


__all__ = ["CachePolicy", "ResponseCache"]
