"""LRU Read Cache implementation.

This adapter implements the ReadCache protocol with a bounded
least-recently-used map of decrypted document snapshots keyed by id.

Key concepts:
- Entries are deep copies; callers can never mutate a cached snapshot
- A hit moves the entry to the most-recent end
- Inserting into a full cache evicts the least recently used entry

Thread Safety:
    Guarded by a single lock so the cache can be shared with the REST
    adapter's worker threads.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Any

from doc_store.domain.entities import deep_clone
from doc_store.ports.outbound.read_cache import CacheStats


class LRUReadCache:
    """LRU-based read cache.

    Attributes:
        capacity: Maximum number of cached documents.
    """

    def __init__(self, capacity: int = 1024) -> None:
        """Initialize the cache.

        Args:
            capacity: Number of documents to keep.

        Raises:
            ValueError: If capacity < 1.
        """
        if capacity < 1:
            raise ValueError(f"Cache capacity must be >= 1, got {capacity}")

        self._capacity = capacity
        self._entries: OrderedDict[str, dict[str, Any]] = OrderedDict()
        self._lock = threading.Lock()

        # Statistics
        self._hit_count = 0
        self._miss_count = 0
        self._eviction_count = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            value = self._entries.get(key)
            if value is None:
                self._miss_count += 1
                return None
            self._entries.move_to_end(key)
            self._hit_count += 1
            return deep_clone(value)

    def set(self, key: str, value: dict[str, Any]) -> None:
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            elif len(self._entries) >= self._capacity:
                self._entries.popitem(last=False)
                self._eviction_count += 1
            self._entries[key] = deep_clone(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get_stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                capacity=self._capacity,
                size=len(self._entries),
                hit_count=self._hit_count,
                miss_count=self._miss_count,
                eviction_count=self._eviction_count,
            )
