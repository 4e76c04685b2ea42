"""Read Cache port for decrypted document snapshots.

The collection caches ``find_by_id`` results keyed by document id. A
cache never decides visibility; the collection re-checks tombstones on
every hit.
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from typing import Any, Protocol


@dataclass
class CacheStats:
    """Statistics for cache monitoring."""

    capacity: int
    size: int
    hit_count: int
    miss_count: int
    eviction_count: int

    @property
    def hit_ratio(self) -> float:
        total = self.hit_count + self.miss_count
        return self.hit_count / total if total > 0 else 0.0


class ReadCache(Protocol):
    """Protocol for a per-collection read cache."""

    @abstractmethod
    def get(self, key: str) -> dict[str, Any] | None:
        """Return a copy of the cached document or None."""
        ...

    @abstractmethod
    def set(self, key: str, value: dict[str, Any]) -> None:
        """Cache a copy of ``value`` under ``key``."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Drop one entry if present."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Drop every entry."""
        ...
