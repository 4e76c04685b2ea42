"""In-memory Storage Adapter implementation.

Fallback when no durable medium is available. Payloads are deep-copied
on save and on load so that callers never share structure with the
stored artifacts.
"""

from __future__ import annotations

import copy
from typing import Any

from doc_store.ports.outbound.storage_adapter import StorageArtifact


class InMemoryStorageAdapter:
    """Process-local implementation of the StorageAdapter protocol."""

    def __init__(self) -> None:
        self._artifacts: dict[StorageArtifact, Any] = {}
        self._save_count = 0

    @property
    def is_durable(self) -> bool:
        return False

    @property
    def save_count(self) -> int:
        return self._save_count

    async def load(self, artifact: StorageArtifact) -> Any | None:
        if artifact not in self._artifacts:
            return None
        return copy.deepcopy(self._artifacts[artifact])

    async def save(self, artifact: StorageArtifact, payload: Any) -> None:
        self._artifacts[artifact] = copy.deepcopy(payload)
        self._save_count += 1
