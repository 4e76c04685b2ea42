"""Outbound adapters - implementations of outbound ports.

These adapters implement external dependencies like artifact
persistence and the read cache.
"""

from doc_store.adapters.outbound.file_storage import FileStorageAdapter
from doc_store.adapters.outbound.lru_read_cache import LRUReadCache
from doc_store.adapters.outbound.memory_storage import InMemoryStorageAdapter

__all__ = [
    "FileStorageAdapter",
    "InMemoryStorageAdapter",
    "LRUReadCache",
]
