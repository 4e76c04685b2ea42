"""Outbound ports - interfaces for external dependencies.

Outbound ports define contracts for the systems the document store
depends on: durable artifact storage and the read cache.
"""

from doc_store.ports.outbound.read_cache import CacheStats, ReadCache
from doc_store.ports.outbound.storage_adapter import (
    StorageAdapter,
    StorageArtifact,
    StorageReadError,
)

__all__ = [
    "CacheStats",
    "ReadCache",
    "StorageAdapter",
    "StorageArtifact",
    "StorageReadError",
]
