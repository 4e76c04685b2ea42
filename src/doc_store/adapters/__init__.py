"""Adapters layer - concrete implementations of port interfaces.

Adapters provide the actual implementations:
- Inbound adapters: Handle incoming requests (REST)
- Outbound adapters: Implement external dependencies (files, memory, cache)
"""

from doc_store.adapters.outbound import (
    FileStorageAdapter,
    InMemoryStorageAdapter,
    LRUReadCache,
)

__all__ = [
    # Outbound adapters
    "FileStorageAdapter",
    "InMemoryStorageAdapter",
    "LRUReadCache",
]
