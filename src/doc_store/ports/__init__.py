"""Ports layer - interface definitions following Hexagonal Architecture.

Ports are abstract interfaces (protocols) that define contracts:
- Inbound ports: APIs offered to clients (e.g., DocumentStore, IndexManager)
- Outbound ports: Dependencies on external systems (e.g., StorageAdapter)

Adapters implement these ports with concrete functionality.
"""

from doc_store.ports.inbound import (
    ChangeEvent,
    ChangeListener,
    DocumentStore,
    IndexManager,
    IndexMetadata,
    IndexStats,
    TransactionLockError,
    TransactionManager,
    TransactionStateError,
    TransactionStats,
    ValidationError,
    Validator,
)
from doc_store.ports.outbound import (
    CacheStats,
    ReadCache,
    StorageAdapter,
    StorageArtifact,
    StorageReadError,
)

__all__ = [
    # Inbound ports
    "ChangeEvent",
    "ChangeListener",
    "DocumentStore",
    "IndexManager",
    "IndexMetadata",
    "IndexStats",
    "TransactionLockError",
    "TransactionManager",
    "TransactionStateError",
    "TransactionStats",
    "ValidationError",
    "Validator",
    # Outbound ports
    "CacheStats",
    "ReadCache",
    "StorageAdapter",
    "StorageArtifact",
    "StorageReadError",
]
