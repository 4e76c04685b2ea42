"""Inbound ports - API contracts for the document store.

Inbound ports define the interfaces that clients and upper layers
use to interact with collections, indexes and transactions.
"""

from doc_store.ports.inbound.document_store import (
    ChangeEvent,
    ChangeListener,
    DocumentStore,
    ValidationError,
    Validator,
)
from doc_store.ports.inbound.index_manager import (
    IndexManager,
    IndexMetadata,
    IndexStats,
)
from doc_store.ports.inbound.transaction_manager import (
    TransactionLockError,
    TransactionManager,
    TransactionStateError,
    TransactionStats,
)

__all__ = [
    # Document Store
    "ChangeEvent",
    "ChangeListener",
    "DocumentStore",
    "ValidationError",
    "Validator",
    # Index Manager
    "IndexManager",
    "IndexMetadata",
    "IndexStats",
    # Transaction Manager
    "TransactionLockError",
    "TransactionManager",
    "TransactionStateError",
    "TransactionStats",
]
