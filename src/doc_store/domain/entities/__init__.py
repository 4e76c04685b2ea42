"""Domain entities for the document store.

Exports:
    Document:
        - Document: Type alias of a stored document (a JSON dict)
        - MISSING: Marker for unresolved dot-paths
        - get_path, set_path, deep_clone, deep_merge: Value tree helpers
        - stamp, add_revision, mark_deleted: Reserved field maintenance

    Query:
        - QueryState: Builder state reset after each terminal call
        - QueryPlan, IndexChoice: Output of explain_query()
        - PageResult: One page of paginate()

    Transaction:
        - Transaction: The open transaction
        - TransactionLogEntry: One buffered mutation
        - StoreSnapshot: Begin-time copy of all artifacts
"""

from doc_store.domain.entities.document import (
    MISSING,
    Document,
    add_revision,
    deep_clone,
    deep_merge,
    document_id,
    get_path,
    is_absent,
    is_tombstone,
    mark_deleted,
    set_path,
    stamp,
)
from doc_store.domain.entities.query import (
    IndexChoice,
    PageResult,
    QueryPlan,
    QueryState,
)
from doc_store.domain.entities.transaction import (
    StoreSnapshot,
    Transaction,
    TransactionLogEntry,
)

__all__ = [
    # Document
    "Document",
    "MISSING",
    "get_path",
    "set_path",
    "is_absent",
    "deep_clone",
    "deep_merge",
    "document_id",
    "is_tombstone",
    "stamp",
    "add_revision",
    "mark_deleted",
    # Query
    "QueryState",
    "QueryPlan",
    "IndexChoice",
    "PageResult",
    # Transaction
    "Transaction",
    "TransactionLogEntry",
    "StoreSnapshot",
]
