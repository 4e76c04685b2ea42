"""Value objects for the document store domain.

Value objects are immutable types that represent domain concepts.
They have no identity - two value objects with the same attributes are equal.

Exports:
    Identifiers:
        - DocumentId, RevisionId: Type-safe string identifiers
        - generate_id, generate_revision_id, now_iso: Factories
        - ID_FIELD, CREATED_FIELD, ...: Reserved document field names

    Query Types:
        - Condition, OrGroup, Predicate: Query predicates
        - SortDirection: asc / desc
        - TrashedFilter: Tombstone visibility per query

    Transaction Types:
        - TransactionState: Transaction lifecycle states
        - MutationKind: Entries of the transaction log
        - ChangeType: Kinds of change notifications
        - RevisionAction: Actions stored in revision history
"""

from doc_store.domain.value_objects.identifiers import (
    CREATED_FIELD,
    DELETED_FIELD,
    ID_FIELD,
    RESERVED_FIELDS,
    REVISION_ACTION_KEY,
    REVISION_ID_KEY,
    REVISION_TIMESTAMP_KEY,
    REVISIONS_FIELD,
    UPDATED_FIELD,
    DocumentId,
    RevisionId,
    generate_id,
    generate_revision_id,
    now_iso,
)
from doc_store.domain.value_objects.query_types import (
    EQUALITY_OPERATORS,
    SUPPORTED_OPERATORS,
    Condition,
    OrGroup,
    Predicate,
    SortDirection,
    TrashedFilter,
)
from doc_store.domain.value_objects.transaction_types import (
    ChangeType,
    MutationKind,
    RevisionAction,
    TransactionState,
)

__all__ = [
    # Identifiers
    "DocumentId",
    "RevisionId",
    "generate_id",
    "generate_revision_id",
    "now_iso",
    "ID_FIELD",
    "CREATED_FIELD",
    "UPDATED_FIELD",
    "DELETED_FIELD",
    "REVISIONS_FIELD",
    "REVISION_ID_KEY",
    "REVISION_TIMESTAMP_KEY",
    "REVISION_ACTION_KEY",
    "RESERVED_FIELDS",
    # Query types
    "Condition",
    "OrGroup",
    "Predicate",
    "SortDirection",
    "TrashedFilter",
    "EQUALITY_OPERATORS",
    "SUPPORTED_OPERATORS",
    # Transaction types
    "TransactionState",
    "MutationKind",
    "ChangeType",
    "RevisionAction",
]
