"""Transaction log entries and begin-time snapshots.

A transaction keeps two things: an ordered log of the mutations made
while it was open (used to replay change notifications on commit), and
a deep copy of documents, secondary indexes and the full-text index as
they were at begin time (used to restore state on rollback).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from doc_store.domain.value_objects import DocumentId, MutationKind


@dataclass(frozen=True)
class TransactionLogEntry:
    """One buffered mutation.

    Attributes:
        kind: What kind of mutation was made.
        documents: Stored (possibly encrypted) copies of inserted or
            updated documents. Empty for deletes.
        document_id: Target id for deletes. The deleted body is not kept.
        soft: True when a delete tombstoned instead of removing.
    """

    kind: MutationKind
    documents: tuple[dict[str, Any], ...] = ()
    document_id: DocumentId | None = None
    soft: bool = False


@dataclass(frozen=True)
class StoreSnapshot:
    """Deep copy of the three in-memory artifacts."""

    documents: list[dict[str, Any]]
    indexes: dict[str, Any]
    full_text: dict[str, Any]


@dataclass
class Transaction:
    """The single open transaction of a collection.

    Attributes:
        scope_id: Document id the transaction is scoped to, or None for a
            collection-wide transaction.
        owner: Identity of the asyncio task that began the transaction.
        snapshot: Begin-time state restored by rollback().
        log: Buffered mutations in the order they were made.
    """

    scope_id: DocumentId | None
    owner: object | None
    snapshot: StoreSnapshot
    log: list[TransactionLogEntry] = field(default_factory=list)

    @property
    def is_scoped(self) -> bool:
        return self.scope_id is not None

    def record(self, entry: TransactionLogEntry) -> None:
        self.log.append(entry)
