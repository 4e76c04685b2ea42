"""Transaction Manager port for the single-writer transaction.

This inbound port defines the contract for the one transaction a
collection may have open at a time: begin with a snapshot, buffer
mutations in a log, then commit or roll back.

Key responsibilities:
- Enforce at most one active transaction per collection
- Reject mutations that conflict with a scoped or unscoped lock
- Hand the log and snapshot back to the collection on commit/rollback
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from typing import Iterable, Protocol

from doc_store.domain.entities import StoreSnapshot, Transaction, TransactionLogEntry
from doc_store.domain.value_objects import DocumentId, TransactionState


class TransactionLockError(Exception):
    """A mutation conflicts with the lock held by the active transaction."""

    pass


class TransactionStateError(Exception):
    """begin/commit/rollback called in a state that does not allow it."""

    pass


@dataclass
class TransactionStats:
    """Statistics for transaction monitoring."""

    active: bool
    committed_total: int
    rolled_back_total: int
    avg_duration_ms: float


class TransactionManager(Protocol):
    """Protocol for single-writer transaction management."""

    @property
    @abstractmethod
    def state(self) -> TransactionState:
        """Current lifecycle state."""
        ...

    @property
    @abstractmethod
    def is_active(self) -> bool:
        """True while mutations are being buffered."""
        ...

    @abstractmethod
    def begin(self, snapshot: StoreSnapshot, scope_id: DocumentId | None = None) -> Transaction:
        """Open a transaction.

        Raises:
            TransactionStateError: If a transaction is already active.
        """
        ...

    @abstractmethod
    def check_mutation(self, target_ids: Iterable[DocumentId | None]) -> None:
        """Verify that mutating ``target_ids`` is allowed right now.

        Raises:
            TransactionLockError: If the transaction's lock forbids it.
        """
        ...

    @abstractmethod
    def record(self, entry: TransactionLogEntry) -> None:
        """Append a mutation to the log of the active transaction."""
        ...

    @abstractmethod
    def start_commit(self) -> list[TransactionLogEntry]:
        """Move to COMMITTING and return the buffered log."""
        ...

    @abstractmethod
    def start_rollback(self) -> StoreSnapshot:
        """Move to ROLLING_BACK and return the begin-time snapshot."""
        ...

    @abstractmethod
    def finish(self, committed: bool) -> None:
        """Discard the transaction and return to IDLE."""
        ...

    @abstractmethod
    def get_stats(self) -> TransactionStats:
        """Return transaction statistics for monitoring."""
        ...
