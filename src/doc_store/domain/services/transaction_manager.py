"""Single-writer transaction manager.

A collection has at most one open transaction. While it is open, the
collection keeps mutating its in-memory state but defers persistence
and change notifications; the manager buffers a log of those mutations
and holds the begin-time snapshot used by rollback.

Locking:
    - Unscoped: only the asyncio task that began the transaction may
      mutate the collection.
    - Scoped to an id: additionally, every mutation must target that id.
      An insert without an explicit ``_id`` equal to the scope is
      rejected.
"""

from __future__ import annotations

import asyncio
import time
from typing import Iterable

from doc_store.domain.entities import StoreSnapshot, Transaction, TransactionLogEntry
from doc_store.domain.value_objects import DocumentId, TransactionState
from doc_store.infrastructure.logging import get_logger
from doc_store.ports.inbound.transaction_manager import (
    TransactionLockError,
    TransactionStateError,
    TransactionStats,
)

logger = get_logger(__name__)

LOCK_HELD_MESSAGE = "Cannot mutate: transaction lock held by another document"


def _current_owner() -> object | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class SingleWriterTransactionManager:
    """Transaction manager for one collection.

    Usage:
        txn_mgr = SingleWriterTransactionManager(collection="users")
        txn_mgr.begin(snapshot)
        txn_mgr.check_mutation([doc_id])
        txn_mgr.record(entry)
        log = txn_mgr.start_commit()
        txn_mgr.finish(committed=True)

    Not thread-safe: callers serialize access per collection.
    """

    def __init__(self, collection: str = "") -> None:
        self._collection = collection
        self._state = TransactionState.IDLE
        self._current: Transaction | None = None
        self._started_at = 0.0

        # Statistics
        self._committed_total = 0
        self._rolled_back_total = 0
        self._total_duration_ms = 0.0

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def current(self) -> Transaction | None:
        return self._current

    @property
    def is_active(self) -> bool:
        return self._state.is_active()

    def begin(self, snapshot: StoreSnapshot, scope_id: DocumentId | None = None) -> Transaction:
        """Open a transaction holding ``snapshot`` for rollback.

        Raises:
            TransactionStateError: If a transaction is already active.
        """
        if not self._state.can_begin():
            raise TransactionStateError("Transaction already active")

        self._current = Transaction(
            scope_id=scope_id,
            owner=_current_owner(),
            snapshot=snapshot,
        )
        self._state = TransactionState.ACTIVE
        self._started_at = time.monotonic()

        logger.info(
            "transaction_begin",
            collection=self._collection,
            scope_id=scope_id,
        )
        return self._current

    def check_mutation(self, target_ids: Iterable[DocumentId | None]) -> None:
        """Raise TransactionLockError if the open transaction forbids the mutation."""
        txn = self._current
        if txn is None or not self._state.is_active():
            return

        if txn.owner is not None and _current_owner() is not txn.owner:
            raise TransactionLockError(LOCK_HELD_MESSAGE)

        if txn.is_scoped:
            for target in target_ids:
                if target != txn.scope_id:
                    raise TransactionLockError(LOCK_HELD_MESSAGE)

    def record(self, entry: TransactionLogEntry) -> None:
        if self._current is None:
            raise TransactionStateError("No active transaction")
        self._current.record(entry)

    def start_commit(self) -> list[TransactionLogEntry]:
        """Move to COMMITTING and return the buffered log.

        Raises:
            TransactionStateError: If no transaction is active.
        """
        if self._current is None or not self._state.can_finish():
            raise TransactionStateError("No active transaction to commit")
        self._state = TransactionState.COMMITTING
        return list(self._current.log)

    def start_rollback(self) -> StoreSnapshot:
        """Move to ROLLING_BACK and return the begin-time snapshot.

        Raises:
            TransactionStateError: If no transaction is active.
        """
        if self._current is None or not self._state.can_finish():
            raise TransactionStateError("No active transaction to roll back")
        self._state = TransactionState.ROLLING_BACK
        return self._current.snapshot

    def finish(self, committed: bool) -> None:
        """Discard the transaction and return to IDLE."""
        duration_ms = (time.monotonic() - self._started_at) * 1000
        entries = len(self._current.log) if self._current else 0

        self._total_duration_ms += duration_ms
        if committed:
            self._committed_total += 1
        else:
            self._rolled_back_total += 1

        self._current = None
        self._state = TransactionState.IDLE

        logger.info(
            "transaction_commit" if committed else "transaction_rollback",
            collection=self._collection,
            entries=entries,
            duration_ms=round(duration_ms, 3),
        )

    def get_stats(self) -> TransactionStats:
        finished = self._committed_total + self._rolled_back_total
        return TransactionStats(
            active=self._state.is_active(),
            committed_total=self._committed_total,
            rolled_back_total=self._rolled_back_total,
            avg_duration_ms=self._total_duration_ms / finished if finished else 0.0,
        )
