"""Unit tests for SingleWriterTransactionManager."""

from __future__ import annotations

import asyncio

import pytest

from doc_store.domain.entities import StoreSnapshot, TransactionLogEntry
from doc_store.domain.services import SingleWriterTransactionManager
from doc_store.domain.value_objects import DocumentId, MutationKind, TransactionState
from doc_store.ports.inbound.transaction_manager import (
    TransactionLockError,
    TransactionStateError,
)


@pytest.fixture
def snapshot() -> StoreSnapshot:
    return StoreSnapshot(documents=[{"_id": "a"}], indexes={}, full_text={})


@pytest.mark.unit
class TestTransactionLifecycle:
    """Tests for begin / commit / rollback state changes."""

    def test_begin(self, snapshot: StoreSnapshot) -> None:
        txn_mgr = SingleWriterTransactionManager("items")
        txn = txn_mgr.begin(snapshot)

        assert txn_mgr.state is TransactionState.ACTIVE
        assert txn_mgr.is_active
        assert not txn.is_scoped

    def test_nested_begin_rejected(self, snapshot: StoreSnapshot) -> None:
        txn_mgr = SingleWriterTransactionManager()
        txn_mgr.begin(snapshot)

        with pytest.raises(TransactionStateError, match="already active"):
            txn_mgr.begin(snapshot)

    def test_commit_without_transaction(self) -> None:
        with pytest.raises(TransactionStateError):
            SingleWriterTransactionManager().start_commit()

    def test_rollback_without_transaction(self) -> None:
        with pytest.raises(TransactionStateError):
            SingleWriterTransactionManager().start_rollback()

    def test_commit_returns_log_in_order(self, snapshot: StoreSnapshot) -> None:
        txn_mgr = SingleWriterTransactionManager()
        txn_mgr.begin(snapshot)
        first = TransactionLogEntry(kind=MutationKind.INSERT, documents=({"_id": "b"},))
        second = TransactionLogEntry(kind=MutationKind.DELETE, document_id=DocumentId("a"))
        txn_mgr.record(first)
        txn_mgr.record(second)

        log = txn_mgr.start_commit()
        assert txn_mgr.state is TransactionState.COMMITTING
        txn_mgr.finish(committed=True)

        assert log == [first, second]
        assert txn_mgr.state is TransactionState.IDLE
        assert txn_mgr.current is None

    def test_rollback_returns_snapshot(self, snapshot: StoreSnapshot) -> None:
        txn_mgr = SingleWriterTransactionManager()
        txn_mgr.begin(snapshot)

        assert txn_mgr.start_rollback() is snapshot
        assert txn_mgr.state is TransactionState.ROLLING_BACK
        txn_mgr.finish(committed=False)
        assert txn_mgr.state is TransactionState.IDLE

    def test_stats(self, snapshot: StoreSnapshot) -> None:
        txn_mgr = SingleWriterTransactionManager()
        for committed in (True, False, True):
            txn_mgr.begin(snapshot)
            if committed:
                txn_mgr.start_commit()
            else:
                txn_mgr.start_rollback()
            txn_mgr.finish(committed=committed)

        stats = txn_mgr.get_stats()
        assert stats.committed_total == 2
        assert stats.rolled_back_total == 1
        assert not stats.active
        assert stats.avg_duration_ms >= 0.0


@pytest.mark.unit
class TestTransactionLocks:
    """Tests for check_mutation()."""

    def test_no_transaction_allows_everything(self) -> None:
        SingleWriterTransactionManager().check_mutation([DocumentId("x"), None])

    def test_scoped_rejects_other_ids(self, snapshot: StoreSnapshot) -> None:
        txn_mgr = SingleWriterTransactionManager()
        txn_mgr.begin(snapshot, scope_id=DocumentId("a"))

        txn_mgr.check_mutation([DocumentId("a")])
        with pytest.raises(TransactionLockError, match="transaction lock held by another document"):
            txn_mgr.check_mutation([DocumentId("b")])

    def test_scoped_rejects_insert_without_id(self, snapshot: StoreSnapshot) -> None:
        txn_mgr = SingleWriterTransactionManager()
        txn_mgr.begin(snapshot, scope_id=DocumentId("a"))

        with pytest.raises(TransactionLockError):
            txn_mgr.check_mutation([None])

    async def test_other_task_rejected(self, snapshot: StoreSnapshot) -> None:
        txn_mgr = SingleWriterTransactionManager()
        txn_mgr.begin(snapshot)

        async def mutate_elsewhere() -> None:
            txn_mgr.check_mutation([DocumentId("a")])

        with pytest.raises(TransactionLockError):
            await asyncio.create_task(mutate_elsewhere())

        # The owning task may still mutate
        txn_mgr.check_mutation([DocumentId("a")])
