"""Integration tests for collection transactions."""

from __future__ import annotations

import asyncio

import pytest

from doc_store.adapters.outbound import InMemoryStorageAdapter
from doc_store.application import Collection
from doc_store.domain.value_objects import ChangeType, TransactionState
from doc_store.ports.inbound.transaction_manager import (
    TransactionLockError,
    TransactionStateError,
)
from doc_store.ports.outbound.storage_adapter import StorageArtifact


@pytest.fixture
async def seeded(collection: Collection) -> Collection:
    await collection.insert_many([{"_id": "a", "v": 1}, {"_id": "b", "v": 2}])
    await collection.create_index("v")
    await collection.create_full_text_index("title")
    return collection


@pytest.mark.integration
class TestRollback:
    """rollback() restores the begin-time state."""

    async def test_insert_then_rollback(
        self, seeded: Collection, memory_storage: InMemoryStorageAdapter
    ) -> None:
        before = await seeded.get()
        saves_before = memory_storage.save_count

        await seeded.begin_transaction()
        await seeded.insert({"_id": "c", "v": 3, "title": "fresh"})
        await seeded.rollback()

        assert await seeded.get() == before
        assert await seeded.where("v", 3).get() == []
        assert await seeded.full_text_search("fresh") == []
        stored = await memory_storage.load(StorageArtifact.DOCUMENTS)
        assert [d["_id"] for d in stored] == ["a", "b"]
        assert memory_storage.save_count > saves_before
        assert seeded.transaction_state is TransactionState.IDLE

    async def test_mixed_mutations_rolled_back(self, seeded: Collection) -> None:
        before = await seeded.get()

        await seeded.begin_transaction()
        await seeded.update({"_id": "a"}, {"v": 10})
        await seeded.delete("b")
        await seeded.rollback()

        assert await seeded.get() == before
        assert [d["_id"] for d in await seeded.where("v", 2).get()] == ["b"]

    async def test_no_persistence_while_open(
        self, seeded: Collection, memory_storage: InMemoryStorageAdapter
    ) -> None:
        saves_before = memory_storage.save_count

        await seeded.begin_transaction()
        await seeded.insert({"_id": "c"})

        assert memory_storage.save_count == saves_before
        assert seeded.in_transaction
        await seeded.rollback()

    async def test_no_notifications_on_rollback(self, seeded: Collection) -> None:
        events = []
        seeded.on_change(events.append)

        await seeded.begin_transaction()
        await seeded.insert({"_id": "c"})
        await seeded.rollback()

        assert events == []


@pytest.mark.integration
class TestCommit:
    """commit() persists and replays notifications."""

    async def test_commit_persists(
        self, seeded: Collection, memory_storage: InMemoryStorageAdapter
    ) -> None:
        await seeded.begin_transaction()
        await seeded.insert({"_id": "c", "v": 3})
        await seeded.commit()

        stored = await memory_storage.load(StorageArtifact.DOCUMENTS)
        assert [d["_id"] for d in stored] == ["a", "b", "c"]
        indexes = await memory_storage.load(StorageArtifact.INDEXES)
        assert indexes["v"]["map"]["3"] == ["c"]

    async def test_notifications_in_log_order(self, seeded: Collection) -> None:
        events = []
        seeded.on_change(events.append)

        await seeded.begin_transaction()
        await seeded.insert({"_id": "c"})
        await seeded.update({"_id": "a"}, {"v": 5})
        await seeded.delete("b")
        assert events == []
        await seeded.commit()

        assert [(e.change, e.document["_id"]) for e in events] == [
            (ChangeType.INSERT, "c"),
            (ChangeType.UPDATE, "a"),
            (ChangeType.DELETE, "b"),
        ]

    async def test_soft_delete_notification(self, seeded: Collection) -> None:
        events = []
        seeded.on_change(events.append)
        seeded.enable_soft_deletes()

        await seeded.begin_transaction()
        await seeded.delete("a")
        await seeded.commit()

        assert [e.change for e in events] == [ChangeType.SOFT_DELETE]

    async def test_insert_many_notifies_each(self, seeded: Collection) -> None:
        events = []
        seeded.on_change(events.append)

        await seeded.begin_transaction()
        await seeded.insert_many([{"_id": "c"}, {"_id": "d"}])
        await seeded.commit()

        assert [e.document["_id"] for e in events] == ["c", "d"]


@pytest.mark.integration
class TestTransactionErrors:
    """State and lock errors."""

    async def test_commit_without_begin(self, collection: Collection) -> None:
        with pytest.raises(TransactionStateError):
            await collection.commit()

    async def test_rollback_without_begin(self, collection: Collection) -> None:
        with pytest.raises(TransactionStateError):
            await collection.rollback()

    async def test_nested_begin(self, collection: Collection) -> None:
        await collection.begin_transaction()

        with pytest.raises(TransactionStateError):
            await collection.begin_transaction()
        await collection.rollback()

    async def test_scoped_lock(self, seeded: Collection) -> None:
        await seeded.begin_transaction("a")

        await seeded.update({"_id": "a"}, {"v": 7})
        with pytest.raises(TransactionLockError):
            await seeded.update({"_id": "b"}, {"v": 8})
        with pytest.raises(TransactionLockError):
            await seeded.delete("b")
        with pytest.raises(TransactionLockError):
            await seeded.insert({"v": 9})

        await seeded.commit()
        assert [d["v"] for d in await seeded.order_by("_id").get()] == [7, 2]

    async def test_other_task_is_locked_out(self, seeded: Collection) -> None:
        await seeded.begin_transaction()

        with pytest.raises(TransactionLockError):
            await asyncio.create_task(seeded.insert({"_id": "z"}))

        await seeded.rollback()
        await asyncio.create_task(seeded.insert({"_id": "z"}))
        assert await seeded.find_by_id("z") is not None

    async def test_reads_allowed_during_transaction(self, seeded: Collection) -> None:
        await seeded.begin_transaction("a")
        assert await seeded.count() == 2
        await seeded.rollback()


@pytest.mark.integration
class TestTransactionContextManager:
    """async with collection.transaction()."""

    async def test_commits_on_success(self, seeded: Collection) -> None:
        async with seeded.transaction() as txn:
            await txn.insert({"_id": "c"})

        assert seeded.transaction_state is TransactionState.IDLE
        assert await seeded.find_by_id("c") is not None

    async def test_rolls_back_on_error(self, seeded: Collection) -> None:
        with pytest.raises(RuntimeError, match="abort"):
            async with seeded.transaction():
                await seeded.insert({"_id": "c"})
                raise RuntimeError("abort")

        assert await seeded.find_by_id("c") is None
        assert not seeded.in_transaction

    async def test_scoped_context(self, seeded: Collection) -> None:
        with pytest.raises(TransactionLockError):
            async with seeded.transaction("a"):
                await seeded.update({"_id": "a"}, {"v": 100})
                await seeded.delete("b")

        assert (await seeded.find_by_id("a"))["v"] == 1
        assert await seeded.find_by_id("b") is not None
