"""Integration tests for Collection."""

from __future__ import annotations

from pathlib import Path

import pytest

from doc_store.adapters.outbound import FileStorageAdapter, InMemoryStorageAdapter
from doc_store.application import Collection, open_collection
from doc_store.domain.value_objects import ChangeType
from doc_store.infrastructure.config import Config
from doc_store.infrastructure.metrics import MetricsRegistry
from doc_store.ports.inbound.document_store import ValidationError
from doc_store.ports.outbound.storage_adapter import StorageArtifact, StorageReadError


PEOPLE = [
    {"_id": "ada", "name": "Ada", "age": 36, "city": "London"},
    {"_id": "grace", "name": "Grace", "age": 45, "city": "New York"},
    {"_id": "alan", "name": "Alan", "age": 41, "city": "London"},
    {"_id": "edsger", "name": "Edsger", "city": "Rotterdam"},
]


@pytest.fixture
async def people(collection: Collection) -> Collection:
    await collection.insert_many(PEOPLE)
    return collection


@pytest.mark.integration
class TestCrud:
    """Insert, read, update and delete."""

    async def test_insert_assigns_unique_ids(self, collection: Collection) -> None:
        inserted = [await collection.insert({"n": i}) for i in range(50)]

        ids = {doc["_id"] for doc in inserted}
        assert len(ids) == 50

    async def test_insert_adds_generated_fields(self, collection: Collection) -> None:
        doc = await collection.insert({"name": "Ada"})

        assert doc["_created"] == doc["_updated"]
        assert doc["_created"].endswith("Z")
        assert [r["_action"] for r in doc["_revisions"]] == ["insert"]

    async def test_round_trip(self, collection: Collection) -> None:
        doc = await collection.insert({"name": "Ada", "profile": {"langs": ["en", "fr"]}})

        assert await collection.find_by_id(doc["_id"]) == doc

    async def test_returned_documents_are_copies(self, people: Collection) -> None:
        doc = await people.find_by_id("ada")
        doc["name"] = "changed"

        assert (await people.find_by_id("ada"))["name"] == "Ada"

    async def test_duplicate_id_rejected(self, people: Collection) -> None:
        with pytest.raises(ValidationError, match="Duplicate _id"):
            await people.insert({"_id": "ada"})

    async def test_insert_many_is_all_or_nothing(self, collection: Collection) -> None:
        with pytest.raises(ValidationError):
            await collection.insert_many([{"_id": "a"}, {"_id": "a"}])

        assert await collection.count() == 0

    async def test_find_one(self, people: Collection) -> None:
        doc = await people.where("city", "London").order_by("age", "desc").find_one()

        assert doc["_id"] == "alan"
        assert await people.where("city", "Paris").find_one() is None

    async def test_find_is_alias_of_get(self, people: Collection) -> None:
        assert await people.find() == await people.get()

    async def test_update_deep_merges(self, collection: Collection) -> None:
        await collection.insert({"_id": "a", "profile": {"city": "Oslo", "tags": ["x", "y"]}})

        updated = await collection.update({"_id": "a"}, {"profile": {"tags": ["z"]}, "_id": "b"})

        assert updated[0]["_id"] == "a"
        assert updated[0]["profile"] == {"city": "Oslo", "tags": ["z"]}
        assert [r["_action"] for r in updated[0]["_revisions"]] == ["insert", "update"]

    async def test_update_uses_builder_state(self, people: Collection) -> None:
        updated = await people.where("age", ">", 40).update(None, {"senior": True})

        assert sorted(doc["_id"] for doc in updated) == ["alan", "grace"]
        assert await people.where("senior", True).count() == 2

    async def test_update_no_match(self, people: Collection) -> None:
        assert await people.update({"city": "Paris"}, {"x": 1}) == []

    async def test_hard_delete(self, people: Collection) -> None:
        assert await people.delete("ada") is True
        assert await people.delete("ada") is False

        assert await people.find_by_id("ada") is None
        assert await people.count() == 3


@pytest.mark.integration
class TestQueries:
    """Query builder semantics."""

    async def test_where_and_order(self, people: Collection) -> None:
        docs = await people.where("city", "=", "London").order_by("name").get()

        assert [d["name"] for d in docs] == ["Ada", "Alan"]

    async def test_builder_resets_after_terminal(self, people: Collection) -> None:
        await people.where("city", "London").limit(1).get()

        assert len(await people.get()) == 4

    async def test_or_where(self, people: Collection) -> None:
        docs = await people.or_where([("city", "=", "Rotterdam"), ("age", ">", 44)]).get()

        assert sorted(d["_id"] for d in docs) == ["edsger", "grace"]

    async def test_where_in_and_like(self, people: Collection) -> None:
        assert len(await people.where_in("city", ["London", "Rotterdam"]).get()) == 3
        assert [d["_id"] for d in await people.where_like("name", "RA").get()] == ["grace"]

    async def test_count_ignores_window(self, people: Collection) -> None:
        assert await people.where("city", "London").skip(1).limit(1).count() == 2

    async def test_nulls_sort_last(self, collection: Collection) -> None:
        await collection.insert_many([{"a": 1}, {"a": None}, {"a": 2}])

        docs = await collection.order_by("a").get()

        assert [d["a"] for d in docs] == [1, 2, None]

    async def test_explain_does_not_execute_or_reset(self, people: Collection) -> None:
        await people.create_index("city")
        people.where("city", "London").order_by("age")

        plan = people.explain_query()

        assert plan.index_choice is not None
        assert plan.to_dict()["selectedIndex"] == "city"
        assert plan.to_dict()["whereFields"] == ["city"]
        assert len(await people.get()) == 2


@pytest.mark.integration
class TestPagination:
    """Tests for paginate()."""

    @pytest.fixture
    async def numbered(self, collection: Collection) -> Collection:
        await collection.insert_many([{"n": i} for i in range(25)])
        return collection

    async def test_first_page(self, numbered: Collection) -> None:
        page = await numbered.order_by("n").paginate(page=1, per_page=10)

        assert [d["n"] for d in page.data] == list(range(10))
        assert page.has_more_pages
        assert page.next_page == 2
        assert page.prev_page is None
        assert page.total_count == 25
        assert page.total_pages == 3

    async def test_last_page(self, numbered: Collection) -> None:
        page = await numbered.order_by("n").paginate(page=3, per_page=10)

        assert len(page.data) == 5
        assert not page.has_more_pages
        assert page.next_page is None
        assert page.prev_page == 2

    async def test_filters_survive_pagination(self, numbered: Collection) -> None:
        page = await numbered.where("n", ">=", 20).paginate(page=1, per_page=10)

        assert page.total_count == 5
        assert sorted(d["n"] for d in page.data) == [20, 21, 22, 23, 24]


@pytest.mark.integration
class TestIndexes:
    """Secondary index behaviour."""

    async def test_create_index_is_idempotent(
        self, people: Collection, memory_storage: InMemoryStorageAdapter
    ) -> None:
        await people.create_index(["city"])
        first = await memory_storage.load(StorageArtifact.INDEXES)
        await people.create_index(["city"])
        second = await memory_storage.load(StorageArtifact.INDEXES)

        assert first == second
        assert first["city"]["map"]["London"] == ["ada", "alan"]
        assert len(people.list_indexes()) == 1

    async def test_index_matches_full_scan(self, people: Collection) -> None:
        scan = await people.where("city", "London").get()
        await people.create_index("city")
        indexed = await people.where("city", "London").get()

        assert indexed == scan

    async def test_index_keeps_loose_numeric_matches(self, collection: Collection) -> None:
        await collection.insert_many([{"_id": "a", "n": 2}, {"_id": "b", "n": "2.0"}])
        scan = await collection.where("n", 2).get()
        await collection.create_index("n")

        indexed = await collection.where("n", 2).get()

        assert [d["_id"] for d in scan] == ["a", "b"]
        assert indexed == scan

    async def test_index_maintained_on_writes(self, people: Collection) -> None:
        await people.create_index("city")

        await people.update({"_id": "ada"}, {"city": "Paris"})
        await people.insert({"_id": "tim", "city": "London"})
        await people.delete("alan")

        docs = await people.where("city", "London").get()
        assert [d["_id"] for d in docs] == ["tim"]
        assert [d["_id"] for d in await people.where("city", "Paris").get()] == ["ada"]

    async def test_composite_index(self, people: Collection) -> None:
        meta = await people.create_index(["city", "age"])

        assert meta.name == "city_age"
        assert meta.is_composite
        docs = await people.where("city", "London").where("age", 41).get()
        assert [d["_id"] for d in docs] == ["alan"]

    async def test_drop_index(self, people: Collection) -> None:
        await people.create_index("city", name="by_city")

        assert await people.drop_index("by_city") is True
        assert await people.drop_index("by_city") is False
        assert people.list_indexes() == []


@pytest.mark.integration
class TestSoftDeletes:
    """Tombstones and trash filters."""

    async def test_soft_delete_visibility(self, people: Collection) -> None:
        people.enable_soft_deletes()

        assert await people.delete("ada") is True

        assert "ada" not in [d["_id"] for d in await people.get()]
        assert [d["_id"] for d in await people.only_deleted().get()] == ["ada"]
        assert len(await people.with_trashed().get()) == 4
        assert await people.find_by_id("ada") is None
        assert (await people.with_trashed().find_by_id("ada"))["_deleted"] is True

    async def test_soft_delete_twice(self, people: Collection) -> None:
        people.enable_soft_deletes()

        await people.delete("ada")

        assert await people.delete("ada") is False

    async def test_tombstone_revision(self, people: Collection) -> None:
        people.enable_soft_deletes()
        await people.delete("ada")

        doc = await people.only_deleted().find_one()

        assert doc["_revisions"][-1]["_action"] == "soft_delete"

    async def test_updates_skip_tombstones(self, people: Collection) -> None:
        people.enable_soft_deletes()
        await people.delete("ada")

        updated = await people.update({"city": "London"}, {"x": 1})

        assert [d["_id"] for d in updated] == ["alan"]


@pytest.mark.integration
class TestFullTextSearch:
    """Full-text index behaviour."""

    @pytest.fixture
    async def notes(self, collection: Collection) -> Collection:
        await collection.insert_many(
            [
                {"_id": "n1", "body": "alpha beta"},
                {"_id": "n2", "body": "beta gamma"},
            ]
        )
        await collection.create_full_text_index(["body"])
        return collection

    async def test_single_token(self, notes: Collection) -> None:
        assert [d["_id"] for d in await notes.full_text_search("beta")] == ["n1", "n2"]

    async def test_tokens_must_co_occur(self, notes: Collection) -> None:
        assert await notes.full_text_search("alpha gamma") == []

    async def test_case_insensitive(self, notes: Collection) -> None:
        assert [d["_id"] for d in await notes.full_text_search("ALPHA")] == ["n1"]

    async def test_index_follows_writes(self, notes: Collection) -> None:
        await notes.insert({"_id": "n3", "body": "gamma delta"})
        await notes.update({"_id": "n1"}, {"body": "epsilon"})
        await notes.delete("n2")

        assert [d["_id"] for d in await notes.full_text_search("gamma")] == ["n3"]
        assert await notes.full_text_search("alpha") == []
        assert [d["_id"] for d in await notes.full_text_search("epsilon")] == ["n1"]

    async def test_tombstones_hidden(self, notes: Collection) -> None:
        notes.enable_soft_deletes()
        await notes.delete("n1")

        assert [d["_id"] for d in await notes.full_text_search("beta")] == ["n2"]


@pytest.mark.integration
class TestValidationAndListeners:
    """Validators and change listeners."""

    async def test_validator_rejects_insert(self, collection: Collection) -> None:
        collection.register_validator(lambda doc: True if "name" in doc else "name is required")

        with pytest.raises(ValidationError, match="name is required"):
            await collection.insert({"age": 3})
        assert await collection.count() == 0

    async def test_update_is_all_or_nothing(self, people: Collection) -> None:
        people.register_validator(lambda doc: doc.get("name") != "Alan" or "Alan is frozen")

        with pytest.raises(ValidationError):
            await people.update({"city": "London"}, {"visited": True})

        assert await people.where("visited", True).count() == 0

    async def test_listener_receives_events(self, collection: Collection) -> None:
        events = []
        collection.on_change(events.append)

        doc = await collection.insert({"name": "Ada"})
        await collection.update({"_id": doc["_id"]}, {"name": "Ada L."})
        await collection.delete(doc["_id"])

        assert [e.change for e in events] == [ChangeType.INSERT, ChangeType.UPDATE, ChangeType.DELETE]
        assert events[1].document["name"] == "Ada L."

    async def test_listener_errors_are_swallowed(self, collection: Collection) -> None:
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        collection.on_change(broken)
        collection.on_change(seen.append)

        await collection.insert({"name": "Ada"})

        assert len(seen) == 1


@pytest.mark.integration
class TestEncryption:
    """Field-level encryption."""

    @pytest.fixture
    async def secrets(self, collection: Collection) -> Collection:
        collection.encrypt_fields(["ssn", "bio"])
        collection.set_encryption_key("passphrase")
        await collection.insert({"_id": "p1", "ssn": "123-45", "bio": "secret agent", "name": "Kim"})
        return collection

    async def test_reads_are_decrypted(self, secrets: Collection) -> None:
        assert (await secrets.find_by_id("p1"))["ssn"] == "123-45"
        assert (await secrets.get())[0]["bio"] == "secret agent"

    async def test_stored_form_is_encrypted(
        self, secrets: Collection, memory_storage: InMemoryStorageAdapter
    ) -> None:
        stored = (await memory_storage.load(StorageArtifact.DOCUMENTS))[0]

        assert stored["ssn"] != "123-45"
        assert stored["name"] == "Kim"

    async def test_encrypted_fields_not_searchable(self, secrets: Collection) -> None:
        await secrets.create_full_text_index(["bio", "name"])

        assert await secrets.full_text_search("agent") == []
        assert [d["_id"] for d in await secrets.full_text_search("kim")] == ["p1"]

    async def test_wrong_key_leaves_field_as_stored(self, secrets: Collection) -> None:
        secrets.set_encryption_key("other")

        doc = await secrets.find_by_id("p1")

        assert doc["ssn"] != "123-45"
        assert doc["name"] == "Kim"


@pytest.mark.integration
class TestSchemaAndRelations:
    """get_schema() and relation projections."""

    async def test_get_schema(self, people: Collection) -> None:
        schema = await people.get_schema()

        assert schema["name"] == {"type": "string"}
        assert schema["age"] == {"type": "number"}
        assert schema["_revisions"]["type"] == "array"

    async def test_relations_between_collections(
        self, people: Collection, test_config: Config, metrics_registry: MetricsRegistry
    ) -> None:
        books = Collection("books", InMemoryStorageAdapter(), config=test_config, metrics=metrics_registry)
        await books.insert_many(
            [
                {"_id": "b1", "title": "Notes", "author": "ada"},
                {"_id": "b2", "title": "COBOL", "author": "grace"},
                {"_id": "b3", "title": "Sketch", "author": "ada"},
            ]
        )

        with_author = await books.belongs_to(people, "author")
        assert [b["related"]["name"] for b in with_author] == ["Ada", "Grace", "Ada"]

        with_books = await people.has_many(books, "author")
        by_id = {p["_id"]: [b["_id"] for b in p["related"]] for p in with_books}
        assert by_id["ada"] == ["b1", "b3"]
        assert by_id["edsger"] == []

        related = await books.relate("author", [{"key": "grace", "org": "Navy"}], related_key="key")
        assert related[1]["related"]["org"] == "Navy"
        assert related[0]["related"] is None


@pytest.mark.integration
class TestPersistence:
    """Reloading from file storage."""

    async def test_reload_restores_all_artifacts(
        self,
        file_collection: Collection,
        file_storage: FileStorageAdapter,
        test_config: Config,
        metrics_registry: MetricsRegistry,
    ) -> None:
        await file_collection.insert_many(PEOPLE)
        await file_collection.create_index("city")
        await file_collection.create_full_text_index("name")

        reloaded = await open_collection(
            "items",
            data_dir=file_storage.directory,
            config=test_config,
            metrics=metrics_registry,
        )

        assert await reloaded.get() == await file_collection.get()
        assert [m.name for m in reloaded.list_indexes()] == ["city"]
        assert [d["_id"] for d in await reloaded.full_text_search("grace")] == ["grace"]

    async def test_tombstones_survive_reload(
        self,
        file_collection: Collection,
        file_storage: FileStorageAdapter,
        test_config: Config,
        metrics_registry: MetricsRegistry,
    ) -> None:
        await file_collection.insert_many(PEOPLE)
        file_collection.enable_soft_deletes()
        await file_collection.delete("ada")

        reloaded = Collection("items", file_storage, config=test_config, metrics=metrics_registry)
        reloaded.enable_soft_deletes()

        assert [d["_id"] for d in await reloaded.only_deleted().get()] == ["ada"]
        assert await reloaded.count() == 3

    async def test_full_text_rebuilt_when_artifact_missing(
        self, file_storage: FileStorageAdapter, temp_dir: Path, metrics_registry: MetricsRegistry
    ) -> None:
        config = Config(
            storage={"backend": "file", "data_dir": temp_dir / "data"},
            collection={"full_text_fields": ["name"]},
        )
        await file_storage.save(StorageArtifact.DOCUMENTS, [{"_id": "x", "name": "Grace Hopper"}])

        store = Collection("items", file_storage, config=config, metrics=metrics_registry)

        assert [d["_id"] for d in await store.full_text_search("hopper")] == ["x"]

    async def test_corrupt_documents_artifact(
        self, file_collection: Collection, file_storage: FileStorageAdapter
    ) -> None:
        file_storage.path_for(StorageArtifact.DOCUMENTS).write_text('{"not": "a list"}', encoding="utf-8")

        with pytest.raises(StorageReadError):
            await file_collection.load()
