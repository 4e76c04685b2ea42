"""Collection: the embedded document store facade.

This is the main entry point. A Collection coordinates:
- The ordered document list (the only owner of document bodies)
- Secondary and full-text indexes (ids only)
- Query planning and evaluation
- The single-writer transaction
- Field encryption, validation, change listeners and the read cache
- Persistence through a StorageAdapter

Usage:
    users = await open_collection("users", data_dir="/var/lib/app")
    await users.insert({"name": "Ada", "city": "London"})
    londoners = await users.where("city", "=", "London").order_by("name").get()

    async with users.transaction():
        await users.insert({"name": "Grace"})

Concurrency:
    Calls against one instance must be serialized by the caller; the only
    coordination the collection performs is the transaction lock.
"""

from __future__ import annotations

import math
import time
from contextlib import asynccontextmanager, contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Any, AsyncIterator, Iterable, Iterator, Mapping, Sequence

from doc_store.adapters.outbound.file_storage import FileStorageAdapter
from doc_store.adapters.outbound.lru_read_cache import LRUReadCache
from doc_store.adapters.outbound.memory_storage import InMemoryStorageAdapter
from doc_store.domain.entities import (
    PageResult,
    QueryPlan,
    QueryState,
    StoreSnapshot,
    TransactionLogEntry,
    add_revision,
    deep_clone,
    deep_merge,
    is_tombstone,
    mark_deleted,
    stamp,
)
from doc_store.domain.services import (
    FieldCipher,
    FullTextIndex,
    QueryEngine,
    SecondaryIndexManager,
    SingleWriterTransactionManager,
    infer_schema,
    visible,
)
from doc_store.domain.services import relations
from doc_store.domain.value_objects import (
    ID_FIELD,
    ChangeType,
    Condition,
    DocumentId,
    MutationKind,
    OrGroup,
    RevisionAction,
    SortDirection,
    TransactionState,
    TrashedFilter,
    generate_id,
)
from doc_store.infrastructure.config import Config, get_config
from doc_store.infrastructure.logging import get_logger
from doc_store.infrastructure.metrics import MetricsRegistry, get_metrics
from doc_store.infrastructure.tracing import trace_span, traced
from doc_store.ports.inbound.document_store import (
    ChangeEvent,
    ChangeListener,
    ValidationError,
    Validator,
)
from doc_store.ports.inbound.index_manager import IndexMetadata
from doc_store.ports.inbound.transaction_manager import TransactionManager
from doc_store.ports.outbound.read_cache import ReadCache
from doc_store.ports.outbound.storage_adapter import (
    StorageAdapter,
    StorageArtifact,
    StorageReadError,
)

logger = get_logger(__name__)

_UNSET: Any = object()


class Collection:
    """A single named collection of JSON documents.

    Builder methods (where, order_by, ...) are synchronous and return the
    collection for chaining. Terminal operations are coroutines and reset
    the builder state whether they succeed or fail.

    Attributes:
        name: Collection name; also the artifact file prefix.
    """

    def __init__(
        self,
        name: str,
        storage: StorageAdapter | None = None,
        *,
        config: Config | None = None,
        metrics: MetricsRegistry | None = None,
        cache: ReadCache | None = None,
    ) -> None:
        """Initialize the collection without touching storage.

        Args:
            name: Collection name.
            storage: Artifact storage. Built from ``config.storage`` if None.
            config: Configuration (default: global config).
            metrics: Metrics registry (default: global registry).
            cache: Read cache for find_by_id (default: LRUReadCache).
        """
        if not name:
            raise ValueError("Collection name must not be empty")

        self.name = name
        self._config = config or get_config()
        self._storage = storage or self._default_storage(name, self._config)
        self._metrics = metrics or get_metrics()
        self._cache: ReadCache = cache or LRUReadCache(self._config.collection.cache_size)

        self._documents: list[dict[str, Any]] = []
        self._indexes = SecondaryIndexManager()
        self._full_text = FullTextIndex()
        self._full_text_fields: list[str] = list(self._config.collection.full_text_fields)
        self._engine = QueryEngine(self._indexes, on_index_used=self._on_index_used)
        self._txn: TransactionManager = SingleWriterTransactionManager(collection=name)
        self._cipher = FieldCipher()

        self._soft_deletes = self._config.collection.soft_deletes
        self._state = QueryState()
        self._validators: list[Validator] = []
        self._listeners: list[ChangeListener] = []
        self._loaded = False

    @staticmethod
    def _default_storage(name: str, config: Config) -> StorageAdapter:
        if config.storage.backend == "memory":
            return InMemoryStorageAdapter()
        return FileStorageAdapter(
            directory=config.storage.data_dir,
            name=name,
            indent=config.storage.indent,
            temp_suffix=config.storage.temp_suffix,
        )

    def __repr__(self) -> str:
        return f"Collection(name={self.name!r}, documents={len(self._documents)})"

    @property
    def storage(self) -> StorageAdapter:
        return self._storage

    @property
    def soft_deletes_enabled(self) -> bool:
        return self._soft_deletes

    @property
    def full_text_fields(self) -> list[str]:
        return list(self._full_text_fields)

    @property
    def transaction_state(self) -> TransactionState:
        return self._txn.state

    @property
    def in_transaction(self) -> bool:
        return self._txn.is_active

    # =========================================================================
    # Loading and persistence
    # =========================================================================

    async def load(self) -> None:
        """Load all three artifacts from storage.

        A missing artifact is an empty one. Tombstones are kept in memory
        so that trash filters and revision history survive a reload.

        Raises:
            StorageReadError: If an artifact exists but cannot be read.
        """
        with trace_span("collection.load", {"doc_store.collection": self.name}):
            documents = await self._storage.load(StorageArtifact.DOCUMENTS)
            indexes = await self._storage.load(StorageArtifact.INDEXES)
            full_text = await self._storage.load(StorageArtifact.FULL_TEXT)

        if documents is not None and not isinstance(documents, list):
            raise StorageReadError(
                f"Documents artifact of {self.name!r} is not a list"
            )
        self._documents = documents or []
        self._indexes.load_dict(indexes)
        if full_text is None and self._full_text_fields and self._documents:
            self._full_text.rebuild(self._documents, self._text_fields())
        else:
            self._full_text.load_dict(full_text)

        self._cache.clear()
        self._loaded = True
        self._metrics.documents.labels(collection=self.name).set(len(self._documents))

        logger.info(
            "collection_loaded",
            collection=self.name,
            documents=len(self._documents),
            indexes=len(self._indexes),
            tokens=len(self._full_text),
        )

    async def _ensure_loaded(self) -> None:
        if not self._loaded:
            await self.load()

    async def _persist(self, *artifacts: StorageArtifact) -> None:
        """Write artifacts (all three by default) unless a transaction is buffering."""
        if self._txn.is_active:
            return

        targets = artifacts or tuple(StorageArtifact)
        payloads = {
            StorageArtifact.DOCUMENTS: lambda: self._documents,
            StorageArtifact.INDEXES: self._indexes.to_dict,
            StorageArtifact.FULL_TEXT: self._full_text.to_dict,
        }

        start = time.perf_counter()
        with trace_span(
            "collection.persist",
            {"doc_store.collection": self.name, "doc_store.artifacts": len(targets)},
        ):
            for artifact in targets:
                await self._storage.save(artifact, payloads[artifact]())
                self._metrics.storage_writes_total.labels(
                    collection=self.name, artifact=artifact.value
                ).inc()

        self._metrics.storage_write_latency_seconds.labels(collection=self.name).observe(
            time.perf_counter() - start
        )
        self._metrics.documents.labels(collection=self.name).set(len(self._documents))
        self._cache.clear()

    # =========================================================================
    # Query builder
    # =========================================================================

    def where(self, field: str, operator: str, value: Any = _UNSET) -> Collection:
        """Add an AND condition. ``where(field, value)`` means ``=``."""
        if value is _UNSET:
            operator, value = "=", operator
        self._state.predicates.append(Condition(field, operator, value))
        return self

    def or_where(
        self, conditions: Iterable[Condition | Mapping[str, Any] | tuple]
    ) -> Collection:
        """Add an OR group that holds when any of ``conditions`` holds."""
        self._state.predicates.append(OrGroup.of(conditions))
        return self

    def where_in(self, field: str, values: Iterable[Any]) -> Collection:
        self._state.predicates.append(Condition(field, "in", list(values)))
        return self

    def where_like(self, field: str, value: str) -> Collection:
        self._state.predicates.append(Condition(field, "like", value))
        return self

    def limit(self, count: int) -> Collection:
        self._state.limit_count = count
        return self

    def skip(self, count: int) -> Collection:
        self._state.skip_count = count
        return self

    def order_by(self, field: str, direction: str | SortDirection = "asc") -> Collection:
        self._state.order_field = field
        self._state.order_direction = SortDirection.parse(direction)
        return self

    def only_deleted(self) -> Collection:
        self._state.trashed = TrashedFilter.ONLY
        return self

    def with_trashed(self) -> Collection:
        self._state.trashed = TrashedFilter.INCLUDE
        return self

    def enable_soft_deletes(self, enable: bool = True) -> Collection:
        self._soft_deletes = enable
        return self

    def explain_query(self) -> QueryPlan:
        """Describe the current builder state without executing or resetting it."""
        return self._engine.plan(self._state, self._soft_deletes)

    def reset_query(self) -> Collection:
        """Discard pending builder calls."""
        self._state.reset()
        return self

    def _take_state(self) -> QueryState:
        state = self._state.copy()
        self._state.reset()
        return state

    # =========================================================================
    # Reads
    # =========================================================================

    def _present(self, stored: dict[str, Any]) -> dict[str, Any]:
        """Decrypted copy of a stored document."""
        return self._cipher.decrypt_document(deep_clone(stored))

    def _on_index_used(self, index_name: str) -> None:
        self._metrics.index_prefilters_total.labels(
            collection=self.name, index_name=index_name
        ).inc()

    @contextmanager
    def _observe(self, operation: str, timed: bool = False) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        except Exception:
            self._metrics.operations_total.labels(
                collection=self.name, operation=operation, status="error"
            ).inc()
            raise
        self._metrics.operations_total.labels(
            collection=self.name, operation=operation, status="success"
        ).inc()
        if timed:
            self._metrics.query_latency_seconds.labels(
                collection=self.name, operation=operation
            ).observe(time.perf_counter() - start)

    def _run(self, state: QueryState) -> list[dict[str, Any]]:
        plan = self._engine.plan(state, self._soft_deletes)
        selected = self._engine.select(self._documents, state, self._soft_deletes, plan)
        return [self._present(doc) for doc in selected]

    @traced()
    async def get(self) -> list[dict[str, Any]]:
        """Run the current query and return decrypted copies of the results."""
        state = self._take_state()
        with self._observe("get", timed=True):
            await self._ensure_loaded()
            return self._run(state)

    async def find(self) -> list[dict[str, Any]]:
        """Alias of get()."""
        return await self.get()

    @traced()
    async def find_one(self) -> dict[str, Any] | None:
        state = self._take_state()
        state.limit_count = 1
        with self._observe("find_one", timed=True):
            await self._ensure_loaded()
            results = self._run(state)
        return results[0] if results else None

    @traced()
    async def find_by_id(self, doc_id: str) -> dict[str, Any] | None:
        """Fetch one document by id, honouring tombstone visibility."""
        state = self._take_state()
        with self._observe("find_by_id", timed=True):
            await self._ensure_loaded()
            doc = self._cache.get(doc_id)
            if doc is None:
                stored = self._find_stored(doc_id)
                if stored is None:
                    return None
                doc = self._present(stored)
                self._cache.set(doc_id, doc)
        return doc if visible(doc, self._soft_deletes, state.trashed) else None

    @traced()
    async def count(self) -> int:
        """Number of visible documents matching the predicates; ignores skip/limit."""
        state = self._take_state()
        with self._observe("count", timed=True):
            await self._ensure_loaded()
            return len(self._engine.filter(self._documents, state, self._soft_deletes))

    @traced()
    async def paginate(self, page: int = 1, per_page: int = 10) -> PageResult:
        """Return one page of the current query plus navigation metadata."""
        page = max(int(page), 1)
        per_page = max(int(per_page), 1)
        state = self._take_state()

        with self._observe("paginate", timed=True):
            await self._ensure_loaded()
            total = len(self._engine.filter(self._documents, state, self._soft_deletes))
            total_pages = math.ceil(total / per_page)
            window = replace(
                state.copy(), skip_count=(page - 1) * per_page, limit_count=per_page
            )
            data = self._run(window)

        return PageResult(
            data=data,
            current_page=page,
            per_page=per_page,
            total_count=total,
            total_pages=total_pages,
            has_more_pages=page < total_pages,
            next_page=page + 1 if page < total_pages else None,
            prev_page=page - 1 if page > 1 else None,
        )

    def _find_stored(self, doc_id: str) -> dict[str, Any] | None:
        for doc in self._documents:
            if doc.get(ID_FIELD) == doc_id:
                return doc
        return None

    def _position_of(self, doc_id: str) -> int | None:
        for position, doc in enumerate(self._documents):
            if doc.get(ID_FIELD) == doc_id:
                return position
        return None

    # =========================================================================
    # Validation and notification
    # =========================================================================

    def register_validator(self, validator: Validator) -> None:
        """Register a callback that returns True to accept a document."""
        self._validators.append(validator)

    def on_change(self, listener: ChangeListener) -> None:
        """Register a listener called with a ChangeEvent after each mutation."""
        self._listeners.append(listener)

    def _validate(self, doc: dict[str, Any]) -> None:
        for validator in self._validators:
            result = validator(deep_clone(doc))
            if result is not True:
                self._metrics.validation_failures_total.labels(collection=self.name).inc()
                logger.info(
                    "validation_rejected",
                    collection=self.name,
                    document_id=doc.get(ID_FIELD),
                    reason=str(result),
                )
                raise ValidationError(f"Validation failed: {result}")

    def _notify(self, doc: dict[str, Any], change: ChangeType) -> None:
        """Deliver a change to every listener; listener errors are logged, never raised."""
        if self._txn.is_active:
            return
        for listener in list(self._listeners):
            try:
                listener(ChangeEvent(document=deep_clone(doc), change=change))
            except Exception:
                self._metrics.listener_errors_total.labels(collection=self.name).inc()
                logger.exception(
                    "change_listener_failed",
                    collection=self.name,
                    change=change.value,
                    document_id=doc.get(ID_FIELD),
                )

    # =========================================================================
    # Mutations
    # =========================================================================

    def _text_fields(self) -> list[str]:
        if not self._cipher.enabled:
            return list(self._full_text_fields)
        encrypted = set(self._cipher.fields)
        return [f for f in self._full_text_fields if f not in encrypted]

    def _prepare_insert(self, doc: Mapping[str, Any], taken: set[str]) -> dict[str, Any]:
        """Validate and complete one new document without touching state."""
        new_doc = deep_clone(dict(doc))
        self._validate(new_doc)

        doc_id = new_doc.get(ID_FIELD)
        if not doc_id:
            doc_id = generate_id()
            new_doc[ID_FIELD] = doc_id
        elif doc_id in taken:
            raise ValidationError(f"Duplicate _id: {doc_id}")
        taken.add(doc_id)

        timestamp = stamp(new_doc, created=True)
        add_revision(new_doc, RevisionAction.INSERT, at=timestamp)
        return new_doc

    def _append(self, new_doc: dict[str, Any]) -> dict[str, Any]:
        stored = self._cipher.encrypt_document(new_doc)
        self._documents.append(stored)
        self._indexes.on_insert(stored)
        self._full_text.index_document(stored, self._text_fields())
        self._cache.delete(stored[ID_FIELD])
        return stored

    def _existing_ids(self) -> set[str]:
        return {doc[ID_FIELD] for doc in self._documents if doc.get(ID_FIELD)}

    @traced()
    async def insert(self, doc: Mapping[str, Any]) -> dict[str, Any]:
        """Insert one document and return its decrypted stored form.

        Raises:
            ValidationError: If a validator rejects it or its ``_id`` is taken.
            TransactionLockError: If the open transaction forbids the insert.
        """
        with self._observe("insert"):
            await self._ensure_loaded()
            self._txn.check_mutation([doc.get(ID_FIELD)])

            new_doc = self._prepare_insert(doc, self._existing_ids())
            stored = self._append(new_doc)

            if self._txn.is_active:
                self._txn.record(
                    TransactionLogEntry(kind=MutationKind.INSERT, documents=(deep_clone(stored),))
                )
            await self._persist()

        result = self._present(stored)
        self._notify(result, ChangeType.INSERT)
        return result

    @traced()
    async def insert_many(self, docs: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
        """Insert several documents with one persistence flush.

        Every document is validated before any is stored.
        """
        with self._observe("insert_many"):
            await self._ensure_loaded()
            self._txn.check_mutation([doc.get(ID_FIELD) for doc in docs])

            taken = self._existing_ids()
            prepared = [self._prepare_insert(doc, taken) for doc in docs]
            stored_docs = [self._append(new_doc) for new_doc in prepared]

            if self._txn.is_active and stored_docs:
                self._txn.record(
                    TransactionLogEntry(
                        kind=MutationKind.INSERT_MANY,
                        documents=tuple(deep_clone(d) for d in stored_docs),
                    )
                )
            await self._persist()

        results = [self._present(stored) for stored in stored_docs]
        for result in results:
            self._notify(result, ChangeType.INSERT)
        return results

    @traced()
    async def update(
        self, query: Mapping[str, Any] | None, patch: Mapping[str, Any]
    ) -> list[dict[str, Any]]:
        """Deep-merge ``patch`` into every document the query selects.

        ``query`` adds equality conditions to the builder state. All
        matched documents are lock-checked and validated before any is
        changed, so a rejection leaves the collection untouched. ``_id``
        in the patch is ignored.
        """
        for field, value in (query or {}).items():
            self._state.predicates.append(Condition(field, "=", value))
        state = self._take_state()
        clean_patch = {k: v for k, v in patch.items() if k != ID_FIELD}

        with self._observe("update"):
            await self._ensure_loaded()
            targets = self._engine.select(self._documents, state, self._soft_deletes)
            self._txn.check_mutation([doc.get(ID_FIELD) for doc in targets])

            prepared: list[tuple[dict[str, Any], dict[str, Any]]] = []
            for stored in targets:
                merged = deep_merge(self._present(stored), clean_patch)
                timestamp = stamp(merged)
                add_revision(merged, RevisionAction.UPDATE, at=timestamp)
                self._validate(merged)
                prepared.append((stored, merged))

            positions = {
                doc.get(ID_FIELD): position for position, doc in enumerate(self._documents)
            }
            fields = self._text_fields()
            updated: list[dict[str, Any]] = []
            for old_stored, merged in prepared:
                new_stored = self._cipher.encrypt_document(merged)
                doc_id = DocumentId(new_stored[ID_FIELD])
                self._documents[positions[doc_id]] = new_stored
                self._indexes.on_update(old_stored, new_stored)
                self._full_text.remove_document(doc_id)
                self._full_text.index_document(new_stored, fields)
                self._cache.delete(doc_id)
                updated.append(new_stored)

            if self._txn.is_active and updated:
                self._txn.record(
                    TransactionLogEntry(
                        kind=MutationKind.UPDATE,
                        documents=tuple(deep_clone(d) for d in updated),
                    )
                )
            if updated:
                await self._persist()

        results = [self._present(stored) for stored in updated]
        for result in results:
            self._notify(result, ChangeType.UPDATE)
        return results

    @traced()
    async def delete(self, doc_id: str) -> bool:
        """Delete (or tombstone, with soft deletes on) one document.

        Returns:
            True if a document was deleted, False if none was found or it
            was already tombstoned.
        """
        with self._observe("delete"):
            await self._ensure_loaded()
            self._txn.check_mutation([DocumentId(doc_id)])

            position = self._position_of(doc_id)
            if position is None:
                return False
            stored = self._documents[position]

            if self._soft_deletes:
                if is_tombstone(stored):
                    return False
                tombstone = deep_clone(stored)
                mark_deleted(tombstone)
                self._documents[position] = tombstone
                change, affected = ChangeType.SOFT_DELETE, tombstone
            else:
                del self._documents[position]
                self._indexes.on_delete([DocumentId(doc_id)])
                self._full_text.remove_document(DocumentId(doc_id))
                change, affected = ChangeType.DELETE, stored
            self._cache.delete(doc_id)

            if self._txn.is_active:
                self._txn.record(
                    TransactionLogEntry(
                        kind=MutationKind.DELETE,
                        document_id=DocumentId(doc_id),
                        soft=change is ChangeType.SOFT_DELETE,
                    )
                )
            await self._persist()

        self._notify(self._present(affected), change)
        return True

    # =========================================================================
    # Indexes
    # =========================================================================

    @traced()
    async def create_index(
        self, fields: Sequence[str] | str, name: str | None = None
    ) -> IndexMetadata:
        """Build or rebuild a secondary equality index over ``fields``."""
        await self._ensure_loaded()
        metadata = self._indexes.create_index(fields, self._documents, name)
        self._metrics.index_builds_total.labels(collection=self.name, kind="secondary").inc()
        await self._persist(StorageArtifact.INDEXES)
        return metadata

    @traced()
    async def drop_index(self, name: str) -> bool:
        await self._ensure_loaded()
        dropped = self._indexes.drop_index(name)
        if dropped:
            logger.info("index_dropped", collection=self.name, index=name)
            await self._persist(StorageArtifact.INDEXES)
        return dropped

    def list_indexes(self) -> list[IndexMetadata]:
        return self._indexes.list_indexes()

    @traced()
    async def create_full_text_index(self, fields: Sequence[str] | str) -> None:
        """Declare the full-text fields and rebuild the inverted index."""
        await self._ensure_loaded()
        self._full_text_fields = [fields] if isinstance(fields, str) else list(fields)
        self._full_text.rebuild(self._documents, self._text_fields())
        self._metrics.index_builds_total.labels(collection=self.name, kind="full_text").inc()
        await self._persist(StorageArtifact.FULL_TEXT)

    @traced()
    async def full_text_search(self, query: str) -> list[dict[str, Any]]:
        """Documents containing every token of ``query``, in collection order."""
        state = self._take_state()
        with self._observe("full_text_search", timed=True):
            await self._ensure_loaded()
            ids = self._full_text.search(query)
            self._metrics.full_text_searches_total.labels(collection=self.name).inc()
            return [
                self._present(doc)
                for doc in self._documents
                if doc.get(ID_FIELD) in ids
                and visible(doc, self._soft_deletes, state.trashed)
            ]

    # =========================================================================
    # Transactions
    # =========================================================================

    async def begin_transaction(self, scope_id: str | None = None) -> None:
        """Open the collection's transaction, optionally scoped to one id.

        Raises:
            TransactionStateError: If a transaction is already active.
        """
        await self._ensure_loaded()
        snapshot = StoreSnapshot(
            documents=deep_clone(self._documents),
            indexes=deep_clone(self._indexes.to_dict()),
            full_text=deep_clone(self._full_text.to_dict()),
        )
        self._txn.begin(snapshot, DocumentId(scope_id) if scope_id else None)
        self._metrics.transactions_active.labels(collection=self.name).set(1)

    @traced()
    async def commit(self) -> None:
        """Persist everything buffered, then replay notifications in log order.

        Raises:
            TransactionStateError: If no transaction is active.
        """
        log = self._txn.start_commit()
        try:
            await self._persist()
        except Exception:
            self._txn.finish(committed=False)
            self._metrics.transactions_active.labels(collection=self.name).set(0)
            self._metrics.transactions_total.labels(collection=self.name, status="error").inc()
            raise
        self._txn.finish(committed=True)
        self._cache.clear()
        self._metrics.transactions_active.labels(collection=self.name).set(0)
        self._metrics.transactions_total.labels(collection=self.name, status="commit").inc()

        for entry in log:
            if entry.kind is MutationKind.DELETE:
                change = ChangeType.SOFT_DELETE if entry.soft else ChangeType.DELETE
                self._notify({ID_FIELD: entry.document_id}, change)
                continue
            change = ChangeType.UPDATE if entry.kind is MutationKind.UPDATE else ChangeType.INSERT
            for stored in entry.documents:
                self._notify(self._present(stored), change)

    @traced()
    async def rollback(self) -> None:
        """Restore and persist the begin-time state. No notifications fire.

        Raises:
            TransactionStateError: If no transaction is active.
        """
        snapshot = self._txn.start_rollback()
        self._documents = deep_clone(snapshot.documents)
        self._indexes.load_dict(deep_clone(snapshot.indexes))
        self._full_text.load_dict(deep_clone(snapshot.full_text))
        try:
            await self._persist()
        finally:
            self._txn.finish(committed=False)
            self._cache.clear()
            self._metrics.transactions_active.labels(collection=self.name).set(0)
            self._metrics.transactions_total.labels(collection=self.name, status="rollback").inc()

    @asynccontextmanager
    async def transaction(self, scope_id: str | None = None) -> AsyncIterator[Collection]:
        """Commit on normal exit, roll back if the block raises."""
        await self.begin_transaction(scope_id)
        try:
            yield self
        except Exception:
            await self.rollback()
            raise
        await self.commit()

    # =========================================================================
    # Encryption
    # =========================================================================

    def encrypt_fields(self, fields: Iterable[str]) -> None:
        """Select the dot-path fields encrypted at rest for future writes."""
        self._cipher.set_fields(fields)
        self._cache.clear()

    def set_encryption_key(self, key: str | bytes | None) -> None:
        self._cipher.set_key(key)
        self._cache.clear()

    # =========================================================================
    # Schema and relations
    # =========================================================================

    async def get_schema(self) -> dict[str, Any]:
        """Infer a nested type map from every stored document, decrypted."""
        await self._ensure_loaded()
        return infer_schema(self._present(doc) for doc in self._documents)

    async def _visible_documents(self) -> list[dict[str, Any]]:
        state = self._take_state()
        await self._ensure_loaded()
        return [
            self._present(doc)
            for doc in self._documents
            if visible(doc, self._soft_deletes, state.trashed)
        ]

    @staticmethod
    async def _records(related: Collection | Iterable[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
        if isinstance(related, Collection):
            return await related.get()
        return list(related)

    async def relate(
        self,
        foreign_key: str,
        related: Collection | Iterable[Mapping[str, Any]],
        related_key: str = ID_FIELD,
    ) -> list[dict[str, Any]]:
        """Attach the record of ``related`` referenced by each document's ``foreign_key``."""
        documents = await self._visible_documents()
        return relations.relate(documents, foreign_key, await self._records(related), related_key)

    async def belongs_to(
        self,
        related: Collection | Iterable[Mapping[str, Any]],
        foreign_key: str,
        related_key: str = ID_FIELD,
    ) -> list[dict[str, Any]]:
        documents = await self._visible_documents()
        return relations.belongs_to(documents, await self._records(related), foreign_key, related_key)

    async def has_many(
        self,
        related: Collection | Iterable[Mapping[str, Any]],
        foreign_key: str,
    ) -> list[dict[str, Any]]:
        """Attach every record of ``related`` whose ``foreign_key`` is this document's id."""
        documents = await self._visible_documents()
        return relations.has_many(documents, await self._records(related), foreign_key)


async def open_collection(
    name: str,
    data_dir: str | Path | None = None,
    *,
    config: Config | None = None,
    metrics: MetricsRegistry | None = None,
) -> Collection:
    """Create a collection and load its artifacts.

    Args:
        name: Collection name.
        data_dir: Directory for file storage. Overrides ``config.storage``
            and forces the file backend.
        config: Configuration (default: global config).
        metrics: Metrics registry (default: global registry).
    """
    config = config or get_config()
    storage: StorageAdapter | None = None
    if data_dir is not None:
        storage = FileStorageAdapter(
            directory=data_dir,
            name=name,
            indent=config.storage.indent,
            temp_suffix=config.storage.temp_suffix,
        )
    collection = Collection(name, storage, config=config, metrics=metrics)
    await collection.load()
    return collection
