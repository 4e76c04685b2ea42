"""Index Manager port for secondary equality indexes.

This inbound port defines the contract for named single-field and
composite equality indexes. An index maps a composite key, built from
the serialized values of its field paths, to the ids of the documents
holding those values, in insertion order.

Key responsibilities:
- Build or rebuild an index from the full collection
- Keep every index consistent on insert, update and delete
- Answer exact-key lookups for the query planner
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Protocol, Sequence

from doc_store.domain.value_objects import DocumentId


@dataclass(frozen=True)
class IndexMetadata:
    """Metadata for an index."""

    name: str
    fields: tuple[str, ...]
    num_keys: int
    num_entries: int

    @property
    def is_composite(self) -> bool:
        return len(self.fields) > 1


@dataclass
class IndexStats:
    """Statistics for index monitoring."""

    num_indexes: int
    total_entries: int
    lookup_count: int
    build_count: int


class IndexManager(Protocol):
    """Protocol for managing secondary indexes.

    Documents with a null or missing value in any indexed field are
    left out of that index. Indexes hold document ids only.
    """

    @abstractmethod
    def create_index(
        self,
        fields: Sequence[str],
        documents: Iterable[Mapping[str, Any]],
        name: str | None = None,
    ) -> IndexMetadata:
        """Build (or rebuild) a named index by scanning ``documents`` once.

        Args:
            fields: Field paths forming the composite key.
            documents: The full collection.
            name: Index name, defaults to the fields joined by ``_``.

        Returns:
            Metadata of the built index.
        """
        ...

    @abstractmethod
    def drop_index(self, name: str) -> bool:
        """Drop an index. Returns False if it did not exist."""
        ...

    @abstractmethod
    def lookup(self, name: str, key: str) -> list[DocumentId] | None:
        """Return the ids stored under ``key``, or None if the key is absent."""
        ...

    @abstractmethod
    def on_insert(self, doc: Mapping[str, Any]) -> None:
        """Add a newly inserted document to every index."""
        ...

    @abstractmethod
    def on_update(self, old_doc: Mapping[str, Any], new_doc: Mapping[str, Any]) -> None:
        """Move a document between keys where its composite key changed."""
        ...

    @abstractmethod
    def on_delete(self, doc_ids: Iterable[DocumentId]) -> None:
        """Purge hard-deleted documents from every index."""
        ...

    @abstractmethod
    def list_indexes(self) -> list[IndexMetadata]:
        """List metadata of all indexes."""
        ...

    @abstractmethod
    def get_stats(self) -> IndexStats:
        """Return index manager statistics for monitoring."""
        ...
