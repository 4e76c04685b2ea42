"""Secondary equality index manager.

Each named index is a mapping from a composite key to an ordered list of
document ids. The composite key joins the serialized value of every
indexed field path with ``|``:

    booleans      -> "1" / "0"
    null/missing  -> "NULL"
    dict/list     -> canonical JSON (sorted keys, compact)
    integral float-> the integer text, so 2.0 and 2 share a key
    other         -> str(value)

A document with a null or missing value in any indexed field is left
out of that index entirely. Indexes store ids only, never documents.

Persisted layout (one entry per index):
    {"<name>": {"fields": ["a", "b.c"], "map": {"<key>": ["id1", "id2"]}}}
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from doc_store.domain.entities import get_path, is_absent
from doc_store.domain.value_objects import ID_FIELD, DocumentId
from doc_store.infrastructure.logging import get_logger
from doc_store.ports.inbound.index_manager import IndexMetadata, IndexStats

logger = get_logger(__name__)

KEY_SEPARATOR = "|"
NULL_SENTINEL = "NULL"


def serialize_index_value(value: Any) -> str:
    """Serialize one field value into its composite key segment."""
    if isinstance(value, bool):
        return "1" if value else "0"
    if is_absent(value):
        return NULL_SENTINEL
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, sort_keys=True, separators=(",", ":"))
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def composite_key(doc: Mapping[str, Any], fields: Sequence[str]) -> str | None:
    """Composite key of ``doc`` for ``fields``, or None if any value is absent."""
    parts: list[str] = []
    for path in fields:
        value = get_path(doc, path)
        if is_absent(value):
            return None
        parts.append(serialize_index_value(value))
    return KEY_SEPARATOR.join(parts)


def composite_key_for_values(values: Sequence[Any]) -> str | None:
    """Composite key for already-extracted values, e.g. query operands."""
    if any(is_absent(v) for v in values):
        return None
    return KEY_SEPARATOR.join(serialize_index_value(v) for v in values)


@dataclass
class SecondaryIndex:
    """One named index.

    Attributes:
        name: Index name.
        fields: Field paths forming the composite key, in order.
        entries: Composite key -> document ids in insertion order.
    """

    name: str
    fields: tuple[str, ...]
    entries: dict[str, list[DocumentId]] = field(default_factory=dict)

    @property
    def metadata(self) -> IndexMetadata:
        return IndexMetadata(
            name=self.name,
            fields=self.fields,
            num_keys=len(self.entries),
            num_entries=sum(len(ids) for ids in self.entries.values()),
        )

    def add(self, key: str, doc_id: DocumentId) -> None:
        ids = self.entries.setdefault(key, [])
        if doc_id not in ids:
            ids.append(doc_id)

    def remove(self, key: str, doc_id: DocumentId) -> None:
        ids = self.entries.get(key)
        if ids is None:
            return
        if doc_id in ids:
            ids.remove(doc_id)
        if not ids:
            del self.entries[key]

    def key_segments(self, path: str) -> list[str] | None:
        """Serialized values stored for ``path``, one per key.

        None when a key cannot be split back into its fields because a
        value contains the separator.
        """
        position = self.fields.index(path)
        segments: list[str] = []
        for key in self.entries:
            parts = key.split(KEY_SEPARATOR)
            if len(parts) != len(self.fields):
                return None
            segments.append(parts[position])
        return segments

    def to_dict(self) -> dict[str, Any]:
        return {
            "fields": list(self.fields),
            "map": {key: list(ids) for key, ids in self.entries.items()},
        }

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> SecondaryIndex:
        return cls(
            name=name,
            fields=tuple(data.get("fields", ())),
            entries={
                key: [DocumentId(i) for i in ids]
                for key, ids in data.get("map", {}).items()
            },
        )


class SecondaryIndexManager:
    """Implementation of the IndexManager port.

    Usage:
        manager = SecondaryIndexManager()
        manager.create_index(["city"], documents)
        manager.lookup("city", "Nairobi")  # -> ["id1", ...]
    """

    def __init__(self) -> None:
        self._indexes: dict[str, SecondaryIndex] = {}
        self._lookup_count = 0
        self._build_count = 0

    def __contains__(self, name: str) -> bool:
        return name in self._indexes

    def __len__(self) -> int:
        return len(self._indexes)

    @property
    def names(self) -> list[str]:
        return list(self._indexes)

    def get(self, name: str) -> SecondaryIndex | None:
        return self._indexes.get(name)

    def indexes(self) -> list[SecondaryIndex]:
        return list(self._indexes.values())

    def create_index(
        self,
        fields: Sequence[str] | str,
        documents: Iterable[Mapping[str, Any]],
        name: str | None = None,
    ) -> IndexMetadata:
        """Build or rebuild a named index with one pass over ``documents``."""
        index_fields = (fields,) if isinstance(fields, str) else tuple(fields)
        if not index_fields:
            raise ValueError("An index needs at least one field")
        index_name = name or "_".join(index_fields)

        index = SecondaryIndex(name=index_name, fields=index_fields)
        for doc in documents:
            doc_id = doc.get(ID_FIELD)
            key = composite_key(doc, index_fields)
            if doc_id and key is not None:
                index.add(key, DocumentId(doc_id))

        rebuilt = index_name in self._indexes
        self._indexes[index_name] = index
        self._build_count += 1

        metadata = index.metadata
        logger.info(
            "index_built",
            index=index_name,
            fields=list(index_fields),
            keys=metadata.num_keys,
            entries=metadata.num_entries,
            rebuilt=rebuilt,
        )
        return metadata

    def drop_index(self, name: str) -> bool:
        return self._indexes.pop(name, None) is not None

    def lookup(self, name: str, key: str) -> list[DocumentId] | None:
        index = self._indexes.get(name)
        if index is None:
            return None
        self._lookup_count += 1
        ids = index.entries.get(key)
        return list(ids) if ids is not None else None

    def on_insert(self, doc: Mapping[str, Any]) -> None:
        doc_id = doc.get(ID_FIELD)
        if not doc_id:
            return
        for index in self._indexes.values():
            key = composite_key(doc, index.fields)
            if key is not None:
                index.add(key, DocumentId(doc_id))

    def on_update(self, old_doc: Mapping[str, Any], new_doc: Mapping[str, Any]) -> None:
        doc_id = DocumentId(new_doc[ID_FIELD])
        for index in self._indexes.values():
            old_key = composite_key(old_doc, index.fields)
            new_key = composite_key(new_doc, index.fields)
            if old_key == new_key:
                continue
            if old_key is not None:
                index.remove(old_key, doc_id)
            if new_key is not None:
                index.add(new_key, doc_id)

    def on_delete(self, doc_ids: Iterable[DocumentId]) -> None:
        targets = set(doc_ids)
        if not targets:
            return
        for index in self._indexes.values():
            for key in list(index.entries):
                remaining = [i for i in index.entries[key] if i not in targets]
                if remaining:
                    index.entries[key] = remaining
                else:
                    del index.entries[key]

    def list_indexes(self) -> list[IndexMetadata]:
        return [index.metadata for index in self._indexes.values()]

    def get_stats(self) -> IndexStats:
        return IndexStats(
            num_indexes=len(self._indexes),
            total_entries=sum(i.metadata.num_entries for i in self._indexes.values()),
            lookup_count=self._lookup_count,
            build_count=self._build_count,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize every index into the persisted layout."""
        return {name: index.to_dict() for name, index in self._indexes.items()}

    def load_dict(self, data: Mapping[str, Any] | None) -> None:
        """Replace all indexes with a persisted layout."""
        self._indexes = {
            name: SecondaryIndex.from_dict(name, raw)
            for name, raw in (data or {}).items()
        }
