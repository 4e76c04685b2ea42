"""Relation projections between collections.

These attach related records to each document under a ``related`` key.
They are projections over already-loaded lists, not a join engine.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from doc_store.domain.entities import get_path
from doc_store.domain.services.index_manager import serialize_index_value
from doc_store.domain.value_objects import ID_FIELD

RELATED_FIELD = "related"


def _lookup_key(value: Any) -> str | None:
    # None never relates; values are matched by their index key form
    if value is None:
        return None
    return serialize_index_value(value)


def relate(
    documents: Iterable[Mapping[str, Any]],
    foreign_key: str,
    related: Iterable[Mapping[str, Any]],
    related_key: str = ID_FIELD,
) -> list[dict[str, Any]]:
    """Attach the single related record whose ``related_key`` equals ``doc[foreign_key]``.

    ``related`` is None when nothing matches. When several related
    records share a key, the last one wins.
    """
    by_key: dict[str, Mapping[str, Any]] = {}
    for item in related:
        key = _lookup_key(get_path(item, related_key, None))
        if key is not None:
            by_key[key] = item

    results = []
    for doc in documents:
        key = _lookup_key(get_path(doc, foreign_key, None))
        match = by_key.get(key) if key is not None else None
        results.append({**doc, RELATED_FIELD: dict(match) if match is not None else None})
    return results


def belongs_to(
    documents: Iterable[Mapping[str, Any]],
    related: Iterable[Mapping[str, Any]],
    foreign_key: str,
    related_key: str = ID_FIELD,
) -> list[dict[str, Any]]:
    """Inverse side of has_many: each document points at its parent."""
    return relate(documents, foreign_key, related, related_key)


def has_many(
    documents: Iterable[Mapping[str, Any]],
    related: Iterable[Mapping[str, Any]],
    foreign_key: str,
) -> list[dict[str, Any]]:
    """Attach every related record whose ``foreign_key`` equals the document's ``_id``."""
    by_parent: dict[str, list[dict[str, Any]]] = {}
    for item in related:
        key = _lookup_key(get_path(item, foreign_key, None))
        if key is not None:
            by_parent.setdefault(key, []).append(dict(item))

    results = []
    for doc in documents:
        key = _lookup_key(doc.get(ID_FIELD))
        children = by_parent.get(key, []) if key is not None else []
        results.append({**doc, RELATED_FIELD: list(children)})
    return results
