"""Document entity helpers over the JSON value tree.

A document is a plain ``dict`` whose values are JSON-like: None, bool,
int, float, str, list or dict. Fields are addressed by dot-paths such
as ``"user.address.city"``.

Merge semantics:
    deep_merge() recurses into mappings and overwrites everything else,
    so a list in the patch replaces the stored list wholesale.
"""

from __future__ import annotations

from typing import Any, Mapping

from doc_store.domain.value_objects import (
    CREATED_FIELD,
    DELETED_FIELD,
    ID_FIELD,
    REVISION_ACTION_KEY,
    REVISION_ID_KEY,
    REVISION_TIMESTAMP_KEY,
    REVISIONS_FIELD,
    UPDATED_FIELD,
    DocumentId,
    RevisionAction,
    generate_revision_id,
    now_iso,
)

Document = dict[str, Any]


class _Missing:
    """Marker for a dot-path that does not resolve to a value."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def get_path(doc: Mapping[str, Any], path: str, default: Any = MISSING) -> Any:
    """Resolve a dot-path, returning ``default`` when any segment is absent."""
    current: Any = doc
    for part in path.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        else:
            return default
    return current


def set_path(doc: dict[str, Any], path: str, value: Any) -> None:
    """Assign a dot-path, replacing non-mapping intermediates with dicts."""
    parts = path.split(".")
    current = doc
    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]
    current[parts[-1]] = value


def is_absent(value: Any) -> bool:
    """True for None and MISSING, the two 'no value' states."""
    return value is None or value is MISSING


def deep_clone(value: Any) -> Any:
    """Recursively copy a JSON value tree."""
    if isinstance(value, dict):
        return {key: deep_clone(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [deep_clone(item) for item in value]
    return value


def deep_merge(target: dict[str, Any], source: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``source`` into ``target`` in place and return ``target``."""
    for key, value in source.items():
        if isinstance(value, Mapping):
            if not isinstance(target.get(key), dict):
                target[key] = {}
            deep_merge(target[key], value)
        else:
            target[key] = deep_clone(value)
    return target


def document_id(doc: Mapping[str, Any]) -> DocumentId | None:
    value = doc.get(ID_FIELD)
    return DocumentId(value) if value else None


def is_tombstone(doc: Mapping[str, Any]) -> bool:
    return doc.get(DELETED_FIELD) is True


def stamp(doc: dict[str, Any], *, created: bool = False, at: str | None = None) -> str:
    """Set ``_updated`` (and ``_created`` for new documents) to now."""
    timestamp = at or now_iso()
    if created:
        doc[CREATED_FIELD] = timestamp
    doc[UPDATED_FIELD] = timestamp
    return timestamp


def add_revision(doc: dict[str, Any], action: RevisionAction, at: str | None = None) -> None:
    """Append an entry to the document's append-only revision history."""
    revisions = doc.get(REVISIONS_FIELD)
    if not isinstance(revisions, list):
        revisions = []
        doc[REVISIONS_FIELD] = revisions
    revisions.append(
        {
            REVISION_ID_KEY: generate_revision_id(),
            REVISION_TIMESTAMP_KEY: at or now_iso(),
            REVISION_ACTION_KEY: action.value,
        }
    )


def mark_deleted(doc: dict[str, Any]) -> None:
    """Tombstone a document in place."""
    timestamp = stamp(doc)
    doc[DELETED_FIELD] = True
    add_revision(doc, RevisionAction.SOFT_DELETE, at=timestamp)
