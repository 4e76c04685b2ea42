"""Schema inference over a set of documents.

Produces a nested type map:

    {"name": {"type": "string"},
     "tags": {"type": "array", "items": {"type": "string"}},
     "address": {"type": "object", "properties": {"city": {"type": "string"}}},
     "age": {"type": ["number", "string"]}}

A field seen with several types gets a list of type names in first-seen
order. Array item types come from the first element of the most
recently seen non-empty array.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping


def json_type(value: Any) -> str:
    """JSON type name of a Python value."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def _merge_type(entry: dict[str, Any], type_name: str) -> None:
    current = entry.get("type")
    if current is None:
        entry["type"] = type_name
    elif isinstance(current, list):
        if type_name not in current:
            current.append(type_name)
    elif current != type_name:
        entry["type"] = [current, type_name]


def _traverse(obj: Mapping[str, Any], schema: dict[str, Any]) -> None:
    for key, value in obj.items():
        type_name = json_type(value)
        entry = schema.setdefault(key, {})
        _merge_type(entry, type_name)

        if type_name == "object":
            _traverse(value, entry.setdefault("properties", {}))
        elif type_name == "array" and value:
            first = value[0]
            items: dict[str, Any] = {"type": json_type(first)}
            if items["type"] == "object":
                items["properties"] = {}
                _traverse(first, items["properties"])
            entry["items"] = items


def infer_schema(documents: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    """Infer the type map of ``documents``; empty input gives an empty map."""
    schema: dict[str, Any] = {}
    for doc in documents:
        _traverse(doc, schema)
    return schema
