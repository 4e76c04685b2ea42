"""Query predicates and query-builder enumerations.

A query is an AND over a list of predicates. Each predicate is either a
single ``Condition`` or an ``OrGroup`` of conditions that holds when at
least one of them holds.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping, Union


EQUALITY_OPERATORS = frozenset({"=", "=="})
INEQUALITY_OPERATORS = frozenset({"!=", "<>"})
RANGE_OPERATORS = frozenset({">", ">=", "<", "<="})
SUPPORTED_OPERATORS = (
    EQUALITY_OPERATORS | INEQUALITY_OPERATORS | RANGE_OPERATORS | {"in", "like"}
)


@dataclass(frozen=True)
class Condition:
    """A single field/operator/value comparison.

    Operators are kept as plain strings; an operator outside
    SUPPORTED_OPERATORS is legal and simply never matches.

    Attributes:
        field: Dot-path of the document field.
        operator: Comparison operator, e.g. ``=`` or ``like``.
        value: Operand compared with the document's field value.
    """

    field: str
    operator: str
    value: Any

    @property
    def is_equality(self) -> bool:
        return self.operator in EQUALITY_OPERATORS

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "operator": self.operator, "value": self.value}

    @classmethod
    def from_value(cls, raw: Condition | Mapping[str, Any] | tuple) -> Condition:
        """Build a condition from a Condition, a mapping or a 3-tuple."""
        if isinstance(raw, Condition):
            return raw
        if isinstance(raw, Mapping):
            return cls(field=raw["field"], operator=raw.get("operator", "="), value=raw.get("value"))
        field, operator, value = raw
        return cls(field=field, operator=operator, value=value)


@dataclass(frozen=True)
class OrGroup:
    """Disjunction of conditions."""

    conditions: tuple[Condition, ...]

    @classmethod
    def of(cls, conditions: Iterable[Condition | Mapping[str, Any] | tuple]) -> OrGroup:
        return cls(conditions=tuple(Condition.from_value(c) for c in conditions))

    def to_dict(self) -> dict[str, Any]:
        return {"or": [c.to_dict() for c in self.conditions]}


Predicate = Union[Condition, OrGroup]


class SortDirection(Enum):
    """Ordering direction for order_by()."""

    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, value: str | SortDirection) -> SortDirection:
        if isinstance(value, SortDirection):
            return value
        return cls(value.lower())


class TrashedFilter(Enum):
    """Visibility of tombstoned documents for one query."""

    EXCLUDE = "exclude"
    """Default: tombstones are hidden while soft deletes are enabled."""

    INCLUDE = "include"
    """with_trashed(): live documents and tombstones."""

    ONLY = "only"
    """only_deleted(): tombstones only."""
