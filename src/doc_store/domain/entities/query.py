"""Query state, query plans and pagination results."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from doc_store.domain.value_objects import (
    Condition,
    OrGroup,
    Predicate,
    SortDirection,
    TrashedFilter,
)


@dataclass
class QueryState:
    """Transient builder state for one chain of query calls.

    The owning collection resets it after every terminal operation so
    that builder calls never leak into the next query.
    """

    predicates: list[Predicate] = field(default_factory=list)
    order_field: str | None = None
    order_direction: SortDirection = SortDirection.ASC
    skip_count: int = 0
    limit_count: int | None = None
    trashed: TrashedFilter = TrashedFilter.EXCLUDE

    def reset(self) -> None:
        self.predicates = []
        self.order_field = None
        self.order_direction = SortDirection.ASC
        self.skip_count = 0
        self.limit_count = None
        self.trashed = TrashedFilter.EXCLUDE

    def copy(self) -> QueryState:
        return replace(self, predicates=list(self.predicates))

    def referenced_fields(self) -> list[str]:
        """Fields named by any predicate, in first-seen order."""
        fields: dict[str, None] = {}
        for predicate in self.predicates:
            if isinstance(predicate, OrGroup):
                for condition in predicate.conditions:
                    fields[condition.field] = None
            else:
                fields[predicate.field] = None
        return list(fields)

    def equality_conditions(self) -> list[Condition]:
        """Top-level equality conditions, the only ones an index can serve."""
        return [
            p for p in self.predicates
            if isinstance(p, Condition) and p.is_equality
        ]


@dataclass(frozen=True)
class IndexChoice:
    """The index a query plan selected for prefiltering.

    Attributes:
        index_name: Name of the secondary index.
        key: Composite key looked up in the index.
        consumed: Predicates answered by the index lookup.
    """

    index_name: str
    key: str
    consumed: tuple[Condition, ...]


@dataclass(frozen=True)
class QueryPlan:
    """Result of explain_query(), computed without executing the query."""

    predicates: tuple[Predicate, ...]
    order_field: str | None
    order_direction: SortDirection
    skip_count: int
    limit_count: int | None
    where_fields: tuple[str, ...]
    available_indexes: tuple[str, ...]
    eligible_indexes: tuple[str, ...]
    index_choice: IndexChoice | None
    soft_deletes_enabled: bool
    trashed: TrashedFilter

    def to_dict(self) -> dict[str, Any]:
        return {
            "queryConditions": [p.to_dict() for p in self.predicates],
            "orderByField": self.order_field,
            "orderByDirection": self.order_direction.value,
            "skipCount": self.skip_count,
            "limitCount": self.limit_count,
            "whereFields": list(self.where_fields),
            "availableIndexes": list(self.available_indexes),
            "usedIndexes": list(self.eligible_indexes),
            "selectedIndex": self.index_choice.index_name if self.index_choice else None,
            "softDeleteEnabled": self.soft_deletes_enabled,
            "trashed": self.trashed.value,
        }


@dataclass(frozen=True)
class PageResult:
    """One page of query results with navigation metadata."""

    data: list[dict[str, Any]]
    current_page: int
    per_page: int
    total_count: int
    total_pages: int
    has_more_pages: bool
    next_page: int | None
    prev_page: int | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": self.data,
            "currentPage": self.current_page,
            "perPage": self.per_page,
            "totalCount": self.total_count,
            "totalPages": self.total_pages,
            "hasMorePages": self.has_more_pages,
            "nextPage": self.next_page,
            "prevPage": self.prev_page,
        }
