"""Query planning and evaluation.

get() pipeline, in order:
    1. Copy the raw document list
    2. Apply tombstone visibility (see visible())
    3. Plan: pick an index that fully answers some equality predicates and
       use its id list as a prefilter; those predicates are not
       re-evaluated
    4. Evaluate the remaining predicates (AND over the list, OR inside
       an OrGroup)
    5. Order (stable, nulls last ascending, locale collation for strings)
    6. Skip, then limit

Decryption is left to the caller so that predicates only ever see the
stored representation.
"""

from __future__ import annotations

import functools
import locale
import math
import numbers
from typing import Any, Callable, Sequence

from doc_store.domain.entities import (
    IndexChoice,
    QueryPlan,
    QueryState,
    get_path,
    is_absent,
    is_tombstone,
)
from doc_store.domain.services.index_manager import (
    KEY_SEPARATOR,
    SecondaryIndex,
    SecondaryIndexManager,
    composite_key_for_values,
    serialize_index_value,
)
from doc_store.domain.value_objects import (
    ID_FIELD,
    Condition,
    OrGroup,
    Predicate,
    SortDirection,
    TrashedFilter,
)


# =============================================================================
# Predicate evaluation
# =============================================================================


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, numbers.Real):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value)
        except ValueError:
            return None
    return None


def loose_equals(left: Any, right: Any) -> bool:
    """Equality with numeric coercion between numbers, bools and numeric strings.

    None and missing are only equal to each other. Containers compare
    structurally.
    """
    if is_absent(left) or is_absent(right):
        return is_absent(left) and is_absent(right)
    if isinstance(left, (dict, list)) or isinstance(right, (dict, list)):
        return left == right
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    left_num, right_num = _as_number(left), _as_number(right)
    if left_num is not None and right_num is not None:
        return left_num == right_num
    return left == right


def _compare_range(operator: str, left: Any, right: Any) -> bool:
    if is_absent(left) or is_absent(right):
        return False
    try:
        if operator == ">":
            return left > right
        if operator == ">=":
            return left >= right
        if operator == "<":
            return left < right
        return left <= right
    except TypeError:
        return False


def evaluate_condition(doc: dict[str, Any], condition: Condition) -> bool:
    """Evaluate one condition against a stored document."""
    value = get_path(doc, condition.field)
    operator = condition.operator

    if operator in ("=", "=="):
        return loose_equals(value, condition.value)
    if operator in ("!=", "<>"):
        return not loose_equals(value, condition.value)
    if operator in (">", ">=", "<", "<="):
        return _compare_range(operator, value, condition.value)
    if operator == "in":
        if not isinstance(condition.value, (list, tuple, set, frozenset)):
            return False
        # document values may be unhashable
        return not is_absent(value) and value in list(condition.value)
    if operator == "like":
        return (
            isinstance(value, str)
            and isinstance(condition.value, str)
            and condition.value.lower() in value.lower()
        )
    return False


def matches(doc: dict[str, Any], predicates: Sequence[Predicate]) -> bool:
    """AND over predicates; an OrGroup holds if any of its conditions holds."""
    for predicate in predicates:
        if isinstance(predicate, OrGroup):
            if not any(evaluate_condition(doc, c) for c in predicate.conditions):
                return False
        elif not evaluate_condition(doc, predicate):
            return False
    return True


def visible(doc: dict[str, Any], soft_deletes: bool, trashed: TrashedFilter) -> bool:
    """Tombstone visibility for one query.

    only_deleted() and with_trashed() apply regardless of the soft delete
    flag; by default tombstones are hidden only while soft deletes are on.
    """
    if trashed is TrashedFilter.ONLY:
        return is_tombstone(doc)
    if trashed is TrashedFilter.INCLUDE or not soft_deletes:
        return True
    return not is_tombstone(doc)


# =============================================================================
# Ordering and windowing
# =============================================================================


def _compare_values(left: Any, right: Any) -> int:
    left_absent, right_absent = is_absent(left), is_absent(right)
    if left_absent or right_absent:
        if left_absent and right_absent:
            return 0
        return 1 if left_absent else -1
    if isinstance(left, str) and isinstance(right, str):
        return locale.strcoll(left, right)
    try:
        if left < right:
            return -1
        if left > right:
            return 1
        return 0
    except TypeError:
        # Mixed types: group by type name so the order is still total
        left_type, right_type = type(left).__name__, type(right).__name__
        return (left_type > right_type) - (left_type < right_type)


def order_documents(
    documents: list[dict[str, Any]],
    field: str,
    direction: SortDirection = SortDirection.ASC,
) -> list[dict[str, Any]]:
    """Stable sort by a dot-path.

    Absent values sort last ascending and therefore first descending.
    """
    key: Callable[[dict[str, Any]], Any] = functools.cmp_to_key(
        lambda a, b: _compare_values(get_path(a, field), get_path(b, field))
    )
    return sorted(documents, key=key, reverse=direction is SortDirection.DESC)


def apply_window(
    documents: list[dict[str, Any]], skip: int, limit: int | None
) -> list[dict[str, Any]]:
    """Apply skip first, then limit."""
    start = max(skip, 0)
    if limit is None:
        return documents[start:]
    return documents[start:start + max(limit, 0)]


# =============================================================================
# Planning and execution
# =============================================================================


def _canonical_number_key(value: Any) -> str | None:
    """Key text every finite number loosely equal to ``value`` would share."""
    number = _as_number(value)
    if number is None or not math.isfinite(number):
        return None
    return serialize_index_value(number)


def _exact_lookup(index: SecondaryIndex, condition: Condition) -> bool:
    """True when looking up the operand's key finds exactly the loose matches.

    Keys are text, loose equality is not: 2, 2.0, "2" and True-for-1 all
    compare equal, while "2.0" or "02" stored as strings key differently.
    A non-numeric string only equals itself, provided it cannot be read
    as a JSON container key or span two fields of a composite key. A
    number can use the index only while it and every stored value for the
    field are in canonical number form.
    """
    operand = condition.value
    if isinstance(operand, str):
        if len(index.fields) > 1 and KEY_SEPARATOR in operand:
            return False
        return _as_number(operand) is None and not operand.startswith(("{", "["))
    if _canonical_number_key(operand) != serialize_index_value(operand):
        return False
    segments = index.key_segments(condition.field)
    if segments is None:
        return False
    return all(
        _as_number(segment) is None or _canonical_number_key(segment) == segment
        for segment in segments
    )


class QueryEngine:
    """Plans and runs queries over a stored document list.

    Usage:
        engine = QueryEngine(index_manager)
        plan = engine.plan(state, soft_deletes=False)
        docs = engine.select(documents, state, soft_deletes=False)
    """

    def __init__(
        self,
        indexes: SecondaryIndexManager,
        on_index_used: Callable[[str], None] | None = None,
    ) -> None:
        self._indexes = indexes
        self._on_index_used = on_index_used

    def _choose_index(self, state: QueryState) -> IndexChoice | None:
        """Pick an index whose fields are all bound by top-level equalities.

        Composite indexes are preferred, wider first; a condition with a
        None operand never uses an index, nor does one whose key lookup
        would disagree with loose equality.
        """
        bound: dict[str, Condition] = {}
        for condition in state.equality_conditions():
            if is_absent(condition.value) or condition.field in bound:
                continue
            bound[condition.field] = condition

        candidates = sorted(
            self._indexes.indexes(), key=lambda i: len(i.fields), reverse=True
        )
        for index in candidates:
            if not all(f in bound for f in index.fields):
                continue
            consumed = tuple(bound[f] for f in index.fields)
            if not all(_exact_lookup(index, c) for c in consumed):
                continue
            key = composite_key_for_values([c.value for c in consumed])
            if key is not None:
                return IndexChoice(index_name=index.name, key=key, consumed=consumed)
        return None

    def plan(self, state: QueryState, soft_deletes: bool) -> QueryPlan:
        """Describe how ``state`` would run, without running it."""
        where_fields = state.referenced_fields()
        field_set = set(where_fields)
        eligible = tuple(
            index.name
            for index in self._indexes.indexes()
            if field_set.intersection(index.fields)
        )
        return QueryPlan(
            predicates=tuple(state.predicates),
            order_field=state.order_field,
            order_direction=state.order_direction,
            skip_count=state.skip_count,
            limit_count=state.limit_count,
            where_fields=tuple(where_fields),
            available_indexes=tuple(self._indexes.names),
            eligible_indexes=eligible,
            index_choice=self._choose_index(state),
            soft_deletes_enabled=soft_deletes,
            trashed=state.trashed,
        )

    def filter(
        self,
        documents: Sequence[dict[str, Any]],
        state: QueryState,
        soft_deletes: bool,
        plan: QueryPlan | None = None,
    ) -> list[dict[str, Any]]:
        """Visibility, index prefilter and predicate evaluation (steps 1-4)."""
        plan = plan or self.plan(state, soft_deletes)
        candidates = [d for d in documents if visible(d, soft_deletes, state.trashed)]

        predicates: list[Predicate] = list(state.predicates)
        choice = plan.index_choice
        if choice is not None:
            ids = self._indexes.lookup(choice.index_name, choice.key)
            if ids is not None:
                allowed = set(ids)
                candidates = [d for d in candidates if d.get(ID_FIELD) in allowed]
                predicates = [p for p in predicates if p not in choice.consumed]
                if self._on_index_used is not None:
                    self._on_index_used(choice.index_name)

        return [d for d in candidates if matches(d, predicates)]

    def select(
        self,
        documents: Sequence[dict[str, Any]],
        state: QueryState,
        soft_deletes: bool,
        plan: QueryPlan | None = None,
    ) -> list[dict[str, Any]]:
        """Full get() pipeline minus decryption."""
        results = self.filter(documents, state, soft_deletes, plan)
        if state.order_field:
            results = order_documents(results, state.order_field, state.order_direction)
        return apply_window(results, state.skip_count, state.limit_count)
