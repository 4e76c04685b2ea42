"""Document Store port consumed by collaborators.

This inbound port is the surface that outer layers (REST handlers, UI
bindings) use. CRUD calls return plain decrypted snapshots, never live
references; builder calls return the store for chaining.
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol, Sequence

from doc_store.domain.value_objects import ChangeType


class ValidationError(Exception):
    """A registered validator rejected a document. Nothing was mutated."""

    pass


@dataclass(frozen=True)
class ChangeEvent:
    """Notification delivered to change listeners.

    Attributes:
        document: Decrypted snapshot of the affected document. For deletes
            replayed after commit only ``_id`` is present.
        change: Kind of change.
    """

    document: dict[str, Any]
    change: ChangeType


Validator = Callable[[dict[str, Any]], Any]
"""Returns True to accept a document; any other value is the rejection reason."""

ChangeListener = Callable[[ChangeEvent], None]


class DocumentStore(Protocol):
    """Protocol for the collection-facing CRUD and query API."""

    @abstractmethod
    def where(self, field: str, operator: str, value: Any) -> DocumentStore:
        ...

    @abstractmethod
    async def get(self) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    async def find_by_id(self, doc_id: str) -> dict[str, Any] | None:
        ...

    @abstractmethod
    async def count(self) -> int:
        ...

    @abstractmethod
    async def insert(self, doc: Mapping[str, Any]) -> dict[str, Any]:
        ...

    @abstractmethod
    async def insert_many(self, docs: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    async def update(
        self, query: Mapping[str, Any] | None, patch: Mapping[str, Any]
    ) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    async def delete(self, doc_id: str) -> bool:
        ...

    @abstractmethod
    def on_change(self, listener: ChangeListener) -> None:
        ...
