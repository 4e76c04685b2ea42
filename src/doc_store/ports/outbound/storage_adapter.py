"""Storage Adapter port for durable collection artifacts.

This outbound port defines the contract for loading and saving the
three artifacts of a collection. Every save fully replaces the previous
content of that artifact.

Artifacts:
    DOCUMENTS: ordered list of document objects
    INDEXES: {index name: {"fields": [...], "map": {key: [ids]}}}
    FULL_TEXT: {token: {document id: true}}
"""

from __future__ import annotations

from abc import abstractmethod
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class StorageArtifact(Enum):
    """The three independently persisted artifacts of a collection."""

    DOCUMENTS = "documents"
    INDEXES = "indexes"
    FULL_TEXT = "full_text"


class StorageReadError(Exception):
    """An artifact exists but could not be read or decoded."""

    pass


@runtime_checkable
class StorageAdapter(Protocol):
    """Protocol for artifact persistence.

    Implementations must make each save atomic with respect to crashes:
    a reader sees either the old or the new content, never a mix.
    """

    @property
    @abstractmethod
    def is_durable(self) -> bool:
        """True if saved artifacts survive the process."""
        ...

    @abstractmethod
    async def load(self, artifact: StorageArtifact) -> Any | None:
        """Load an artifact.

        Returns:
            The decoded payload, or None if the artifact does not exist yet.

        Raises:
            StorageReadError: On any other I/O or decoding failure.
        """
        ...

    @abstractmethod
    async def save(self, artifact: StorageArtifact, payload: Any) -> None:
        """Atomically replace an artifact with ``payload``.

        Raises:
            OSError: If the write or rename fails.
        """
        ...
