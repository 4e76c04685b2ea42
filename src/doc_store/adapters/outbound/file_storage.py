"""File-based Storage Adapter implementation.

This adapter implements the StorageAdapter protocol with one JSON file
per artifact inside a collection directory:

    <data_dir>/<name>.json            documents
    <data_dir>/<name>_indexes.json    secondary indexes
    <data_dir>/<name>_fulltext.json   full-text index

Atomicity:
    Every save writes the whole payload to ``<file><temp_suffix>`` and
    renames it over the target. A crash can leave the temp file behind
    but never a half-written artifact.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from doc_store.infrastructure.logging import get_logger
from doc_store.ports.outbound.storage_adapter import StorageArtifact, StorageReadError

logger = get_logger(__name__)

ARTIFACT_SUFFIXES = {
    StorageArtifact.DOCUMENTS: ".json",
    StorageArtifact.INDEXES: "_indexes.json",
    StorageArtifact.FULL_TEXT: "_fulltext.json",
}


class FileStorageAdapter:
    """File-based implementation of the StorageAdapter protocol.

    Attributes:
        directory: Directory holding the collection's artifacts.
        name: Collection name used as the file prefix.
    """

    def __init__(
        self,
        directory: str | Path,
        name: str,
        indent: int = 2,
        temp_suffix: str = ".tmp",
    ) -> None:
        """Initialize the adapter, creating ``directory`` if absent.

        Args:
            directory: Directory for the artifact files.
            name: Collection name.
            indent: JSON indentation of written files.
            temp_suffix: Suffix of the sibling temp file used for renames.
        """
        self._directory = Path(directory)
        self._name = name
        self._indent = indent
        self._temp_suffix = temp_suffix
        self._directory.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_durable(self) -> bool:
        return True

    def path_for(self, artifact: StorageArtifact) -> Path:
        return self._directory / f"{self._name}{ARTIFACT_SUFFIXES[artifact]}"

    async def load(self, artifact: StorageArtifact) -> Any | None:
        path = self.path_for(artifact)
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                content = await f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageReadError(f"Cannot read {path}: {e}") from e

        if not content.strip():
            return None
        try:
            payload = json.loads(content)
        except json.JSONDecodeError as e:
            raise StorageReadError(f"Corrupt artifact {path}: {e}") from e

        logger.debug("artifact_loaded", collection=self._name, artifact=artifact.value, path=str(path))
        return payload

    async def save(self, artifact: StorageArtifact, payload: Any) -> None:
        path = self.path_for(artifact)
        temp_path = path.with_name(path.name + self._temp_suffix)
        content = json.dumps(payload, indent=self._indent or None, ensure_ascii=False)

        async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
            await f.write(content)
            await f.flush()
        await aiofiles.os.replace(temp_path, path)

        logger.debug(
            "artifact_saved",
            collection=self._name,
            artifact=artifact.value,
            path=str(path),
            size=len(content),
        )
