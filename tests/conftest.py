"""Pytest configuration and fixtures for doc_store tests."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Generator

import pytest
from prometheus_client import CollectorRegistry

from doc_store.adapters.outbound import FileStorageAdapter, InMemoryStorageAdapter
from doc_store.application import Collection
from doc_store.infrastructure.config import CollectionConfig, Config, StorageConfig
from doc_store.infrastructure.metrics import MetricsRegistry


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_config(temp_dir: Path) -> Config:
    """Provide a test configuration with a temporary data directory."""
    return Config(
        storage=StorageConfig(
            backend="file",
            data_dir=temp_dir / "data",
        ),
        collection=CollectionConfig(cache_size=64),
    )


@pytest.fixture
def metrics_registry() -> MetricsRegistry:
    """Provide a fresh metrics registry for each test."""
    # Use a separate registry to avoid conflicts between tests
    registry = CollectorRegistry(auto_describe=True)
    return MetricsRegistry(registry=registry)


@pytest.fixture
def memory_storage() -> InMemoryStorageAdapter:
    return InMemoryStorageAdapter()


@pytest.fixture
def file_storage(test_config: Config) -> FileStorageAdapter:
    return FileStorageAdapter(test_config.storage.data_dir, "items")


@pytest.fixture
def collection(
    memory_storage: InMemoryStorageAdapter,
    test_config: Config,
    metrics_registry: MetricsRegistry,
) -> Collection:
    """An empty in-memory collection."""
    return Collection("items", memory_storage, config=test_config, metrics=metrics_registry)


@pytest.fixture
def file_collection(
    file_storage: FileStorageAdapter,
    test_config: Config,
    metrics_registry: MetricsRegistry,
) -> Collection:
    """An empty collection persisted under the temp data directory."""
    return Collection("items", file_storage, config=test_config, metrics=metrics_registry)


# Markers for test categories
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
