"""Configuration management for the document store."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageConfig(BaseModel):
    """Storage configuration."""

    backend: Literal["file", "memory"] = Field(
        default="file", description="Durable file storage or pure in-memory fallback"
    )
    data_dir: Path = Field(default=Path("./data"), description="Collection directory path")
    indent: int = Field(default=2, ge=0, le=8, description="JSON indentation for artifacts")
    temp_suffix: str = Field(
        default=".tmp", min_length=1, description="Suffix of the sibling file used for atomic replace"
    )


class CollectionConfig(BaseModel):
    """Per-collection behaviour defaults."""

    soft_deletes: bool = Field(default=False, description="Tombstone documents instead of removing them")
    cache_size: int = Field(default=1024, ge=1, description="Read cache capacity in documents")
    full_text_fields: list[str] = Field(
        default_factory=list, description="Text fields maintained in the full-text index"
    )


class ServerConfig(BaseModel):
    """REST server configuration."""

    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")
    metrics_port: int = Field(default=8001, ge=1, le=65535, description="Prometheus metrics port")
    collection: str = Field(default="documents", min_length=1, description="Collection served by the REST API")


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(default="json", description="Log format")
    otel_endpoint: str | None = Field(
        default=None, description="OpenTelemetry collector endpoint"
    )
    otel_service_name: str = Field(default="doc_store", description="Service name for tracing")


class Config(BaseSettings):
    """Main configuration for the document store."""

    model_config = SettingsConfigDict(
        env_prefix="DOC_STORE_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    storage: StorageConfig = Field(default_factory=StorageConfig)
    collection: CollectionConfig = Field(default_factory=CollectionConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    def ensure_directories(self) -> None:
        """Ensure the data directory exists when file storage is selected."""
        if self.storage.backend == "file":
            self.storage.data_dir.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_config() -> Config:
    """Get the global configuration instance."""
    return Config()
