"""Prometheus metrics for the document store."""

from __future__ import annotations

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    start_http_server,
    REGISTRY,
    CollectorRegistry,
)


class MetricsRegistry:
    """Registry of all document store metrics."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize metrics registry."""
        self._registry = registry or REGISTRY

        # Operation metrics
        self.operations_total = Counter(
            "docstore_operations_total",
            "Total number of collection operations",
            ["collection", "operation", "status"],  # status: success, error
            registry=self._registry,
        )

        self.query_latency_seconds = Histogram(
            "docstore_query_latency_seconds",
            "Query latency in seconds",
            ["collection", "operation"],  # get, count, full_text_search
            buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
            registry=self._registry,
        )

        self.documents = Gauge(
            "docstore_documents",
            "Documents held by a collection, tombstones included",
            ["collection"],
            registry=self._registry,
        )

        self.validation_failures_total = Counter(
            "docstore_validation_failures_total",
            "Documents rejected by a registered validator",
            ["collection"],
            registry=self._registry,
        )

        # Index metrics
        self.index_prefilters_total = Counter(
            "docstore_index_prefilters_total",
            "Queries served by a secondary index prefilter",
            ["collection", "index_name"],
            registry=self._registry,
        )

        self.index_builds_total = Counter(
            "docstore_index_builds_total",
            "Secondary and full-text index (re)builds",
            ["collection", "kind"],  # secondary, full_text
            registry=self._registry,
        )

        self.full_text_searches_total = Counter(
            "docstore_full_text_searches_total",
            "Full-text searches executed",
            ["collection"],
            registry=self._registry,
        )

        # Transaction metrics
        self.transactions_total = Counter(
            "docstore_transactions_total",
            "Total number of transactions",
            ["collection", "status"],  # commit, rollback
            registry=self._registry,
        )

        self.transactions_active = Gauge(
            "docstore_transactions_active",
            "Number of active transactions",
            ["collection"],
            registry=self._registry,
        )

        # Storage metrics
        self.storage_writes_total = Counter(
            "docstore_storage_writes_total",
            "Artifact writes performed by the storage adapter",
            ["collection", "artifact"],
            registry=self._registry,
        )

        self.storage_write_latency_seconds = Histogram(
            "docstore_storage_write_latency_seconds",
            "Latency of a full persistence flush in seconds",
            ["collection"],
            buckets=(0.0001, 0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.5),
            registry=self._registry,
        )

        # Listener metrics
        self.listener_errors_total = Counter(
            "docstore_listener_errors_total",
            "Exceptions raised and swallowed inside change listeners",
            ["collection"],
            registry=self._registry,
        )

        self.info = Info(
            "doc_store",
            "Document store information",
            registry=self._registry,
        )


# Global metrics registry
_metrics: MetricsRegistry | None = None


def setup_metrics(port: int = 8001, registry: CollectorRegistry | None = None) -> MetricsRegistry:
    """
    Set up Prometheus metrics server.

    Args:
        port: Port for the metrics HTTP server
        registry: Optional custom registry

    Returns:
        The metrics registry
    """
    global _metrics
    _metrics = MetricsRegistry(registry)

    from doc_store import __version__
    _metrics.info.info({
        "version": __version__,
    })

    start_http_server(port, registry=registry or REGISTRY)

    return _metrics


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsRegistry()
    return _metrics
