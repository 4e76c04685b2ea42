"""Process-wide observability setup driven by Config."""

from __future__ import annotations

from prometheus_client import CollectorRegistry

from doc_store.infrastructure.config import Config
from doc_store.infrastructure.logging import get_logger, setup_logging
from doc_store.infrastructure.metrics import MetricsRegistry, get_metrics, setup_metrics
from doc_store.infrastructure.tracing import setup_tracing

logger = get_logger(__name__)


def setup_observability(
    config: Config,
    serve_metrics: bool = True,
    registry: CollectorRegistry | None = None,
) -> MetricsRegistry:
    """Configure logging, tracing and metrics from ``config.observability``.

    Args:
        config: Configuration to apply.
        serve_metrics: Start the Prometheus HTTP endpoint on
            ``config.server.metrics_port``.
        registry: Optional custom prometheus registry.

    Returns:
        The metrics registry collections should report to.
    """
    obs = config.observability
    setup_logging(level=obs.log_level, log_format=obs.log_format)
    setup_tracing(service_name=obs.otel_service_name, otlp_endpoint=obs.otel_endpoint)

    if serve_metrics:
        metrics = setup_metrics(port=config.server.metrics_port, registry=registry)
    elif registry is not None:
        metrics = MetricsRegistry(registry)
    else:
        metrics = get_metrics()

    logger.info(
        "observability_configured",
        log_level=obs.log_level,
        log_format=obs.log_format,
        otel_endpoint=obs.otel_endpoint,
        metrics_port=config.server.metrics_port if serve_metrics else None,
    )
    return metrics
