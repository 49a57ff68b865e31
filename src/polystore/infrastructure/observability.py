"""One-call setup of logging, tracing and metrics from configuration."""

from __future__ import annotations

from prometheus_client import CollectorRegistry

from polystore.infrastructure.config import ObservabilityConfig
from polystore.infrastructure.logging import setup_logging
from polystore.infrastructure.metrics import MetricsRegistry, bind_metrics, setup_metrics
from polystore.infrastructure.tracing import setup_tracing


def setup_observability(
    config: ObservabilityConfig,
    *,
    serve_metrics: bool = True,
    registry: CollectorRegistry | None = None,
) -> MetricsRegistry:
    """
    Configure structlog, OpenTelemetry and Prometheus for the process.

    Args:
        config: Observability section of the configuration
        serve_metrics: Whether to start the Prometheus HTTP exporter
        registry: Optional custom collector registry

    Returns:
        The metrics registry to hand to EngineManager. Calling this again
        returns the same metrics rather than registering them twice.
    """
    setup_logging(config.log_level, config.log_format)
    setup_tracing(config.otel_service_name, config.otel_endpoint)

    if serve_metrics:
        return setup_metrics(config.metrics_port, registry)
    return bind_metrics(registry)
