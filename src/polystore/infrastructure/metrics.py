"""Prometheus metrics for the storage layer."""

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
    """Storage layer metrics, bound to one CollectorRegistry.

    Tests pass a private registry so instances never collide on the
    process-wide default.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or REGISTRY

        # Contract operations (counted at the handle, for every engine)
        self.operations_total = Counter(
            "storage_operations_total",
            "Total number of storage contract operations",
            ["engine", "operation", "status"],  # status: success, error
            registry=self._registry,
        )

        self.operation_latency_seconds = Histogram(
            "storage_operation_latency_seconds",
            "Storage operation latency in seconds",
            ["engine", "operation"],
            buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
            registry=self._registry,
        )

        # Snapshot file (file engine only)
        self.snapshot_writes_total = Counter(
            "storage_snapshot_writes_total",
            "Total whole-snapshot rewrites",
            registry=self._registry,
        )

        self.snapshot_bytes = Gauge(
            "storage_snapshot_bytes",
            "Size of the last written snapshot in bytes",
            registry=self._registry,
        )

        self.snapshot_write_latency_seconds = Histogram(
            "storage_snapshot_write_latency_seconds",
            "Snapshot rewrite latency in seconds",
            buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.5, 1.0),
            registry=self._registry,
        )

        # Engine lifecycle
        self.engine_switches_total = Counter(
            "storage_engine_switches_total",
            "Total number of runtime engine switches",
            registry=self._registry,
        )

        self.engine_active = Gauge(
            "storage_engine_active",
            "1 for the currently active engine kind, 0 otherwise",
            ["engine"],
            registry=self._registry,
        )

        self.info = Info(
            "polystore",
            "Storage layer information",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def observe_operation(
        self, engine: str, operation: str, succeeded: bool, seconds: float
    ) -> None:
        """Count one contract call and record its latency."""
        status = "success" if succeeded else "error"
        self.operations_total.labels(engine=engine, operation=operation, status=status).inc()
        self.operation_latency_seconds.labels(engine=engine, operation=operation).observe(seconds)

    def set_active_engine(self, engine: str, active: bool) -> None:
        self.engine_active.labels(engine=engine).set(1 if active else 0)


_metrics: MetricsRegistry | None = None
_served_ports: set[int] = set()


def bind_metrics(registry: CollectorRegistry | None = None) -> MetricsRegistry:
    """
    Make the process metrics live on ``registry``.

    Metrics already bound to that registry are reused, since registering
    the same series twice on one CollectorRegistry fails.

    Args:
        registry: Target registry (default: the prometheus_client global)

    Returns:
        The MetricsRegistry that get_metrics() returns from now on
    """
    global _metrics
    target = registry or REGISTRY
    if _metrics is None or _metrics.registry is not target:
        _metrics = MetricsRegistry(target)
    return _metrics


def setup_metrics(port: int = 8001, registry: CollectorRegistry | None = None) -> MetricsRegistry:
    """
    Bind the process metrics and expose them over HTTP.

    Safe to call again, and after get_metrics(): the metrics are reused and
    a port that is already being served is not bound a second time.

    Args:
        port: Exporter port (0 binds any free port)
        registry: Registry to expose (default: the prometheus_client global)

    Returns:
        The bound MetricsRegistry
    """
    from polystore import __version__
    from polystore.domain.value_objects import EngineKind

    metrics = bind_metrics(registry)
    metrics.info.info({
        "version": __version__,
        "engines": ",".join(kind.value for kind in EngineKind),
    })

    if port == 0 or port not in _served_ports:
        start_http_server(port, registry=metrics.registry)
        if port:
            _served_ports.add(port)

    return metrics


def get_metrics() -> MetricsRegistry:
    """Process metrics, created on the default registry on first use."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsRegistry()
    return _metrics
