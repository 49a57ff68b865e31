"""Infrastructure layer - cross-cutting concerns."""

from polystore.infrastructure.config import (
    Config,
    EmbeddedRelationalConfig,
    EngineConfig,
    FileEngineConfig,
    ManagedDocumentConfig,
    NetworkedRelationalConfig,
    ObservabilityConfig,
    get_config,
)
from polystore.infrastructure.logging import setup_logging, get_logger, redact_secrets
from polystore.infrastructure.metrics import (
    MetricsRegistry,
    bind_metrics,
    get_metrics,
    setup_metrics,
)
from polystore.infrastructure.tracing import (
    DB_SYSTEMS,
    setup_tracing,
    get_tracer,
    storage_span,
    trace_span,
)
from polystore.infrastructure.observability import setup_observability

__all__ = [
    "Config",
    "EngineConfig",
    "FileEngineConfig",
    "EmbeddedRelationalConfig",
    "NetworkedRelationalConfig",
    "ManagedDocumentConfig",
    "ObservabilityConfig",
    "get_config",
    "setup_logging",
    "get_logger",
    "redact_secrets",
    "setup_metrics",
    "get_metrics",
    "bind_metrics",
    "MetricsRegistry",
    "setup_tracing",
    "get_tracer",
    "trace_span",
    "storage_span",
    "DB_SYSTEMS",
    "setup_observability",
]
