"""OpenTelemetry tracing for storage operations.

Every call through a DatabaseHandle opens one ``storage.<operation>`` span
carrying the database semantic-convention attributes:

    db.system           json-file | sqlite | mysql | firestore
    db.operation.name   find_all, create, ...
    db.collection.name  table (collection) name
    polystore.engine    engine kind as configured
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generator

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from polystore.domain.value_objects import EngineKind

DB_SYSTEMS: dict[EngineKind, str] = {
    EngineKind.FILE: "json-file",
    EngineKind.EMBEDDED_RELATIONAL: "sqlite",
    EngineKind.NETWORKED_RELATIONAL: "mysql",
    EngineKind.MANAGED_DOCUMENT: "firestore",
}

_tracer: trace.Tracer | None = None


def setup_tracing(
    service_name: str = "polystore",
    otlp_endpoint: str | None = None,
    console_export: bool = False,
) -> trace.Tracer:
    """
    Install a tracer provider for the process.

    Without an endpoint or console export, spans are created but dropped,
    which keeps the handle's instrumentation free to leave in place.

    Args:
        service_name: ``service.name`` resource attribute
        otlp_endpoint: OTLP gRPC collector endpoint (e.g., "http://localhost:4317")
        console_export: Also print finished spans (debugging)

    Returns:
        The polystore tracer
    """
    global _tracer

    from polystore import __version__

    provider = TracerProvider(
        resource=Resource.create(
            {"service.name": service_name, "service.version": __version__}
        )
    )
    if otlp_endpoint:
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True))
        )
    if console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer("polystore", __version__)
    return _tracer


def get_tracer() -> trace.Tracer:
    """Get the polystore tracer (the global provider's, until setup_tracing runs)."""
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer("polystore")
    return _tracer


@contextmanager
def trace_span(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Generator[trace.Span, None, None]:
    """
    Open a span as the current span.

    Exceptions escaping the block are recorded on the span, which is marked
    as failed, and re-raised.

    Args:
        name: Span name
        attributes: Span attributes; None values are skipped
    """
    with get_tracer().start_as_current_span(name) as span:
        for key, value in (attributes or {}).items():
            if value is not None:
                span.set_attribute(key, value)
        yield span


@contextmanager
def storage_span(
    operation: str,
    engine: EngineKind,
    table: str | None = None,
) -> Generator[trace.Span, None, None]:
    """Span for one storage contract call."""
    with trace_span(
        f"storage.{operation}",
        {
            "db.system": DB_SYSTEMS[engine],
            "db.operation.name": operation,
            "db.collection.name": table,
            "polystore.engine": engine.value,
        },
    ) as span:
        yield span
