"""OpenTelemetry tracing configuration."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
)
from opentelemetry.semconv.resource import ResourceAttributes
from opentelemetry.trace import Status, StatusCode

from botfleet.config import ObservabilitySettings


def setup_tracing(settings: ObservabilitySettings) -> None:
    """Configure OpenTelemetry tracing."""
    if not settings.tracing_enabled:
        return

    resource = Resource.create({
        ResourceAttributes.SERVICE_NAME: settings.service_name,
        ResourceAttributes.SERVICE_VERSION: "1.0.0",
    })

    provider = TracerProvider(resource=resource)

    # Console exporter for development
    provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    # OTLP exporter when the exporter package is installed
    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        otlp_exporter = OTLPSpanExporter(endpoint=settings.otlp_endpoint)
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
    except ImportError:
        pass

    trace.set_tracer_provider(provider)


def get_tracer(name: str = "botfleet") -> trace.Tracer:
    """Get a tracer instance."""
    return trace.get_tracer(name)


@contextmanager
def target_operation_span(
    backend_kind: str, operation: str, instance_id: str
) -> Iterator[trace.Span]:
    """Span around one deployment target operation.

    Exceptions are recorded on the span and re-raised.
    """
    tracer = get_tracer("botfleet.targets")
    with tracer.start_as_current_span(
        f"target.{operation}",
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        span.set_attribute("botfleet.backend_kind", backend_kind)
        span.set_attribute("botfleet.instance_id", instance_id)
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise
