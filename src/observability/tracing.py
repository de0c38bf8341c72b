"""
OpenTelemetry tracing setup.

Spans cover poll cycles, individual dispatches, scheduling calls and
selection scans. Job spans share one attribute set so a job can be
followed from ``schedule_job`` to ``dispatch_job`` by class and timestamp.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Span, Tracer

from src import __version__
from src.config import get_settings

logger = logging.getLogger(__name__)

# Probe endpoints hit every few seconds; tracing them only adds noise
_UNTRACED_URLS = "health,ready,live,metrics"

# Global tracer instance
_tracer: Tracer | None = None


def setup_tracing(enable_console_export: bool = False) -> Tracer:
    """
    Set up OpenTelemetry tracing.

    The OTLP exporter is only attached when ``otel_exporter_enabled`` is
    set, so tests and local runs never block on an absent collector.

    Args:
        enable_console_export: If True, also export spans to console.

    Returns:
        Tracer: The tracer instance.
    """
    global _tracer

    settings = get_settings()

    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.otel_service_name,
                "service.version": __version__,
                "scheduler.namespace": settings.redis_namespace,
            }
        )
    )

    if settings.otel_exporter_enabled:
        try:
            otlp_exporter = OTLPSpanExporter(
                endpoint=settings.otel_exporter_otlp_endpoint,
                insecure=True,
            )
        except ValueError as e:
            logger.warning(
                "OTLP exporter disabled",
                extra={"endpoint": settings.otel_exporter_otlp_endpoint, "error": str(e)},
            )
        else:
            provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

    if enable_console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer(settings.otel_service_name)

    return _tracer


def instrument_fastapi(app: Any) -> None:
    """Instrument the admin API, leaving probe endpoints untraced."""
    FastAPIInstrumentor.instrument_app(app, excluded_urls=_UNTRACED_URLS)


def get_tracer() -> Tracer:
    """
    Get the tracer instance, setting tracing up on first use.

    Returns:
        Tracer: The tracer instance.
    """
    global _tracer
    if _tracer is None:
        _tracer = setup_tracing()
    return _tracer


@contextmanager
def job_span(name: str, class_name: str, queue: str, timestamp: int) -> Iterator[Span]:
    """
    Open a span for one job, tagged with its class, queue and due time.

    Example:
        with job_span(SPAN_DISPATCH_JOB, job.class_name, job.queue, ts):
            await dispatcher.dispatch(...)
    """
    with get_tracer().start_as_current_span(name) as span:
        span.set_attribute("job.class_name", class_name)
        span.set_attribute("job.queue", queue)
        span.set_attribute("job.timestamp", timestamp)
        yield span
