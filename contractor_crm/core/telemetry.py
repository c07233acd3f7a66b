"""OpenTelemetry tracing for the API process.

The tracer provider is built inside the FastAPI lifespan, after uvicorn has
forked its workers, so each worker owns its batch export thread.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Span, SpanKind, Status, StatusCode

from contractor_crm import __version__
from contractor_crm.core.config import settings

logger = structlog.get_logger(__name__)

AttributeValue = str | int | float | bool | list[str] | list[int] | list[float] | list[bool]

_provider: TracerProvider | None = None
_provider_lock = threading.Lock()


def parse_otlp_headers(raw: str) -> dict[str, str]:
    """
    Parse ``OTEL_EXPORTER_OTLP_HEADERS`` style ``key=value`` pairs.

    Entries without ``=`` are skipped with a warning. Values may contain ``=``.

    Example:
        >>> parse_otlp_headers("Authorization=Bearer abc,X-Team=crm")
        {'Authorization': 'Bearer abc', 'X-Team': 'crm'}
    """
    headers: dict[str, str] = {}
    for entry in (part.strip() for part in raw.split(",")):
        if not entry:
            continue
        key, sep, value = entry.partition("=")
        if not sep:
            logger.warning("otel_malformed_header", entry=entry)
            continue
        headers[key.strip()] = value.strip()
    return headers


def _build_provider() -> TracerProvider:
    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.OTEL_SERVICE_NAME,
                "service.version": __version__,
                "deployment.environment": settings.OTEL_ENVIRONMENT,
            }
        )
    )

    endpoint = settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT
    if not endpoint:
        logger.warning("otel_no_traces_endpoint_configured", message="spans are recorded but not exported")
        return provider

    headers = parse_otlp_headers(settings.OTEL_EXPORTER_OTLP_HEADERS or "")
    exporter = OTLPSpanExporter(endpoint=endpoint, headers=headers)
    provider.add_span_processor(BatchSpanProcessor(exporter))
    logger.info("otel_tracer_provider_created", endpoint=endpoint, service_name=settings.OTEL_SERVICE_NAME)
    return provider


def get_tracer_provider() -> TracerProvider | None:
    """
    Return this process's tracer provider, building it on first call.

    Returns:
        The provider, or None when ``OTEL_ENABLED`` is false
    """
    if not settings.OTEL_ENABLED:
        return None

    global _provider  # noqa: PLW0603
    with _provider_lock:
        if _provider is None:
            _provider = _build_provider()
        return _provider


def shutdown_tracer_provider() -> None:
    """Flush pending spans. Does nothing if no provider was built."""
    if _provider is not None:
        _provider.shutdown()
        logger.info("otel_tracer_provider_shutdown")


@contextmanager
def service_span(
    name: str,
    service: str,
    kind: SpanKind = SpanKind.INTERNAL,
    **attributes: AttributeValue,
) -> Iterator[Span]:
    """
    Run a block inside a span tagged with ``peer.service``.

    The span ends with status OK when the block completes. If it raises, the
    SDK records the exception and marks the span as an error.

    Args:
        name: Span name, e.g. "turnstile.verify" or "lead_intake.persist"
        service: Value for the ``peer.service`` attribute
        kind: CLIENT for calls leaving the process, INTERNAL otherwise
        **attributes: Extra span attributes

    Yields:
        The active span
    """
    # Looked up per call so spans use the provider installed at startup
    tracer = trace.get_tracer(__name__)
    with tracer.start_as_current_span(name, kind=kind, attributes={"peer.service": service, **attributes}) as span:
        yield span
        span.set_status(Status(StatusCode.OK))
