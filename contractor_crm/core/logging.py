"""structlog setup shared by the API and the operator CLI.

structlog events and stdlib records (uvicorn, sqlalchemy, httpx) are rendered
by one ``ProcessorFormatter`` on stdout, so abuse events, access logs and
library warnings come out in the same shape and at their real level.
"""

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog
from opentelemetry import trace

# Libraries that log every request or query at INFO
NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "sqlalchemy.engine",
    "aiosqlite",
    "opentelemetry.exporter.otlp.proto.http",
    "uvicorn.access",  # AccessLoggingMiddleware logs requests instead
)


def add_trace_context(
    logger: logging.Logger, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Stamp the active span's trace_id and span_id onto the event."""
    span = trace.get_current_span()
    if span.is_recording():
        span_context = span.get_span_context()
        event_dict["trace_id"] = format(span_context.trace_id, "032x")
        event_dict["span_id"] = format(span_context.span_id, "016x")
    return event_dict


def _renderer_for(level: str) -> structlog.types.Processor:
    # JSON at DEBUG so log shippers can parse abuse events field by field
    if level == "DEBUG":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def configure_logging(*, log_level: str = "INFO") -> None:
    """
    Route structlog and stdlib logging through one stdout handler.

    Safe to call more than once; the root handler is replaced each time.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL (any case)
    """
    level = log_level.upper()

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        add_trace_context,
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, _renderer_for(level)],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
