"""Access logging middleware using structlog with OTEL trace correlation."""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from contractor_crm.helpers.request_identity import UNKNOWN_IP, get_client_ip

logger = structlog.get_logger(__name__)


class AccessLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log one structured ``http_request`` event per request.

    Log fields:
        - method, path, status_code
        - duration_ms: Request duration in milliseconds
        - client_ip: Socket peer address
        - forwarded_ip: Client IP from proxy headers, when it differs from the peer
        - trace_id/span_id: Added by the OTEL processor

    Request bodies and query strings are never logged; the public lead form
    carries contact details.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Process request and log access information."""
        start_time = time.perf_counter()

        client_ip = request.client.host if request.client else UNKNOWN_IP
        forwarded_ip = get_client_ip(request)

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000

        log_kwargs: dict[str, str | int | float] = {
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(duration_ms, 2),
            "client_ip": client_ip,
        }
        if forwarded_ip != client_ip:
            log_kwargs["forwarded_ip"] = forwarded_ip

        logger.info("http_request", **log_kwargs)

        return response
