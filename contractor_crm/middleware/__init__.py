"""HTTP middleware."""

from contractor_crm.middleware.access_logging import AccessLoggingMiddleware

__all__ = ["AccessLoggingMiddleware"]
