"""Shared FastAPI dependencies: limiter, verifier, settings and the admin gate."""

import threading

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from contractor_crm.core.auth import AdminIdentity, require_admin
from contractor_crm.core.config import settings
from contractor_crm.core.database import get_db
from contractor_crm.helpers.request_identity import get_client_ip
from contractor_crm.schemas.crm_settings import CrmSettingsResponse
from contractor_crm.services.crm_settings_service import get_crm_settings
from contractor_crm.services.lead_intake_service import LeadIntakeService, rate_limit_headers
from contractor_crm.services.rate_limiter import RateLimitConfig, RateLimitDenied, RateLimiter
from contractor_crm.services.turnstile_service import TurnstileVerifier

# Process-wide limiter, created lazily so forked workers each get their own
_rate_limiter: RateLimiter | None = None
_rate_limiter_lock = threading.Lock()


def get_rate_limiter() -> RateLimiter:
    """
    Get or create the process-wide rate limiter.

    Returns:
        RateLimiter shared by every request in this process
    """
    global _rate_limiter  # noqa: PLW0603
    if _rate_limiter is None:
        with _rate_limiter_lock:
            if _rate_limiter is None:  # Double-checked locking
                _rate_limiter = RateLimiter(prune_interval_seconds=settings.RATE_LIMIT_PRUNE_INTERVAL_SECONDS)
    return _rate_limiter


def get_turnstile_verifier() -> TurnstileVerifier:
    """Turnstile verifier built from current settings."""
    return TurnstileVerifier.from_settings()


async def get_current_crm_settings(db: AsyncSession = Depends(get_db)) -> CrmSettingsResponse:
    """Stored CRM settings, or the defaults."""
    return await get_crm_settings(db)


def get_lead_intake_service(
    db: AsyncSession = Depends(get_db),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    verifier: TurnstileVerifier = Depends(get_turnstile_verifier),
) -> LeadIntakeService:
    """Lead intake service wired to the shared limiter."""
    return LeadIntakeService(db, rate_limiter, verifier)


def _route_path(request: Request) -> str:
    """Route template (e.g. /api/v1/crm/leads/{lead_id}) so one budget covers every id."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


async def admin_rate_limit(
    request: Request,
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> None:
    """
    Apply the admin API rate limit before authentication.

    Raises:
        HTTPException: 429 with Retry-After and X-RateLimit headers when exceeded
    """
    decision = rate_limiter.check_single(
        get_client_ip(request),
        _route_path(request),
        RateLimitConfig(limit=settings.ADMIN_API_LIMIT, window_seconds=settings.ADMIN_API_WINDOW_SECONDS),
    )
    if isinstance(decision, RateLimitDenied):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please try again later.",
            headers=rate_limit_headers(decision),
        )


async def require_crm_admin(
    _: None = Depends(admin_rate_limit),
    admin: AdminIdentity = Depends(require_admin),
) -> AdminIdentity:
    """
    Gate for every admin CRM route: rate limit first, then JWT and allowlist.

    Returns:
        The authenticated admin
    """
    return admin
