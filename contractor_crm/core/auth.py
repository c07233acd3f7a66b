"""Admin authentication for the CRM API.

Admin routes accept an Auth0-issued RS256 bearer token. The signing keys come
from the tenant's JWKS endpoint (cached for an hour) or, in DEBUG, from a key
set installed by the test suite. A valid token is not enough on its own: its
``email`` claim must also be on the ``ADMIN_EMAILS`` allowlist.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from contractor_crm.core.config import require_config, settings

logger = structlog.get_logger(__name__)

require_config("AUTH0_DOMAIN", "AUTH0_API_AUDIENCE", "AUTH0_ALGORITHMS")

JWKS_TTL = timedelta(hours=1)
JWKS_FETCH_TIMEOUT_SECONDS = 10.0
RSA_KEY_FIELDS = ("kty", "kid", "use", "n", "e")

security = HTTPBearer()

_mock_jwks: dict[str, Any] | None = None
_jwks: dict[str, Any] | None = None
_jwks_fetched_at: datetime | None = None


class AdminIdentity(BaseModel):
    """Authenticated admin, as resolved from a verified token."""

    subject: str
    email: str


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def set_mock_jwks(jwks: dict[str, Any]) -> None:
    """
    Install a local key set used instead of Auth0 (DEBUG only).

    Raises:
        RuntimeError: When DEBUG is off
    """
    if not settings.DEBUG:
        msg = "set_mock_jwks() can only be called in DEBUG mode"
        raise RuntimeError(msg)
    global _mock_jwks  # noqa: PLW0603
    _mock_jwks = jwks


def clear_jwks_cache() -> None:
    """Drop the cached JWKS so the next request refetches it."""
    global _jwks, _jwks_fetched_at  # noqa: PLW0603
    _jwks = None
    _jwks_fetched_at = None


async def get_jwks(domain: str) -> dict[str, Any]:
    """
    Return the tenant's JWKS, refetching once the cached copy is an hour old.

    Args:
        domain: Auth0 tenant domain, e.g. "contractor.us.auth0.com"

    Raises:
        HTTPException: 503 when the key set cannot be fetched
    """
    global _jwks, _jwks_fetched_at  # noqa: PLW0603

    now = datetime.now(UTC)
    if _jwks is not None and _jwks_fetched_at is not None and now - _jwks_fetched_at < JWKS_TTL:
        return _jwks

    url = f"https://{domain}/.well-known/jwks.json"
    try:
        async with httpx.AsyncClient(timeout=JWKS_FETCH_TIMEOUT_SECONDS) as client:
            response = await client.get(url)
            response.raise_for_status()
            key_set = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error("jwks_fetch_failed", domain=domain, error_type=type(e).__name__, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service unavailable",
        ) from e

    if not isinstance(key_set, dict) or "keys" not in key_set:
        logger.error("jwks_malformed", domain=domain)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service unavailable",
        )

    _jwks, _jwks_fetched_at = key_set, now
    return key_set


async def _signing_keys() -> dict[str, Any]:
    if not settings.DEBUG:
        return await get_jwks(settings.AUTH0_DOMAIN)
    if _mock_jwks is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Mock JWKS not configured for DEBUG mode",
        )
    return _mock_jwks


def _rsa_key_for(jwks: dict[str, Any], kid: str) -> dict[str, Any]:
    """Pick the JWK with this key id, reduced to the fields jose needs."""
    key = next((candidate for candidate in jwks.get("keys", []) if candidate.get("kid") == kid), None)
    if key is None:
        raise _unauthorized("Unable to find appropriate signing key")

    missing = [name for name in RSA_KEY_FIELDS if name not in key]
    if missing:
        logger.error("jwks_key_incomplete", kid=kid, missing=missing)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Signing key is incomplete",
        )
    return {name: key[name] for name in RSA_KEY_FIELDS}


async def verify_jwt(credentials: HTTPAuthorizationCredentials = Depends(security)) -> dict[str, Any]:
    """
    Verify signature, audience, issuer and expiry of the bearer token.

    Returns:
        The token's claims

    Raises:
        HTTPException: 401 for any token that fails verification
    """
    token = credentials.credentials
    try:
        kid = jwt.get_unverified_header(token).get("kid")
        if not kid:
            raise _unauthorized("Token missing 'kid' in header")

        return jwt.decode(
            token,
            _rsa_key_for(await _signing_keys(), kid),
            algorithms=settings.AUTH0_ALGORITHMS,
            audience=settings.AUTH0_API_AUDIENCE,
            issuer=f"https://{settings.AUTH0_DOMAIN}/",
        )
    except JWTError as e:
        raise _unauthorized("Invalid authentication credentials") from e


def is_allowed_admin(email: str | None) -> bool:
    """True only for a non-empty email on the ADMIN_EMAILS allowlist (case-insensitive)."""
    if not email:
        return False
    return email.strip().lower() in settings.ADMIN_EMAILS


async def require_admin(payload: dict[str, Any] = Depends(verify_jwt)) -> AdminIdentity:
    """
    Resolve the verified token to an allowlisted admin.

    Raises:
        HTTPException: 401 without a subject claim, 403 when not on the allowlist
    """
    subject = payload.get("sub")
    if not subject:
        raise _unauthorized("Token missing 'sub' claim")

    email = payload.get("email")
    if not is_allowed_admin(email):
        logger.warning("admin_access_denied", subject=subject)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin privileges required")

    return AdminIdentity(subject=subject, email=email.strip().lower())
