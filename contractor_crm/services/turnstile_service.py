"""Cloudflare Turnstile server-side token verification.

Verification fails closed: a missing secret is reported as a
misconfiguration (the caller answers 503), and a missing token, an upstream
error or any answer other than ``success: true`` is a failed verification
(the caller answers 403). Upstream diagnostics (error codes, hostname,
challenge timestamp) are logged here and never returned.
"""

from dataclasses import dataclass

import httpx
import structlog
from opentelemetry.trace import SpanKind

from contractor_crm.core.config import PRODUCTION_ENVIRONMENT, settings
from contractor_crm.core.telemetry import service_span
from contractor_crm.services.abuse_logger import AbuseEventType, log_abuse_event

logger = structlog.get_logger(__name__)

TEST_BYPASS_TOKEN = "__test_bypass_token__"  # noqa: S105
MISCONFIGURED_DIMENSION = "turnstile_misconfigured"
DEFAULT_VERIFY_PATH = "/api/v1/crm/lead"


@dataclass(frozen=True)
class VerificationPassed:
    """Token accepted by Turnstile (or the non-production bypass)."""


@dataclass(frozen=True)
class VerificationFailed:
    """Token missing or rejected. ``error`` is safe to show to the client."""

    error: str = "Verification failed"


@dataclass(frozen=True)
class VerificationMisconfigured:
    """Server has no Turnstile secret. Operator fault, not client fault."""

    error: str = "Service temporarily unavailable"


VerificationResult = VerificationPassed | VerificationFailed | VerificationMisconfigured


class TurnstileVerifier:
    """Verifies Turnstile tokens against the Cloudflare siteverify endpoint."""

    def __init__(
        self,
        secret_key: str | None,
        *,
        environment: str = PRODUCTION_ENVIRONMENT,
        bypass_enabled: bool = False,
        site_key: str | None = None,
        verify_url: str = "https://challenges.cloudflare.com/turnstile/v0/siteverify",
        timeout_seconds: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the verifier.

        Args:
            secret_key: Server-side Turnstile secret
            environment: Deployment environment name; "production" disables the bypass
            bypass_enabled: Test bypass flag (ignored in production)
            site_key: Public widget key
            verify_url: siteverify endpoint
            timeout_seconds: Upper bound for the upstream call
            http_client: Client to reuse; a short-lived one is created per call when omitted
        """
        self.secret_key = secret_key
        self.environment = environment.strip().lower()
        self.bypass_enabled = bypass_enabled
        self.site_key = site_key
        self.verify_url = verify_url
        self.timeout = httpx.Timeout(timeout_seconds)
        self._http_client = http_client

    @classmethod
    def from_settings(cls, http_client: httpx.AsyncClient | None = None) -> "TurnstileVerifier":
        """Build a verifier from application settings."""
        return cls(
            settings.TURNSTILE_SECRET_KEY,
            environment=settings.ENVIRONMENT,
            bypass_enabled=settings.TURNSTILE_TEST_BYPASS,
            site_key=settings.TURNSTILE_SITE_KEY,
            verify_url=settings.TURNSTILE_VERIFY_URL,
            timeout_seconds=settings.TURNSTILE_TIMEOUT_SECONDS,
            http_client=http_client,
        )

    @property
    def is_misconfigured(self) -> bool:
        """True when no usable secret is configured."""
        return not self.secret_key or not self.secret_key.strip()

    def is_bypass_allowed(self) -> bool:
        """
        Whether the test bypass token may be honoured.

        Requires BOTH a non-production environment AND the bypass flag.
        """
        if self.environment == PRODUCTION_ENVIRONMENT:
            return False
        return self.bypass_enabled

    def bypass_token(self) -> str | None:
        """Return the bypass token for test clients, or None when bypass is not allowed."""
        return TEST_BYPASS_TOKEN if self.is_bypass_allowed() else None

    def is_configured_for_widget(self) -> bool:
        """Whether the public site key is set so the client widget can render."""
        return bool(self.site_key and self.site_key.strip())

    async def verify(
        self,
        token: str | None,
        remote_ip: str | None = None,
        path: str = DEFAULT_VERIFY_PATH,
    ) -> VerificationResult:
        """
        Verify a client-supplied Turnstile token.

        Args:
            token: Token from the client widget
            remote_ip: Client IP, forwarded to Turnstile and used in audit logs
            path: Request path for audit logs

        Returns:
            VerificationPassed, VerificationFailed or VerificationMisconfigured
        """
        if self.is_misconfigured:
            log_abuse_event(
                AbuseEventType.SUSPICIOUS_PATTERN,
                ip=remote_ip or "unknown",
                path=path,
                dimension=MISCONFIGURED_DIMENSION,
                reason="TURNSTILE_SECRET_KEY is missing or empty",
            )
            return VerificationMisconfigured()

        if not isinstance(token, str) or not token.strip():
            return VerificationFailed(error="Verification required")

        if token == TEST_BYPASS_TOKEN and self.is_bypass_allowed():
            logger.warning("turnstile_test_bypass_used", environment=self.environment, path=path)
            return VerificationPassed()

        return await self._verify_upstream(token, remote_ip)

    async def _verify_upstream(self, token: str, remote_ip: str | None) -> VerificationResult:
        """Call siteverify; every failure mode maps to VerificationFailed."""
        form = {"secret": self.secret_key or "", "response": token}
        if remote_ip:
            form["remoteip"] = remote_ip

        with service_span("turnstile.verify", "cloudflare-turnstile", kind=SpanKind.CLIENT) as span:
            try:
                if self._http_client is not None:
                    response = await self._http_client.post(self.verify_url, data=form, timeout=self.timeout)
                else:
                    async with httpx.AsyncClient(timeout=self.timeout) as client:
                        response = await client.post(self.verify_url, data=form)
            except httpx.HTTPError as e:
                logger.error("turnstile_request_failed", error_type=type(e).__name__, error=str(e))
                span.set_attribute("turnstile.result", "request_failed")
                return VerificationFailed(error="Verification unavailable")

            span.set_attribute("http.status_code", response.status_code)
            if not response.is_success:
                logger.error("turnstile_non_ok_status", status_code=response.status_code)
                span.set_attribute("turnstile.result", "http_error")
                return VerificationFailed()

            try:
                body = response.json()
            except ValueError:
                logger.error("turnstile_invalid_response_body", status_code=response.status_code)
                span.set_attribute("turnstile.result", "invalid_body")
                return VerificationFailed()

            if isinstance(body, dict) and body.get("success") is True:
                span.set_attribute("turnstile.result", "success")
                return VerificationPassed()

            error_codes = body.get("error-codes") if isinstance(body, dict) else None
            logger.warning("turnstile_verification_rejected", error_codes=error_codes)
            span.set_attribute("turnstile.result", "rejected")
            return VerificationFailed()
