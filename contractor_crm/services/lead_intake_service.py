"""Public lead intake: rate limiting, bot verification, validation and persistence.

Every step fails closed. The public response never carries a lead identifier
or internal error detail.
"""

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request

from contractor_crm.core.config import settings
from contractor_crm.core.telemetry import service_span
from contractor_crm.helpers.request_identity import RequestIdentity, build_request_identity
from contractor_crm.models.activity import SYSTEM_ACTOR, Activity, ActivityType
from contractor_crm.models.lead import Lead, LeadOrigin, Priority
from contractor_crm.schemas.leads import LeadSubmittedResponse, LeadWebForm
from contractor_crm.services.abuse_logger import AbuseEventType, log_abuse_event
from contractor_crm.services.rate_limiter import (
    MultiDimensionConfig,
    RateLimitConfig,
    RateLimitDenied,
    RateLimiter,
)
from contractor_crm.services.turnstile_service import (
    TurnstileVerifier,
    VerificationFailed,
    VerificationMisconfigured,
)
from contractor_crm.utils.pii import hash_pii

logger = structlog.get_logger(__name__)

WEBSITE_FORM_SOURCE = "website_form"
NEW_LEAD_STATUS = "new"
AUTO_LEAD_DESCRIPTION = "Lead auto-created from website contact form"


# ==================== Errors ====================


class IntakeError(Exception):
    """
    Base class for public intake failures.

    Each subclass maps to one HTTP status and a message that is safe to show
    to an anonymous client.
    """

    status_code: int = 500
    public_message: str = "Unable to submit your request. Please try again."

    def __init__(
        self,
        message: str | None = None,
        *,
        details: list[str] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        """
        Initialize the error.

        Args:
            message: Client-facing message; defaults to the class message
            details: Field-level validation messages
            headers: Extra response headers
        """
        self.message = message or self.public_message
        self.details = details
        self.headers = dict(headers) if headers else None
        super().__init__(self.message)

    def to_body(self) -> dict[str, Any]:
        """JSON body for the error response."""
        body: dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class InvalidRequestFormat(IntakeError):
    """Body is not a JSON object."""

    status_code = 400
    public_message = "Invalid request format"


class RateLimited(IntakeError):
    """A rate limit dimension refused the request."""

    status_code = 429
    public_message = "Too many requests. Please try again later."


class BotVerificationMisconfigured(IntakeError):
    """Turnstile secret is not configured on the server."""

    status_code = 503
    public_message = "Service temporarily unavailable. Please try again later."


class BotVerificationFailed(IntakeError):
    """Turnstile token missing or rejected."""

    status_code = 403
    public_message = "Verification failed"


class ValidationFailed(IntakeError):
    """Form fields failed schema validation."""

    status_code = 400
    public_message = "Please check your form inputs"


class PersistenceFailed(IntakeError):
    """Lead could not be stored."""

    status_code = 500
    public_message = "Unable to submit your request. Please try again."


# ==================== Helpers ====================


def public_lead_rate_limits() -> MultiDimensionConfig:
    """Rate limits for the public lead endpoint from settings."""
    return MultiDimensionConfig(
        ip=RateLimitConfig(
            limit=settings.PUBLIC_LEAD_IP_LIMIT,
            window_seconds=settings.PUBLIC_LEAD_IP_WINDOW_SECONDS,
        ),
        fingerprint=RateLimitConfig(
            limit=settings.PUBLIC_LEAD_FINGERPRINT_LIMIT,
            window_seconds=settings.PUBLIC_LEAD_FINGERPRINT_WINDOW_SECONDS,
        ),
        contact=RateLimitConfig(
            limit=settings.PUBLIC_LEAD_CONTACT_LIMIT,
            window_seconds=settings.PUBLIC_LEAD_CONTACT_WINDOW_SECONDS,
        ),
    )


def rate_limit_headers(denied: RateLimitDenied) -> dict[str, str]:
    """
    Headers for a 429 response.

    Args:
        denied: Limiter decision

    Returns:
        Retry-After, X-RateLimit-Remaining and X-RateLimit-Reset (epoch seconds)
    """
    return {
        "Retry-After": str(denied.retry_after_seconds),
        "X-RateLimit-Remaining": "0",
        "X-RateLimit-Reset": str(int(denied.reset_at.timestamp())),
    }


def format_validation_errors(error: ValidationError) -> list[str]:
    """Render pydantic errors as "field: message" strings using the submitted field names."""
    messages = []
    for item in error.errors():
        field = ".".join(str(part) for part in item["loc"]) or "body"
        messages.append(f"{field}: {item['msg']}")
    return messages


def _string_field(body: Mapping[str, Any], name: str) -> str | None:
    value = body.get(name)
    return value if isinstance(value, str) else None


# ==================== Service ====================


class LeadIntakeService:
    """Runs a public form submission through every gate and stores the lead."""

    def __init__(
        self,
        db: AsyncSession,
        rate_limiter: RateLimiter,
        verifier: TurnstileVerifier,
        rate_limits: MultiDimensionConfig | None = None,
    ) -> None:
        """
        Initialize the service.

        Args:
            db: Database session for the lead and its activity
            rate_limiter: Process-wide limiter
            verifier: Turnstile verifier
            rate_limits: Per-dimension limits; defaults to settings
        """
        self.db = db
        self.rate_limiter = rate_limiter
        self.verifier = verifier
        self.rate_limits = rate_limits or public_lead_rate_limits()

    async def submit(self, request: Request) -> LeadSubmittedResponse:
        """
        Process a contact form submission.

        Args:
            request: Incoming request (body is read here)

        Returns:
            Public acknowledgement

        Raises:
            IntakeError: Subclass matching the first gate that refused the request
        """
        path = request.url.path
        body = await self._parse_body(request)

        identity = build_request_identity(
            request,
            email=_string_field(body, "email"),
            phone=_string_field(body, "phone"),
        )
        self._check_rate_limit(identity, path)
        await self._verify_bot(_string_field(body, "turnstileToken"), identity, path)
        form = self._validate(body)
        await self._persist(form, identity)
        return LeadSubmittedResponse()

    async def _parse_body(self, request: Request) -> dict[str, Any]:
        try:
            body = await request.json()
        except ValueError as e:
            raise InvalidRequestFormat from e
        if not isinstance(body, dict):
            raise InvalidRequestFormat
        return body

    def _check_rate_limit(self, identity: RequestIdentity, path: str) -> None:
        decision = self.rate_limiter.check(identity, path, self.rate_limits)
        if isinstance(decision, RateLimitDenied):
            raise RateLimited(headers=rate_limit_headers(decision))

    async def _verify_bot(self, token: str | None, identity: RequestIdentity, path: str) -> None:
        """
        Require a Turnstile token and have it verified.

        A missing token is refused before any upstream call. A misconfigured
        verifier logs its own event, so only rejections are logged here.
        """
        if not token or not token.strip():
            log_abuse_event(
                AbuseEventType.BOT_VERIFICATION_FAILED,
                ip=identity.ip,
                path=path,
                reason="Missing turnstile token",
            )
            raise BotVerificationFailed("Verification required")

        result = await self.verifier.verify(token, remote_ip=identity.ip, path=path)
        if isinstance(result, VerificationMisconfigured):
            raise BotVerificationMisconfigured
        if isinstance(result, VerificationFailed):
            log_abuse_event(
                AbuseEventType.BOT_VERIFICATION_FAILED,
                ip=identity.ip,
                path=path,
                reason=result.error,
            )
            raise BotVerificationFailed(result.error)

    def _validate(self, body: dict[str, Any]) -> LeadWebForm:
        try:
            return LeadWebForm.model_validate(body)
        except ValidationError as e:
            raise ValidationFailed(details=format_validation_errors(e)) from e

    async def _persist(self, form: LeadWebForm, identity: RequestIdentity) -> Lead:
        """
        Store the lead and its creation activity in a single commit.

        Raises:
            PersistenceFailed: If the commit fails (the session is rolled back)
        """
        now = datetime.now(UTC)
        lead = Lead(
            full_name=form.full_name,
            email=form.email,
            phone=form.phone,
            origin=LeadOrigin.AUTO_WEBSITE_FORM,
            source=WEBSITE_FORM_SOURCE,
            service_type=form.service_type,
            priority=Priority.MEDIUM,
            status=NEW_LEAD_STATUS,
            original_message=form.message,
            form_id=form.form_id,
            received_at=now,
        )
        activity = Activity(
            type=ActivityType.LEAD_CREATED_AUTO,
            description=AUTO_LEAD_DESCRIPTION,
            timestamp=now,
            performed_by=SYSTEM_ACTOR,
            lead=lead,
        )

        with service_span("lead_intake.persist", "database", form_id=form.form_id):
            self.db.add_all([lead, activity])
            try:
                await self.db.commit()
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error(
                    "lead_persist_failed",
                    error_type=type(e).__name__,
                    error=str(e),
                    form_id=form.form_id,
                )
                raise PersistenceFailed from e

        logger.info(
            "lead_created",
            lead_id=str(lead.id),
            origin=lead.origin.value,
            form_id=lead.form_id,
            contact_hash=hash_pii(identity.contact) if identity.contact else None,
        )
        return lead
