"""Public lead intake endpoints (no authentication)."""

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from contractor_crm.api.dependencies import get_lead_intake_service, get_turnstile_verifier
from contractor_crm.schemas.leads import LeadSubmittedResponse
from contractor_crm.services.lead_intake_service import LeadIntakeService
from contractor_crm.services.turnstile_service import TurnstileVerifier

router = APIRouter(prefix="/crm", tags=["public-leads"])


class TurnstileConfigResponse(BaseModel):
    """Widget configuration for the public contact form."""

    enabled: bool
    site_key: str | None


# ==================== API Endpoints ====================


@router.post("/lead", response_model=LeadSubmittedResponse)
async def submit_lead(
    request: Request,
    service: LeadIntakeService = Depends(get_lead_intake_service),
) -> LeadSubmittedResponse:
    """
    Accept a website contact form submission.

    Gates, in order: JSON body, rate limits (IP, device fingerprint, contact),
    Turnstile verification, form validation. On success the lead and its
    creation activity are committed together.

    Error responses are JSON ``{"error": ...}`` (plus ``details`` for
    validation failures):

    - 400: body is not a JSON object, or form fields are invalid
    - 403: Turnstile token missing or rejected
    - 429: rate limited (Retry-After and X-RateLimit-* headers set)
    - 503: Turnstile is not configured on the server
    - 500: the lead could not be stored

    The response never includes the lead's identifier.
    """
    return await service.submit(request)


@router.get("/turnstile", response_model=TurnstileConfigResponse)
async def get_turnstile_config(
    verifier: TurnstileVerifier = Depends(get_turnstile_verifier),
) -> TurnstileConfigResponse:
    """Tell the contact form whether to render the Turnstile widget and with which site key."""
    enabled = verifier.is_configured_for_widget()
    return TurnstileConfigResponse(enabled=enabled, site_key=verifier.site_key if enabled else None)
