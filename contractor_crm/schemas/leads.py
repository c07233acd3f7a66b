"""Pydantic schemas for leads and their activity timeline."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from contractor_crm.models.activity import ActivityType
from contractor_crm.models.lead import LeadOrigin, Priority
from contractor_crm.schemas.common import Pagination, optional_email, strip_text

DEFAULT_FORM_ID = "contact-page"

# ==================== Public Web Form ====================


class LeadWebForm(BaseModel):
    """
    Contact form submission from the public website.

    Field names follow the form's camelCase JSON. The Turnstile token is read
    from the raw body before this schema is applied, so it is not part of it.
    """

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    full_name: str = Field(..., alias="fullName", min_length=1, max_length=200)
    email: str = Field("", max_length=254)
    phone: str = Field("", max_length=50)
    message: str = Field("", max_length=5000)
    service_type: str = Field("", alias="serviceType", max_length=100)
    form_id: str = Field(DEFAULT_FORM_ID, alias="formId", max_length=100)

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, v: str | None) -> str:
        """Allow an empty email; otherwise require a valid address."""
        return optional_email(v)

    @field_validator("phone", "message", "service_type", mode="before")
    @classmethod
    def default_blank(cls, v: str | None) -> str:
        """Treat null as an empty string."""
        return v if v is not None else ""

    @field_validator("form_id", mode="before")
    @classmethod
    def default_form_id(cls, v: str | None) -> str:
        """Fall back to the contact page form id when none was sent."""
        return v if v else DEFAULT_FORM_ID


class LeadSubmittedResponse(BaseModel):
    """Public acknowledgement. Deliberately carries no record identifier."""

    success: bool = True
    message: str = "Thank you! We will be in touch soon."


# ==================== Admin Requests ====================


class CreateLeadRequest(BaseModel):
    """Manually entered lead."""

    full_name: str = Field(..., min_length=1, max_length=200)
    email: str = Field("", max_length=254)
    phone: str = Field("", max_length=50)
    origin: LeadOrigin = LeadOrigin.MANUAL
    source: str = Field("", max_length=100)
    service_type: str = Field("", max_length=100)
    estimated_value: float | None = Field(None, ge=0)
    priority: Priority | None = Field(None, description="Defaults to the configured default priority")
    status: str = Field("new", min_length=1, max_length=64)
    referred_by: str = Field("", max_length=200)
    original_message: str = ""
    description: str = ""
    internal_notes: str = ""

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, v: str | None) -> str:
        """Allow an empty email; otherwise require a valid address."""
        return optional_email(v)

    @field_validator("full_name", mode="after")
    @classmethod
    def validate_full_name(cls, v: str) -> str:
        """Reject names that are only whitespace."""
        if not (v := strip_text(v)):
            msg = "Full name is required"
            raise ValueError(msg)
        return v


class UpdateLeadRequest(BaseModel):
    """Partial lead update. Only fields present in the body are applied."""

    full_name: str | None = Field(None, min_length=1, max_length=200)
    email: str | None = Field(None, max_length=254)
    phone: str | None = Field(None, max_length=50)
    source: str | None = Field(None, max_length=100)
    service_type: str | None = Field(None, max_length=100)
    estimated_value: float | None = Field(None, ge=0)
    priority: Priority | None = None
    status: str | None = Field(None, min_length=1, max_length=64)
    referred_by: str | None = Field(None, max_length=200)
    description: str | None = None
    internal_notes: str | None = None
    converted_to_client_id: UUID | None = None

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, v: str | None) -> str | None:
        """Allow an empty email; otherwise require a valid address."""
        return None if v is None else optional_email(v)


# ==================== Responses ====================


class LeadResponse(BaseModel):
    """Lead as returned to the admin UI."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    full_name: str
    email: str
    phone: str
    origin: LeadOrigin
    source: str
    service_type: str
    estimated_value: float | None
    priority: Priority
    status: str
    referred_by: str
    original_message: str
    description: str
    internal_notes: str
    form_id: str
    received_at: datetime
    converted_to_client_id: UUID | None
    created_at: datetime
    updated_at: datetime


class LeadListResponse(BaseModel):
    """
    One page of leads.

    ``status_counts`` has a key for every configured pipeline stage, a
    ``total`` key, and keys for any legacy statuses still present on stored
    leads.
    """

    leads: list[LeadResponse]
    total: int
    status_counts: dict[str, int]
    pagination: Pagination


class ActivityResponse(BaseModel):
    """Timeline entry."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: ActivityType
    description: str
    timestamp: datetime
    performed_by: str
    lead_id: UUID | None
    client_id: UUID | None
    deal_id: UUID | None
    metadata: dict[str, Any] | None = Field(None, validation_alias="details")
