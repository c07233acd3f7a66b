"""Pydantic schemas for clients."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from contractor_crm.models.client import ClientStatus, PreferredContact
from contractor_crm.schemas.common import optional_email, strip_text


class CreateClientRequest(BaseModel):
    """New client, optionally converted from a lead."""

    full_name: str = Field(..., min_length=1, max_length=200)
    email: str = Field("", max_length=254)
    phone: str = Field("", max_length=50)
    address: str = Field("", max_length=500)
    status: ClientStatus = ClientStatus.ACTIVE
    preferred_contact: PreferredContact | None = None
    property_type: str = Field("", max_length=100)
    internal_notes: str = ""
    source_lead_id: UUID | None = None

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


class UpdateClientRequest(BaseModel):
    """Partial client update."""

    full_name: str | None = Field(None, min_length=1, max_length=200)
    email: str | None = Field(None, max_length=254)
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=500)
    status: ClientStatus | None = None
    preferred_contact: PreferredContact | None = None
    property_type: str | None = Field(None, max_length=100)
    internal_notes: str | None = None

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, v: str | None) -> str | None:
        """Allow an empty email; otherwise require a valid address."""
        return None if v is None else optional_email(v)


class ClientResponse(BaseModel):
    """Client as returned to the admin UI."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    full_name: str
    email: str
    phone: str
    address: str
    status: ClientStatus
    preferred_contact: PreferredContact | None
    property_type: str
    internal_notes: str
    source_lead_id: UUID | None
    created_at: datetime
    updated_at: datetime


class ClientListResponse(BaseModel):
    """All clients matching the filter."""

    clients: list[ClientResponse]
    total: int
