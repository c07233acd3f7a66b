"""Pydantic schemas for deals (projects)."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from contractor_crm.schemas.common import strip_text


def _clean_scope(scope: list[str] | None) -> list[str] | None:
    """
    Drop blank scope items - reusable helper.

    Args:
        scope: Scope line items as submitted

    Returns:
        Trimmed, non-empty items (None passes through)
    """
    if scope is None:
        return None
    return [item.strip() for item in scope if item and item.strip()]


class CreateDealRequest(BaseModel):
    """New deal for an existing client."""

    title: str = Field(..., min_length=1, max_length=200)
    client_id: UUID
    deal_type: str = Field("", max_length=100)
    value: float | None = Field(None, ge=0)
    status: str = Field("planning", min_length=1, max_length=64)
    project_address: str = Field("", max_length=500)
    permit_number: str = Field("", max_length=100)
    estimated_duration: str = Field("", max_length=100)
    scope: list[str] = Field(default_factory=list)
    contract_signed_date: date | None = None
    start_date: date | None = None
    expected_end_date: date | None = None
    actual_end_date: date | None = None
    description: str = ""
    internal_notes: str = ""

    @field_validator("title", mode="after")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Reject titles that are only whitespace."""
        if not (v := strip_text(v)):
            msg = "Project title is required"
            raise ValueError(msg)
        return v

    @field_validator("scope", mode="after")
    @classmethod
    def validate_scope(cls, v: list[str]) -> list[str]:
        """Drop blank scope items."""
        return _clean_scope(v) or []


class UpdateDealRequest(BaseModel):
    """Partial deal update."""

    title: str | None = Field(None, min_length=1, max_length=200)
    client_id: UUID | None = None
    deal_type: str | None = Field(None, max_length=100)
    value: float | None = Field(None, ge=0)
    status: str | None = Field(None, min_length=1, max_length=64)
    project_address: str | None = Field(None, max_length=500)
    permit_number: str | None = Field(None, max_length=100)
    estimated_duration: str | None = Field(None, max_length=100)
    scope: list[str] | None = None
    contract_signed_date: date | None = None
    start_date: date | None = None
    expected_end_date: date | None = None
    actual_end_date: date | None = None
    description: str | None = None
    internal_notes: str | None = None

    @field_validator("scope", mode="after")
    @classmethod
    def validate_scope(cls, v: list[str] | None) -> list[str] | None:
        """Drop blank scope items."""
        return _clean_scope(v)


class DealResponse(BaseModel):
    """Deal as returned to the admin UI."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    client_id: UUID
    deal_type: str
    value: float | None
    status: str
    project_address: str
    permit_number: str
    estimated_duration: str
    scope: list[str]
    contract_signed_date: date | None
    start_date: date | None
    expected_end_date: date | None
    actual_end_date: date | None
    description: str
    internal_notes: str
    created_at: datetime
    updated_at: datetime


class DealListResponse(BaseModel):
    """Deals matching the filter, with per-status counts and open pipeline value."""

    deals: list[DealResponse]
    total: int
    status_counts: dict[str, int]
    pipeline_value: float
