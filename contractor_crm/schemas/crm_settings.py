"""Pydantic schemas for the CRM settings document."""

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

from contractor_crm.models.lead import Priority

_KEY_PATTERN = re.compile(r"^[a-z0-9_]+$")
_COLOR_PATTERN = re.compile(r"^#[0-9a-fA-F]{6}$")


class StatusOption(BaseModel):
    """A pipeline stage or deal status."""

    key: str = Field(..., min_length=1, max_length=64)
    label: str = Field(..., min_length=1, max_length=100)
    color: str

    @field_validator("key", mode="after")
    @classmethod
    def validate_key(cls, v: str) -> str:
        """Keys are stored on records, so keep them simple identifiers."""
        if not _KEY_PATTERN.match(v):
            msg = f"Invalid key {v!r}: use lowercase letters, digits and underscores"
            raise ValueError(msg)
        return v

    @field_validator("color", mode="after")
    @classmethod
    def validate_color(cls, v: str) -> str:
        """Require a #rrggbb hex color."""
        if not _COLOR_PATTERN.match(v):
            msg = f"Invalid color {v!r}: expected #rrggbb"
            raise ValueError(msg)
        return v


def _unique_keys(options: list[StatusOption] | None) -> list[StatusOption] | None:
    """
    Reject duplicate status keys - reusable helper.

    Raises:
        ValueError: If two options share a key
    """
    if options is None:
        return None
    keys = [option.key for option in options]
    if len(keys) != len(set(keys)):
        msg = "Duplicate keys are not allowed"
        raise ValueError(msg)
    return options


class CrmSettingsResponse(BaseModel):
    """The settings document (stored or defaults)."""

    model_config = ConfigDict(from_attributes=True)

    pipeline_stages: list[StatusOption]
    deal_statuses: list[StatusOption]
    lead_sources: list[str]
    service_types: list[str]
    default_priority: Priority
    currency: str
    industry_label: str
    deal_label: str
    leads_page_size: int


class UpdateCrmSettingsRequest(BaseModel):
    """Settings fields to set. Omitted fields keep their stored (or default) values."""

    pipeline_stages: list[StatusOption] | None = Field(None, min_length=1)
    deal_statuses: list[StatusOption] | None = Field(None, min_length=1)
    lead_sources: list[str] | None = None
    service_types: list[str] | None = None
    default_priority: Priority | None = None
    currency: str | None = Field(None, min_length=1, max_length=10)
    industry_label: str | None = Field(None, min_length=1, max_length=100)
    deal_label: str | None = Field(None, min_length=1, max_length=100)
    leads_page_size: int | None = Field(None, ge=1, le=200)

    @field_validator("pipeline_stages", "deal_statuses", mode="after")
    @classmethod
    def validate_unique_keys(cls, v: list[StatusOption] | None) -> list[StatusOption] | None:
        """Reject duplicate status keys."""
        return _unique_keys(v)

    @field_validator("lead_sources", "service_types", mode="after")
    @classmethod
    def validate_options(cls, v: list[str] | None) -> list[str] | None:
        """Trim option labels and drop blanks."""
        if v is None:
            return None
        return [item.strip() for item in v if item and item.strip()]
