"""Validators and response fragments shared by the CRM schemas."""

from pydantic import BaseModel
from pydantic.networks import validate_email
from pydantic_core import PydanticCustomError


def optional_email(value: str | None) -> str:
    """
    Accept a valid email address or an empty value - reusable helper.

    Args:
        value: Submitted email, possibly blank

    Returns:
        Lowercased, trimmed email or empty string

    Raises:
        ValueError: If a non-empty value is not a string holding a valid email address
    """
    if value is None:
        return ""
    if not isinstance(value, str):
        msg = "Valid email required"
        raise ValueError(msg)
    if not value.strip():
        return ""
    try:
        _, email = validate_email(value.strip())
    except PydanticCustomError:
        msg = "Valid email required"
        raise ValueError(msg) from None
    return email.lower()


def strip_text(value: str | None) -> str:
    """Trim surrounding whitespace; None becomes an empty string."""
    return value.strip() if value else ""


class Pagination(BaseModel):
    """Offset pagination metadata."""

    offset: int
    limit: int
    has_more: bool
