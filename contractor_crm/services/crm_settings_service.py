"""CRM settings document: defaults, persistence and settings-driven validation."""

from collections.abc import Iterable, Sequence
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from contractor_crm.models.crm_settings import CRM_SETTINGS_KEY, CrmSettings
from contractor_crm.models.lead import Priority
from contractor_crm.schemas.crm_settings import CrmSettingsResponse, UpdateCrmSettingsRequest

logger = structlog.get_logger(__name__)

# ==================== Defaults ====================

DEFAULT_PIPELINE_STAGES: list[dict[str, str]] = [
    {"key": "new", "label": "New Lead", "color": "#fe5557"},
    {"key": "contacted", "label": "Contacted", "color": "#8b5cf6"},
    {"key": "site_visit", "label": "Site Visit", "color": "#6366f1"},
    {"key": "quoted", "label": "Quote Sent", "color": "#f59e0b"},
    {"key": "negotiating", "label": "Negotiating", "color": "#f97316"},
    {"key": "won", "label": "Won", "color": "#10b981"},
    {"key": "lost", "label": "Lost", "color": "#6b7280"},
]

DEFAULT_DEAL_STATUSES: list[dict[str, str]] = [
    {"key": "planning", "label": "Planning", "color": "#f59e0b"},
    {"key": "permitting", "label": "Permitting", "color": "#6366f1"},
    {"key": "in_progress", "label": "In Progress", "color": "#10b981"},
    {"key": "inspection", "label": "Final Inspection", "color": "#14b8a6"},
    {"key": "completed", "label": "Completed", "color": "#059669"},
    {"key": "warranty", "label": "Warranty Period", "color": "#6b7280"},
    {"key": "paused", "label": "Paused", "color": "#ef4444"},
    {"key": "cancelled", "label": "Cancelled", "color": "#374151"},
]

DEFAULT_LEAD_SOURCES: list[str] = [
    "Phone Call",
    "Referral",
    "Walk-in",
    "Yard Sign",
    "Home Show / Expo",
    "Returning Client",
    "Nextdoor",
    "Social Media",
    "Other",
]

DEFAULT_SERVICE_TYPES: list[str] = [
    "Kitchen Remodel",
    "Bathroom Remodel",
    "Home Addition",
    "Deck / Patio",
    "Full Renovation",
    "ADU / Guest House",
    "Roofing",
    "Flooring",
    "Exterior / Siding",
    "Garage",
    "Basement Finish",
    "Commercial",
    "Other",
]

# Deal statuses whose value counts toward the open pipeline
ACTIVE_DEAL_STATUSES: frozenset[str] = frozenset({"planning", "permitting", "in_progress", "inspection"})
COMPLETED_DEAL_STATUS = "completed"

DEFAULT_SCALARS: dict[str, Any] = {
    "default_priority": Priority.MEDIUM,
    "currency": "$",
    "industry_label": "Contractor",
    "deal_label": "Project",
    "leads_page_size": 20,
}


class CrmValidationError(Exception):
    """A record references a status, source or service type the settings do not define."""

    def __init__(self, details: list[str]) -> None:
        """
        Initialize the error.

        Args:
            details: One message per offending field
        """
        super().__init__("; ".join(details))
        self.details = details


# ==================== Reading ====================


def default_settings() -> CrmSettingsResponse:
    """Settings used when nothing has been stored."""
    return CrmSettingsResponse(
        pipeline_stages=DEFAULT_PIPELINE_STAGES,
        deal_statuses=DEFAULT_DEAL_STATUSES,
        lead_sources=DEFAULT_LEAD_SOURCES,
        service_types=DEFAULT_SERVICE_TYPES,
        **DEFAULT_SCALARS,
    )


def _to_response(row: CrmSettings) -> CrmSettingsResponse:
    """Convert a stored row, falling back to defaults for any empty list."""
    return CrmSettingsResponse(
        pipeline_stages=row.pipeline_stages or DEFAULT_PIPELINE_STAGES,
        deal_statuses=row.deal_statuses or DEFAULT_DEAL_STATUSES,
        lead_sources=row.lead_sources or DEFAULT_LEAD_SOURCES,
        service_types=row.service_types or DEFAULT_SERVICE_TYPES,
        default_priority=row.default_priority,
        currency=row.currency,
        industry_label=row.industry_label,
        deal_label=row.deal_label,
        leads_page_size=row.leads_page_size,
    )


async def _get_row(db: AsyncSession) -> CrmSettings | None:
    result = await db.execute(select(CrmSettings).where(CrmSettings.key == CRM_SETTINGS_KEY))
    return result.scalar_one_or_none()


async def get_crm_settings(db: AsyncSession) -> CrmSettingsResponse:
    """
    Return the stored settings document, or the defaults when none exists.

    Args:
        db: Database session

    Returns:
        Settings with empty lists replaced by defaults
    """
    row = await _get_row(db)
    if row is None:
        return default_settings()
    return _to_response(row)


# ==================== Writing ====================


def _apply_update(row: CrmSettings, request: UpdateCrmSettingsRequest) -> list[str]:
    """
    Copy supplied fields onto a row.

    Returns:
        Names of fields that were set
    """
    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(row, field, value)
    return sorted(changes)


def _new_row() -> CrmSettings:
    """Row populated with the defaults."""
    defaults = default_settings().model_dump()
    return CrmSettings(key=CRM_SETTINGS_KEY, **defaults)


async def create_crm_settings_if_missing(
    db: AsyncSession,
    request: UpdateCrmSettingsRequest | None = None,
) -> tuple[CrmSettingsResponse, bool]:
    """
    Create the settings document unless it already exists.

    An existing document is returned unchanged; the request body only seeds a
    new one (merged over the defaults).

    Args:
        db: Database session
        request: Initial values for a new document

    Returns:
        Tuple of (settings, created)
    """
    if (row := await _get_row(db)) is not None:
        return _to_response(row), False

    row = _new_row()
    if request is not None:
        _apply_update(row, request)
    db.add(row)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent create; the other document wins
        await db.rollback()
        existing = await _get_row(db)
        if existing is None:
            raise
        return _to_response(existing), False

    await db.refresh(row)
    logger.info("crm_settings_created")
    return _to_response(row), True


async def update_crm_settings(db: AsyncSession, request: UpdateCrmSettingsRequest) -> CrmSettingsResponse:
    """
    Patch the settings document, creating it from defaults first if needed.

    Args:
        db: Database session
        request: Fields to set

    Returns:
        Updated settings
    """
    row = await _get_row(db)
    if row is None:
        row = _new_row()
        db.add(row)

    changed = _apply_update(row, request)
    await db.commit()
    await db.refresh(row)
    logger.info("crm_settings_updated", fields=changed)
    return _to_response(row)


# ==================== Validation ====================


def stage_keys(options: Sequence[Any]) -> list[str]:
    """Keys of pipeline stages or deal statuses."""
    return [option.key for option in options]


def _check_value(field: str, value: str | None, valid: Iterable[str]) -> str | None:
    """Return an error message when a non-empty value is not in the valid set."""
    valid_values = list(valid)
    if value and value not in valid_values:
        return f'{field}: Invalid {field} "{value}". Valid values: {", ".join(valid_values)}'
    return None


def validate_lead_fields(
    crm_settings: CrmSettingsResponse,
    *,
    status: str | None = None,
    source: str | None = None,
    service_type: str | None = None,
) -> None:
    """
    Check lead fields against the configured options.

    Empty or omitted values are not checked.

    Raises:
        CrmValidationError: With one message per invalid field
    """
    errors = [
        error
        for error in (
            _check_value("status", status, stage_keys(crm_settings.pipeline_stages)),
            _check_value("source", source, crm_settings.lead_sources),
            _check_value("service_type", service_type, crm_settings.service_types),
        )
        if error
    ]
    if errors:
        raise CrmValidationError(errors)


def validate_deal_status(crm_settings: CrmSettingsResponse, status: str | None) -> None:
    """
    Check a deal status against the configured deal statuses.

    Raises:
        CrmValidationError: If the status is not configured
    """
    if error := _check_value("status", status, stage_keys(crm_settings.deal_statuses)):
        raise CrmValidationError([error])
