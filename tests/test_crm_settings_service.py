"""Tests for CRM settings defaults and settings-driven validation."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from contractor_crm.models import CRM_SETTINGS_KEY, CrmSettings, Priority
from contractor_crm.schemas.crm_settings import UpdateCrmSettingsRequest
from contractor_crm.services.crm_settings_service import (
    CrmValidationError,
    create_crm_settings_if_missing,
    default_settings,
    get_crm_settings,
    update_crm_settings,
    validate_deal_status,
    validate_lead_fields,
)


class TestGetCrmSettings:
    """Tests for reading settings."""

    @pytest.mark.asyncio
    async def test_empty_lists_fall_back_to_defaults(self, db_session: AsyncSession) -> None:
        """Test that a stored document with empty lists uses the default lists."""
        db_session.add(
            CrmSettings(
                key=CRM_SETTINGS_KEY,
                pipeline_stages=[],
                deal_statuses=[],
                lead_sources=[],
                service_types=["Pools"],
                default_priority=Priority.LOW,
            )
        )
        await db_session.commit()

        crm_settings = await get_crm_settings(db_session)

        assert crm_settings.pipeline_stages == default_settings().pipeline_stages
        assert crm_settings.lead_sources == default_settings().lead_sources
        assert crm_settings.service_types == ["Pools"]
        assert crm_settings.default_priority == Priority.LOW

    @pytest.mark.asyncio
    async def test_update_then_create_is_noop(self, db_session: AsyncSession) -> None:
        """Test that create_crm_settings_if_missing does not overwrite an updated document."""
        await update_crm_settings(db_session, UpdateCrmSettingsRequest(currency="€"))

        crm_settings, created = await create_crm_settings_if_missing(db_session)

        assert created is False
        assert crm_settings.currency == "€"


class TestValidateLeadFields:
    """Tests for validate_lead_fields."""

    def test_valid_values_pass(self) -> None:
        """Test that configured values are accepted."""
        validate_lead_fields(default_settings(), status="quoted", source="Referral", service_type="Roofing")

    def test_empty_values_not_checked(self) -> None:
        """Test that omitted and empty values are skipped."""
        validate_lead_fields(default_settings(), status=None, source="", service_type=None)

    def test_collects_all_errors(self) -> None:
        """Test that every invalid field gets its own message."""
        with pytest.raises(CrmValidationError) as exc_info:
            validate_lead_fields(default_settings(), status="zzz", source="Carrier Pigeon")

        details = exc_info.value.details
        assert len(details) == 2
        assert details[0] == (
            'status: Invalid status "zzz". Valid values: new, contacted, site_visit, quoted, negotiating, won, lost'
        )
        assert details[1].startswith('source: Invalid source "Carrier Pigeon". Valid values: Phone Call, Referral')


class TestValidateDealStatus:
    """Tests for validate_deal_status."""

    def test_valid_status(self) -> None:
        """Test that a configured deal status is accepted."""
        validate_deal_status(default_settings(), "in_progress")

    def test_lead_stage_is_not_a_deal_status(self) -> None:
        """Test that pipeline stage keys are not valid deal statuses."""
        with pytest.raises(CrmValidationError, match='Invalid status "quoted"'):
            validate_deal_status(default_settings(), "quoted")
