"""Admin lead endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from contractor_crm.api.dependencies import get_current_crm_settings, require_crm_admin
from contractor_crm.core.auth import AdminIdentity
from contractor_crm.core.database import get_db
from contractor_crm.schemas.crm_settings import CrmSettingsResponse
from contractor_crm.schemas.leads import (
    ActivityResponse,
    CreateLeadRequest,
    LeadListResponse,
    LeadResponse,
    UpdateLeadRequest,
)
from contractor_crm.services.lead_service import LeadService

router = APIRouter(prefix="/crm/leads", tags=["crm-leads"])


@router.get("", response_model=LeadListResponse)
async def list_leads(
    status_filter: str | None = Query(None, alias="status", description='Stage key, or "all"'),
    limit: int | None = Query(None, ge=1, le=200, description="Defaults to the configured page size"),
    offset: int = Query(0, ge=0),
    _admin: AdminIdentity = Depends(require_crm_admin),
    crm_settings: CrmSettingsResponse = Depends(get_current_crm_settings),
    db: AsyncSession = Depends(get_db),
) -> LeadListResponse:
    """
    List leads, newest first.

    ``status_counts`` covers every lead regardless of the filter, with one
    key per configured stage, ``total``, and any legacy statuses still on
    stored leads.

    **Requires admin privileges.**
    """
    return await LeadService(db).list_leads(crm_settings, status_filter=status_filter, limit=limit, offset=offset)


@router.post("", response_model=LeadResponse, status_code=status.HTTP_201_CREATED)
async def create_lead(
    request: CreateLeadRequest,
    admin: AdminIdentity = Depends(require_crm_admin),
    crm_settings: CrmSettingsResponse = Depends(get_current_crm_settings),
    db: AsyncSession = Depends(get_db),
) -> LeadResponse:
    """
    Create a lead by hand.

    Status, source and service type must be configured in CRM settings.

    **Requires admin privileges.**
    """
    lead = await LeadService(db).create_lead(request, crm_settings, admin.email)
    return LeadResponse.model_validate(lead)


@router.get("/{lead_id}", response_model=LeadResponse)
async def get_lead(
    lead_id: UUID,
    _admin: AdminIdentity = Depends(require_crm_admin),
    db: AsyncSession = Depends(get_db),
) -> LeadResponse:
    """Get one lead. **Requires admin privileges.**"""
    return LeadResponse.model_validate(await LeadService(db).get_lead(lead_id))


@router.put("/{lead_id}", response_model=LeadResponse)
async def update_lead(
    lead_id: UUID,
    request: UpdateLeadRequest,
    admin: AdminIdentity = Depends(require_crm_admin),
    crm_settings: CrmSettingsResponse = Depends(get_current_crm_settings),
    db: AsyncSession = Depends(get_db),
) -> LeadResponse:
    """
    Update a lead.

    A status change is recorded on the lead's timeline with the old and new
    status.

    **Requires admin privileges.**
    """
    lead = await LeadService(db).update_lead(lead_id, request, crm_settings, admin.email)
    return LeadResponse.model_validate(lead)


@router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lead(
    lead_id: UUID,
    _admin: AdminIdentity = Depends(require_crm_admin),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Delete a lead and its timeline. **Requires admin privileges.**"""
    await LeadService(db).delete_lead(lead_id)


@router.get("/{lead_id}/activities", response_model=list[ActivityResponse])
async def list_lead_activities(
    lead_id: UUID,
    _admin: AdminIdentity = Depends(require_crm_admin),
    db: AsyncSession = Depends(get_db),
) -> list[ActivityResponse]:
    """Timeline for a lead, oldest first. **Requires admin privileges.**"""
    activities = await LeadService(db).list_activities(lead_id)
    return [ActivityResponse.model_validate(activity) for activity in activities]
