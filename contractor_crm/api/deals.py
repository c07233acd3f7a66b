"""Admin deal (project) endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from contractor_crm.api.dependencies import get_current_crm_settings, require_crm_admin
from contractor_crm.core.auth import AdminIdentity
from contractor_crm.core.database import get_db
from contractor_crm.schemas.crm_settings import CrmSettingsResponse
from contractor_crm.schemas.deals import CreateDealRequest, DealListResponse, DealResponse, UpdateDealRequest
from contractor_crm.services.deal_service import DealService

router = APIRouter(prefix="/crm/deals", tags=["crm-deals"])


@router.get("", response_model=DealListResponse)
async def list_deals(
    status_filter: str | None = Query(None, alias="status", description='Deal status key, or "all"'),
    client_id: UUID | None = Query(None),
    _admin: AdminIdentity = Depends(require_crm_admin),
    crm_settings: CrmSettingsResponse = Depends(get_current_crm_settings),
    db: AsyncSession = Depends(get_db),
) -> DealListResponse:
    """
    List deals with per-status counts and the open pipeline value.

    **Requires admin privileges.**
    """
    return await DealService(db).list_deals(crm_settings, status_filter=status_filter, client_id=client_id)


@router.post("", response_model=DealResponse, status_code=status.HTTP_201_CREATED)
async def create_deal(
    request: CreateDealRequest,
    admin: AdminIdentity = Depends(require_crm_admin),
    crm_settings: CrmSettingsResponse = Depends(get_current_crm_settings),
    db: AsyncSession = Depends(get_db),
) -> DealResponse:
    """Create a deal for an existing client. **Requires admin privileges.**"""
    deal = await DealService(db).create_deal(request, crm_settings, admin.email)
    return DealResponse.model_validate(deal)


@router.get("/{deal_id}", response_model=DealResponse)
async def get_deal(
    deal_id: UUID,
    _admin: AdminIdentity = Depends(require_crm_admin),
    db: AsyncSession = Depends(get_db),
) -> DealResponse:
    """Get one deal. **Requires admin privileges.**"""
    return DealResponse.model_validate(await DealService(db).get_deal(deal_id))


@router.put("/{deal_id}", response_model=DealResponse)
async def update_deal(
    deal_id: UUID,
    request: UpdateDealRequest,
    admin: AdminIdentity = Depends(require_crm_admin),
    crm_settings: CrmSettingsResponse = Depends(get_current_crm_settings),
    db: AsyncSession = Depends(get_db),
) -> DealResponse:
    """
    Update a deal.

    Moving to ``completed`` records a deal_completed activity; other status
    changes record status_changed.

    **Requires admin privileges.**
    """
    deal = await DealService(db).update_deal(deal_id, request, crm_settings, admin.email)
    return DealResponse.model_validate(deal)


@router.delete("/{deal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_deal(
    deal_id: UUID,
    _admin: AdminIdentity = Depends(require_crm_admin),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Delete a deal and its timeline. **Requires admin privileges.**"""
    await DealService(db).delete_deal(deal_id)
