"""Admin CRM settings endpoints."""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from contractor_crm.api.dependencies import require_crm_admin
from contractor_crm.core.auth import AdminIdentity
from contractor_crm.core.database import get_db
from contractor_crm.schemas.crm_settings import CrmSettingsResponse, UpdateCrmSettingsRequest
from contractor_crm.services.crm_settings_service import (
    create_crm_settings_if_missing,
    get_crm_settings,
    update_crm_settings,
)

router = APIRouter(prefix="/crm/settings", tags=["crm-settings"])


@router.get("", response_model=CrmSettingsResponse)
async def read_settings(
    _admin: AdminIdentity = Depends(require_crm_admin),
    db: AsyncSession = Depends(get_db),
) -> CrmSettingsResponse:
    """Stored settings, or the defaults when none have been saved. **Requires admin privileges.**"""
    return await get_crm_settings(db)


@router.post("", response_model=CrmSettingsResponse)
async def create_settings(
    response: Response,
    request: UpdateCrmSettingsRequest | None = None,
    _admin: AdminIdentity = Depends(require_crm_admin),
    db: AsyncSession = Depends(get_db),
) -> CrmSettingsResponse:
    """
    Create the settings document if it does not exist yet.

    Returns 201 with the new document, or 200 with the existing one left
    unchanged.

    **Requires admin privileges.**
    """
    crm_settings, created = await create_crm_settings_if_missing(db, request)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return crm_settings


@router.put("", response_model=CrmSettingsResponse)
async def update_settings(
    request: UpdateCrmSettingsRequest,
    _admin: AdminIdentity = Depends(require_crm_admin),
    db: AsyncSession = Depends(get_db),
) -> CrmSettingsResponse:
    """
    Update the fields supplied; everything else keeps its current value.

    **Requires admin privileges.**
    """
    return await update_crm_settings(db, request)
