"""Admin client endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from contractor_crm.api.dependencies import require_crm_admin
from contractor_crm.core.auth import AdminIdentity
from contractor_crm.core.database import get_db
from contractor_crm.models.client import ClientStatus
from contractor_crm.schemas.clients import (
    ClientListResponse,
    ClientResponse,
    CreateClientRequest,
    UpdateClientRequest,
)
from contractor_crm.services.client_service import ClientService

router = APIRouter(prefix="/crm/clients", tags=["crm-clients"])


@router.get("", response_model=ClientListResponse)
async def list_clients(
    status_filter: ClientStatus | None = Query(None, alias="status"),
    _admin: AdminIdentity = Depends(require_crm_admin),
    db: AsyncSession = Depends(get_db),
) -> ClientListResponse:
    """List clients alphabetically. **Requires admin privileges.**"""
    clients = await ClientService(db).list_clients(status_filter)
    return ClientListResponse(
        clients=[ClientResponse.model_validate(client) for client in clients],
        total=len(clients),
    )


@router.post("", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
async def create_client(
    request: CreateClientRequest,
    admin: AdminIdentity = Depends(require_crm_admin),
    db: AsyncSession = Depends(get_db),
) -> ClientResponse:
    """
    Create a client.

    Pass ``source_lead_id`` to convert a lead: the lead is linked to the new
    client through ``converted_to_client_id``.

    **Requires admin privileges.**
    """
    client = await ClientService(db).create_client(request, admin.email)
    return ClientResponse.model_validate(client)


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: UUID,
    _admin: AdminIdentity = Depends(require_crm_admin),
    db: AsyncSession = Depends(get_db),
) -> ClientResponse:
    """Get one client. **Requires admin privileges.**"""
    return ClientResponse.model_validate(await ClientService(db).get_client(client_id))


@router.put("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: UUID,
    request: UpdateClientRequest,
    _admin: AdminIdentity = Depends(require_crm_admin),
    db: AsyncSession = Depends(get_db),
) -> ClientResponse:
    """Update a client. **Requires admin privileges.**"""
    client = await ClientService(db).update_client(client_id, request)
    return ClientResponse.model_validate(client)


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client(
    client_id: UUID,
    _admin: AdminIdentity = Depends(require_crm_admin),
    db: AsyncSession = Depends(get_db),
) -> None:
    """
    Delete a client and its timeline.

    Refused with 409 while any deal references the client.

    **Requires admin privileges.**
    """
    await ClientService(db).delete_client(client_id)
