"""Admin client management service."""

import uuid

import structlog
from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from contractor_crm.models.activity import Activity, ActivityType
from contractor_crm.models.client import Client, ClientStatus
from contractor_crm.models.deal import Deal
from contractor_crm.models.lead import Lead
from contractor_crm.schemas.clients import CreateClientRequest, UpdateClientRequest

logger = structlog.get_logger(__name__)

NULLABLE_CLIENT_FIELDS = frozenset({"preferred_contact"})


class ClientService:
    """Service for managing clients."""

    def __init__(self, db: AsyncSession) -> None:
        """
        Initialize the client service.

        Args:
            db: Database session
        """
        self.db = db

    async def get_client(self, client_id: uuid.UUID) -> Client:
        """
        Fetch a client.

        Raises:
            HTTPException: 404 if the client does not exist
        """
        if not (client := await self.db.get(Client, client_id)):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Client not found.",
            )
        return client

    async def list_clients(self, status_filter: ClientStatus | None = None) -> list[Client]:
        """List clients alphabetically, optionally filtered by status."""
        query = select(Client)
        if status_filter is not None:
            query = query.where(Client.status == status_filter)
        result = await self.db.execute(query.order_by(Client.full_name, Client.id))
        return list(result.scalars().all())

    async def create_client(self, request: CreateClientRequest, performed_by: str) -> Client:
        """
        Create a client with a client_created activity.

        When ``source_lead_id`` is given the lead is marked as converted to
        the new client.

        Raises:
            HTTPException: 404 if the source lead does not exist
        """
        lead: Lead | None = None
        if request.source_lead_id is not None and not (lead := await self.db.get(Lead, request.source_lead_id)):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Source lead not found.",
            )

        client = Client(**request.model_dump())
        description = "Client created"
        if lead is not None:
            description = f"Client created from lead {lead.full_name}"

        activity = Activity(
            type=ActivityType.CLIENT_CREATED,
            description=description,
            performed_by=performed_by,
            client=client,
        )
        self.db.add_all([client, activity])
        await self.db.flush()

        if lead is not None:
            lead.converted_to_client_id = client.id

        await self.db.commit()
        await self.db.refresh(client)
        logger.info(
            "client_created",
            client_id=str(client.id),
            source_lead_id=str(lead.id) if lead else None,
            performed_by=performed_by,
        )
        return client

    async def update_client(self, client_id: uuid.UUID, request: UpdateClientRequest) -> Client:
        """
        Apply a partial update.

        Raises:
            HTTPException: 404 if the client does not exist
        """
        client = await self.get_client(client_id)
        changes = request.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if value is None and field not in NULLABLE_CLIENT_FIELDS:
                continue
            setattr(client, field, value)

        await self.db.commit()
        await self.db.refresh(client)
        logger.info("client_updated", client_id=str(client.id), fields=sorted(changes))
        return client

    async def delete_client(self, client_id: uuid.UUID) -> None:
        """
        Delete a client and its activities.

        Raises:
            HTTPException: 404 if the client does not exist, 409 if deals still reference it
        """
        client = await self.get_client(client_id)

        deal_count = (
            await self.db.execute(select(func.count()).select_from(Deal).where(Deal.client_id == client.id))
        ).scalar_one()
        if deal_count:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Client has {deal_count} deal(s). Delete or reassign them first.",
            )

        await self.db.delete(client)
        await self.db.commit()
        logger.info("client_deleted", client_id=str(client_id))
