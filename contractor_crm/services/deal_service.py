"""Admin deal (project) management service."""

import uuid

import structlog
from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from contractor_crm.helpers.activities import status_change_activity
from contractor_crm.models.activity import Activity, ActivityType
from contractor_crm.models.client import Client
from contractor_crm.models.deal import Deal
from contractor_crm.schemas.crm_settings import CrmSettingsResponse
from contractor_crm.schemas.deals import CreateDealRequest, DealListResponse, DealResponse, UpdateDealRequest
from contractor_crm.services.crm_settings_service import (
    ACTIVE_DEAL_STATUSES,
    COMPLETED_DEAL_STATUS,
    stage_keys,
    validate_deal_status,
)

logger = structlog.get_logger(__name__)

NULLABLE_DEAL_FIELDS = frozenset(
    {"value", "contract_signed_date", "start_date", "expected_end_date", "actual_end_date"}
)


class DealService:
    """Service for managing deals."""

    def __init__(self, db: AsyncSession) -> None:
        """
        Initialize the deal service.

        Args:
            db: Database session
        """
        self.db = db

    # ==================== Private Helper Methods ====================

    async def _require_client(self, client_id: uuid.UUID) -> Client:
        if not (client := await self.db.get(Client, client_id)):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Client not found.",
            )
        return client

    async def _status_counts(self, crm_settings: CrmSettingsResponse) -> dict[str, int]:
        counts = dict.fromkeys(stage_keys(crm_settings.deal_statuses), 0)
        result = await self.db.execute(select(Deal.status, func.count()).group_by(Deal.status))
        for deal_status, count in result.all():
            counts[deal_status] = counts.get(deal_status, 0) + count
        counts["total"] = sum(counts.values())
        return counts

    # ==================== Public Methods ====================

    async def get_deal(self, deal_id: uuid.UUID) -> Deal:
        """
        Fetch a deal.

        Raises:
            HTTPException: 404 if the deal does not exist
        """
        if not (deal := await self.db.get(Deal, deal_id)):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Deal not found.",
            )
        return deal

    async def list_deals(
        self,
        crm_settings: CrmSettingsResponse,
        *,
        status_filter: str | None = None,
        client_id: uuid.UUID | None = None,
    ) -> DealListResponse:
        """
        List deals, most recently created first.

        ``pipeline_value`` sums the value of every planning, permitting,
        in-progress and inspection deal regardless of the filter, matching
        what the dashboard shows as open work.

        Args:
            crm_settings: Settings supplying the deal statuses
            status_filter: Deal status key, or None/"all" for every deal
            client_id: Restrict to one client's deals

        Returns:
            Deals with total, per-status counts and pipeline value
        """
        query = select(Deal)
        if status_filter and status_filter != "all":
            query = query.where(Deal.status == status_filter)
        if client_id is not None:
            query = query.where(Deal.client_id == client_id)

        result = await self.db.execute(query.order_by(Deal.created_at.desc(), Deal.id))
        deals = list(result.scalars().all())

        pipeline_value = (
            await self.db.execute(
                select(func.coalesce(func.sum(Deal.value), 0)).where(Deal.status.in_(ACTIVE_DEAL_STATUSES))
            )
        ).scalar_one()

        return DealListResponse(
            deals=[DealResponse.model_validate(deal) for deal in deals],
            total=len(deals),
            status_counts=await self._status_counts(crm_settings),
            pipeline_value=float(pipeline_value),
        )

    async def create_deal(
        self,
        request: CreateDealRequest,
        crm_settings: CrmSettingsResponse,
        performed_by: str,
    ) -> Deal:
        """
        Create a deal with a deal_created activity.

        Raises:
            CrmValidationError: If the status is not a configured deal status
            HTTPException: 404 if the client does not exist
        """
        validate_deal_status(crm_settings, request.status)
        client = await self._require_client(request.client_id)

        deal = Deal(**request.model_dump())
        activity = Activity(
            type=ActivityType.DEAL_CREATED,
            description=f"Project created: {deal.title}",
            performed_by=performed_by,
            deal=deal,
            client_id=client.id,
        )
        self.db.add_all([deal, activity])
        await self.db.commit()
        await self.db.refresh(deal)

        logger.info("deal_created", deal_id=str(deal.id), client_id=str(client.id), performed_by=performed_by)
        return deal

    async def update_deal(
        self,
        deal_id: uuid.UUID,
        request: UpdateDealRequest,
        crm_settings: CrmSettingsResponse,
        performed_by: str,
    ) -> Deal:
        """
        Apply a partial update.

        A move to ``completed`` records a deal_completed activity; any other
        status change records status_changed.

        Raises:
            HTTPException: 404 if the deal or a newly referenced client does not exist
            CrmValidationError: If a supplied status is not configured
        """
        deal = await self.get_deal(deal_id)
        changes = request.model_dump(exclude_unset=True)
        validate_deal_status(crm_settings, changes.get("status"))
        if changes.get("client_id") is not None:
            await self._require_client(changes["client_id"])

        old_status = deal.status
        for field, value in changes.items():
            if value is None and field not in NULLABLE_DEAL_FIELDS:
                continue
            setattr(deal, field, value)

        if deal.status != old_status:
            completed = deal.status == COMPLETED_DEAL_STATUS
            self.db.add(
                status_change_activity(
                    old_status=old_status,
                    new_status=deal.status,
                    performed_by=performed_by,
                    activity_type=ActivityType.DEAL_COMPLETED if completed else ActivityType.STATUS_CHANGED,
                    description=f"Project completed: {deal.title}" if completed else None,
                    deal=deal,
                )
            )

        await self.db.commit()
        await self.db.refresh(deal)
        logger.info("deal_updated", deal_id=str(deal.id), fields=sorted(changes))
        return deal

    async def delete_deal(self, deal_id: uuid.UUID) -> None:
        """
        Delete a deal and its activities.

        Raises:
            HTTPException: 404 if the deal does not exist
        """
        deal = await self.get_deal(deal_id)
        await self.db.delete(deal)
        await self.db.commit()
        logger.info("deal_deleted", deal_id=str(deal_id))
