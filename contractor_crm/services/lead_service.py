"""Admin lead management service."""

import uuid

import structlog
from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from contractor_crm.helpers.activities import status_change_activity
from contractor_crm.models.activity import Activity, ActivityType
from contractor_crm.models.lead import Lead
from contractor_crm.schemas.common import Pagination
from contractor_crm.schemas.crm_settings import CrmSettingsResponse
from contractor_crm.schemas.leads import (
    CreateLeadRequest,
    LeadListResponse,
    LeadResponse,
    UpdateLeadRequest,
)
from contractor_crm.services.crm_settings_service import stage_keys, validate_lead_fields

logger = structlog.get_logger(__name__)

ALL_STATUSES = "all"
NULLABLE_LEAD_FIELDS = frozenset({"estimated_value", "converted_to_client_id"})


class LeadService:
    """Service for listing and editing leads from the admin UI."""

    def __init__(self, db: AsyncSession) -> None:
        """
        Initialize the lead service.

        Args:
            db: Database session
        """
        self.db = db

    async def get_lead(self, lead_id: uuid.UUID) -> Lead:
        """
        Fetch a lead.

        Raises:
            HTTPException: 404 if the lead does not exist
        """
        if not (lead := await self.db.get(Lead, lead_id)):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Lead not found.",
            )
        return lead

    async def status_counts(self, crm_settings: CrmSettingsResponse) -> dict[str, int]:
        """
        Count leads per status across the whole table.

        Every configured stage gets a key (zero when empty). Legacy statuses
        found on stored leads keep their own key so nothing disappears from
        the totals.

        Returns:
            Mapping of status key to count, plus "total"
        """
        counts = dict.fromkeys(stage_keys(crm_settings.pipeline_stages), 0)
        result = await self.db.execute(select(Lead.status, func.count()).group_by(Lead.status))
        for lead_status, count in result.all():
            counts[lead_status] = counts.get(lead_status, 0) + count
        counts["total"] = sum(counts.values())
        return counts

    async def list_leads(
        self,
        crm_settings: CrmSettingsResponse,
        *,
        status_filter: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> LeadListResponse:
        """
        List leads, newest first.

        Args:
            crm_settings: Settings supplying stages and the default page size
            status_filter: Stage key, or None/"all" for every lead
            limit: Page size; defaults to the configured leads page size
            offset: Number of leads to skip

        Returns:
            Page of leads with total, per-status counts and pagination info
        """
        page_size = limit or crm_settings.leads_page_size

        query = select(Lead)
        count_query = select(func.count()).select_from(Lead)
        if status_filter and status_filter != ALL_STATUSES:
            query = query.where(Lead.status == status_filter)
            count_query = count_query.where(Lead.status == status_filter)

        total = (await self.db.execute(count_query)).scalar_one()
        result = await self.db.execute(
            query.order_by(Lead.received_at.desc(), Lead.id).offset(offset).limit(page_size)
        )
        leads = list(result.scalars().all())

        return LeadListResponse(
            leads=[LeadResponse.model_validate(lead) for lead in leads],
            total=total,
            status_counts=await self.status_counts(crm_settings),
            pagination=Pagination(
                offset=offset,
                limit=page_size,
                has_more=offset + len(leads) < total,
            ),
        )

    async def create_lead(
        self,
        request: CreateLeadRequest,
        crm_settings: CrmSettingsResponse,
        performed_by: str,
    ) -> Lead:
        """
        Create a manually entered lead with a lead_created_manual activity.

        Args:
            request: Lead fields
            crm_settings: Settings used for validation and the default priority
            performed_by: Admin email

        Returns:
            Created lead

        Raises:
            CrmValidationError: If status, source or service type is not configured
        """
        validate_lead_fields(
            crm_settings,
            status=request.status,
            source=request.source,
            service_type=request.service_type,
        )

        fields = request.model_dump()
        fields["priority"] = request.priority or crm_settings.default_priority
        lead = Lead(**fields)
        activity = Activity(
            type=ActivityType.LEAD_CREATED_MANUAL,
            description="Lead created manually",
            performed_by=performed_by,
            lead=lead,
        )
        self.db.add_all([lead, activity])
        await self.db.commit()
        await self.db.refresh(lead)

        logger.info("lead_created_manually", lead_id=str(lead.id), performed_by=performed_by)
        return lead

    async def update_lead(
        self,
        lead_id: uuid.UUID,
        request: UpdateLeadRequest,
        crm_settings: CrmSettingsResponse,
        performed_by: str,
    ) -> Lead:
        """
        Apply a partial update, recording a status_changed activity when the status moves.

        Only supplied fields are validated, so a lead holding a legacy status
        or source can still be edited.

        Raises:
            HTTPException: 404 if the lead does not exist
            CrmValidationError: If a supplied status, source or service type is not configured
        """
        lead = await self.get_lead(lead_id)
        changes = request.model_dump(exclude_unset=True)
        validate_lead_fields(
            crm_settings,
            status=changes.get("status"),
            source=changes.get("source"),
            service_type=changes.get("service_type"),
        )

        old_status = lead.status
        for field, value in changes.items():
            # An explicit null clears nullable columns and is ignored elsewhere
            if value is None and field not in NULLABLE_LEAD_FIELDS:
                continue
            setattr(lead, field, value)

        if lead.status != old_status:
            self.db.add(
                status_change_activity(
                    old_status=old_status,
                    new_status=lead.status,
                    performed_by=performed_by,
                    lead=lead,
                )
            )

        await self.db.commit()
        await self.db.refresh(lead)
        logger.info("lead_updated", lead_id=str(lead.id), fields=sorted(changes))
        return lead

    async def delete_lead(self, lead_id: uuid.UUID) -> None:
        """
        Delete a lead and its activities.

        Raises:
            HTTPException: 404 if the lead does not exist
        """
        lead = await self.get_lead(lead_id)
        await self.db.delete(lead)
        await self.db.commit()
        logger.info("lead_deleted", lead_id=str(lead_id))

    async def list_activities(self, lead_id: uuid.UUID) -> list[Activity]:
        """
        Timeline for a lead, oldest first.

        Raises:
            HTTPException: 404 if the lead does not exist
        """
        await self.get_lead(lead_id)
        result = await self.db.execute(
            select(Activity).where(Activity.lead_id == lead_id).order_by(Activity.timestamp, Activity.created_at)
        )
        return list(result.scalars().all())
