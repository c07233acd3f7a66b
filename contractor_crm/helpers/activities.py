"""Builders for activity timeline entries."""

from contractor_crm.models.activity import Activity, ActivityType
from contractor_crm.models.deal import Deal
from contractor_crm.models.lead import Lead


def status_change_activity(
    *,
    old_status: str,
    new_status: str,
    performed_by: str,
    activity_type: ActivityType = ActivityType.STATUS_CHANGED,
    description: str | None = None,
    lead: Lead | None = None,
    deal: Deal | None = None,
) -> Activity:
    """
    Build a status transition entry carrying old/new status metadata.

    The entry is attached through the relationship so it joins the parent's
    activities collection and is removed with it.

    Args:
        old_status: Status before the update
        new_status: Status after the update
        performed_by: Admin email (or "system")
        activity_type: STATUS_CHANGED, or DEAL_COMPLETED for a finished deal
        description: Override for the default "Status changed from X to Y"
        lead: Lead the change applies to
        deal: Deal the change applies to

    Returns:
        Unsaved Activity
    """
    return Activity(
        type=activity_type,
        description=description or f"Status changed from {old_status} to {new_status}",
        performed_by=performed_by,
        lead=lead,
        deal=deal,
        details={"old_status": old_status, "new_status": new_status},
    )
