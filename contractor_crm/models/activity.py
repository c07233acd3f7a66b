"""Activity model: timeline entries attached to leads, clients and deals."""

import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from contractor_crm.models.base import BaseModel, utc_now

if TYPE_CHECKING:
    from contractor_crm.models.client import Client
    from contractor_crm.models.deal import Deal
    from contractor_crm.models.lead import Lead

SYSTEM_ACTOR = "system"


class ActivityType(str, enum.Enum):
    """Kinds of timeline entries."""

    LEAD_CREATED_AUTO = "lead_created_auto"
    LEAD_CREATED_MANUAL = "lead_created_manual"
    STATUS_CHANGED = "status_changed"
    CLIENT_CREATED = "client_created"
    DEAL_CREATED = "deal_created"
    DEAL_COMPLETED = "deal_completed"


class Activity(BaseModel):
    """A timeline entry. Deleted together with the lead, client or deal it belongs to."""

    __tablename__ = "activities"

    type: Mapped[ActivityType] = mapped_column(
        Enum(
            ActivityType,
            name="activity_type",
            create_constraint=True,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    performed_by: Mapped[str] = mapped_column(String(254), nullable=False, default=SYSTEM_ACTOR)
    lead_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("leads.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    client_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    deal_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("deals.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    # "metadata" is reserved on declarative classes
    details: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)

    lead: Mapped["Lead | None"] = relationship(back_populates="activities")
    client: Mapped["Client | None"] = relationship(back_populates="activities")
    deal: Mapped["Deal | None"] = relationship(back_populates="activities")

    def __repr__(self) -> str:
        """String representation of the activity."""
        return f"<Activity(id={self.id}, type={self.type.value})>"
