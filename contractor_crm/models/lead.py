"""Lead model: a prospective client captured by a web form or entered by an admin."""

import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from contractor_crm.models.base import BaseModel, utc_now

if TYPE_CHECKING:
    from contractor_crm.models.activity import Activity
    from contractor_crm.models.client import Client


class LeadOrigin(str, enum.Enum):
    """How a lead entered the system."""

    AUTO_WEBSITE_FORM = "auto_website_form"
    AUTO_LANDING_PAGE = "auto_landing_page"
    MANUAL = "manual"


class Priority(str, enum.Enum):
    """Lead follow-up priority."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Lead(BaseModel):
    """A prospective client.

    ``status`` holds a pipeline stage key. Valid keys come from CRM settings
    and are checked when a lead is written; rows keep whatever key they were
    saved with, even if the stage is later removed from settings.
    """

    __tablename__ = "leads"

    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(254), nullable=False, default="")
    phone: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    origin: Mapped[LeadOrigin] = mapped_column(
        Enum(
            LeadOrigin,
            name="lead_origin",
            create_constraint=True,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=LeadOrigin.MANUAL,
    )
    source: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    service_type: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    estimated_value: Mapped[float | None] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=True)
    priority: Mapped[Priority] = mapped_column(
        Enum(
            Priority,
            name="lead_priority",
            create_constraint=True,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=Priority.MEDIUM,
    )
    status: Mapped[str] = mapped_column(String(64), nullable=False, default="new")
    referred_by: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    original_message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    internal_notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    form_id: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    converted_to_client_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("clients.id", ondelete="SET NULL", use_alter=True, name="fk_leads_converted_to_client_id"),
        nullable=True,
    )

    activities: Mapped[list["Activity"]] = relationship(
        back_populates="lead",
        cascade="all",
        order_by="Activity.timestamp",
    )
    converted_to_client: Mapped["Client | None"] = relationship(foreign_keys=[converted_to_client_id])

    __table_args__ = (
        Index("ix_leads_status_received_at", "status", "received_at"),
        Index("ix_leads_received_at", "received_at"),
    )

    def __repr__(self) -> str:
        """String representation of the lead."""
        return f"<Lead(id={self.id}, status={self.status}, origin={self.origin.value})>"
