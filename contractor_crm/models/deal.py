"""Deal model: a project sold to a client, tracked through deal statuses."""

import uuid
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Date, ForeignKey, Index, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from contractor_crm.models.base import BaseModel

if TYPE_CHECKING:
    from contractor_crm.models.activity import Activity
    from contractor_crm.models.client import Client


class Deal(BaseModel):
    """A client project. ``status`` holds a deal status key from CRM settings."""

    __tablename__ = "deals"

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    deal_type: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    value: Mapped[float | None] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=True)
    status: Mapped[str] = mapped_column(String(64), nullable=False, default="planning")
    project_address: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    permit_number: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    estimated_duration: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    scope: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    contract_signed_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    expected_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    actual_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    internal_notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    client: Mapped["Client"] = relationship(back_populates="deals")
    activities: Mapped[list["Activity"]] = relationship(
        back_populates="deal",
        cascade="all",
    )

    __table_args__ = (Index("ix_deals_status", "status"),)

    def __repr__(self) -> str:
        """String representation of the deal."""
        return f"<Deal(id={self.id}, status={self.status})>"
