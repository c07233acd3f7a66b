"""Client model: a customer the business has worked with or is working with."""

import enum
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Enum, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from contractor_crm.models.base import BaseModel

if TYPE_CHECKING:
    from contractor_crm.models.activity import Activity
    from contractor_crm.models.deal import Deal


class ClientStatus(str, enum.Enum):
    """Whether the client has ongoing work."""

    ACTIVE = "active"
    PAST = "past"


class PreferredContact(str, enum.Enum):
    """Client's preferred contact channel."""

    PHONE = "phone"
    EMAIL = "email"
    TEXT = "text"


class Client(BaseModel):
    """A customer, optionally converted from a lead."""

    __tablename__ = "clients"

    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(254), nullable=False, default="")
    phone: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    address: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    status: Mapped[ClientStatus] = mapped_column(
        Enum(
            ClientStatus,
            name="client_status",
            create_constraint=True,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=ClientStatus.ACTIVE,
    )
    preferred_contact: Mapped[PreferredContact | None] = mapped_column(
        Enum(
            PreferredContact,
            name="preferred_contact",
            create_constraint=True,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=True,
    )
    property_type: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    internal_notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    source_lead_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("leads.id", ondelete="SET NULL"),
        nullable=True,
    )

    deals: Mapped[list["Deal"]] = relationship(back_populates="client", passive_deletes="all")
    activities: Mapped[list["Activity"]] = relationship(
        back_populates="client",
        cascade="all",
    )

    def __repr__(self) -> str:
        """String representation of the client."""
        return f"<Client(id={self.id}, status={self.status.value})>"
