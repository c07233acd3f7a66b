"""CRM settings model: the single document that drives pipeline configuration."""

from typing import Any

from sqlalchemy import JSON, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from contractor_crm.models.base import BaseModel
from contractor_crm.models.lead import Priority

CRM_SETTINGS_KEY = "crm_settings"


class CrmSettings(BaseModel):
    """Singleton settings row, looked up by ``key``."""

    __tablename__ = "crm_settings"

    key: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, default=CRM_SETTINGS_KEY)
    pipeline_stages: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    deal_statuses: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    lead_sources: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    service_types: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    default_priority: Mapped[Priority] = mapped_column(
        Enum(
            Priority,
            name="lead_priority",
            create_constraint=True,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=Priority.MEDIUM,
    )
    currency: Mapped[str] = mapped_column(String(10), nullable=False, default="$")
    industry_label: Mapped[str] = mapped_column(String(100), nullable=False, default="Contractor")
    deal_label: Mapped[str] = mapped_column(String(100), nullable=False, default="Project")
    leads_page_size: Mapped[int] = mapped_column(Integer, nullable=False, default=20)
