"""create_crm_tables

Revision ID: 4f1a9c2b7d3e
Revises:
Create Date: 2026-10-17 10:12:41.208315

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "4f1a9c2b7d3e"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

lead_origin = postgresql.ENUM(
    "auto_website_form", "auto_landing_page", "manual", name="lead_origin", create_type=False
)
lead_priority = postgresql.ENUM("high", "medium", "low", name="lead_priority", create_type=False)
client_status = postgresql.ENUM("active", "past", name="client_status", create_type=False)
preferred_contact = postgresql.ENUM("phone", "email", "text", name="preferred_contact", create_type=False)
activity_type = postgresql.ENUM(
    "lead_created_auto",
    "lead_created_manual",
    "status_changed",
    "client_created",
    "deal_created",
    "deal_completed",
    name="activity_type",
    create_type=False,
)

ENUMS = (lead_origin, lead_priority, client_status, preferred_contact, activity_type)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    bind = op.get_bind()
    for enum_type in ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "leads",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=254), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=False),
        sa.Column("origin", lead_origin, nullable=False),
        sa.Column("source", sa.String(length=100), nullable=False),
        sa.Column("service_type", sa.String(length=100), nullable=False),
        sa.Column("estimated_value", sa.Numeric(12, 2), nullable=True),
        sa.Column("priority", lead_priority, nullable=False),
        sa.Column(
            "status",
            sa.String(length=64),
            nullable=False,
            comment="Pipeline stage key from CRM settings",
        ),
        sa.Column("referred_by", sa.String(length=200), nullable=False),
        sa.Column("original_message", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("internal_notes", sa.Text(), nullable=False),
        sa.Column("form_id", sa.String(length=100), nullable=False),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("converted_to_client_id", sa.UUID(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_leads_status_received_at", "leads", ["status", "received_at"])
    op.create_index("ix_leads_received_at", "leads", ["received_at"])

    op.create_table(
        "clients",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=254), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=False),
        sa.Column("address", sa.String(length=500), nullable=False),
        sa.Column("status", client_status, nullable=False),
        sa.Column("preferred_contact", preferred_contact, nullable=True),
        sa.Column("property_type", sa.String(length=100), nullable=False),
        sa.Column("internal_notes", sa.Text(), nullable=False),
        sa.Column("source_lead_id", sa.UUID(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["source_lead_id"], ["leads.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )

    # leads <-> clients reference each other, so this FK is added once both exist
    op.create_foreign_key(
        "fk_leads_converted_to_client_id",
        "leads",
        "clients",
        ["converted_to_client_id"],
        ["id"],
        ondelete="SET NULL",
    )

    op.create_table(
        "deals",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("client_id", sa.UUID(), nullable=False),
        sa.Column("deal_type", sa.String(length=100), nullable=False),
        sa.Column("value", sa.Numeric(12, 2), nullable=True),
        sa.Column("status", sa.String(length=64), nullable=False, comment="Deal status key from CRM settings"),
        sa.Column("project_address", sa.String(length=500), nullable=False),
        sa.Column("permit_number", sa.String(length=100), nullable=False),
        sa.Column("estimated_duration", sa.String(length=100), nullable=False),
        sa.Column("scope", sa.JSON(), nullable=False),
        sa.Column("contract_signed_date", sa.Date(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("expected_end_date", sa.Date(), nullable=True),
        sa.Column("actual_end_date", sa.Date(), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("internal_notes", sa.Text(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_deals_client_id", "deals", ["client_id"])
    op.create_index("ix_deals_status", "deals", ["status"])

    op.create_table(
        "activities",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("type", activity_type, nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("performed_by", sa.String(length=254), nullable=False),
        sa.Column("lead_id", sa.UUID(), nullable=True),
        sa.Column("client_id", sa.UUID(), nullable=True),
        sa.Column("deal_id", sa.UUID(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True, comment="old_status/new_status for status changes"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["lead_id"], ["leads.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["deal_id"], ["deals.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_activities_lead_id", "activities", ["lead_id"])
    op.create_index("ix_activities_client_id", "activities", ["client_id"])
    op.create_index("ix_activities_deal_id", "activities", ["deal_id"])

    op.create_table(
        "crm_settings",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("key", sa.String(length=50), nullable=False),
        sa.Column("pipeline_stages", sa.JSON(), nullable=False),
        sa.Column("deal_statuses", sa.JSON(), nullable=False),
        sa.Column("lead_sources", sa.JSON(), nullable=False),
        sa.Column("service_types", sa.JSON(), nullable=False),
        sa.Column("default_priority", lead_priority, nullable=False),
        sa.Column("currency", sa.String(length=10), nullable=False),
        sa.Column("industry_label", sa.String(length=100), nullable=False),
        sa.Column("deal_label", sa.String(length=100), nullable=False),
        sa.Column("leads_page_size", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("key"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("crm_settings")
    op.drop_index("ix_activities_deal_id", table_name="activities")
    op.drop_index("ix_activities_client_id", table_name="activities")
    op.drop_index("ix_activities_lead_id", table_name="activities")
    op.drop_table("activities")
    op.drop_index("ix_deals_status", table_name="deals")
    op.drop_index("ix_deals_client_id", table_name="deals")
    op.drop_table("deals")
    op.drop_constraint("fk_leads_converted_to_client_id", "leads", type_="foreignkey")
    op.drop_table("clients")
    op.drop_index("ix_leads_received_at", table_name="leads")
    op.drop_index("ix_leads_status_received_at", table_name="leads")
    op.drop_table("leads")

    bind = op.get_bind()
    for enum_type in reversed(ENUMS):
        enum_type.drop(bind, checkfirst=True)
