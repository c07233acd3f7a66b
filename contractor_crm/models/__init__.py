"""Database models for the contractor CRM."""

# Import all models to register them with SQLAlchemy metadata
from contractor_crm.models.activity import SYSTEM_ACTOR, Activity, ActivityType
from contractor_crm.models.base import Base, BaseModel
from contractor_crm.models.client import Client, ClientStatus, PreferredContact
from contractor_crm.models.crm_settings import CRM_SETTINGS_KEY, CrmSettings
from contractor_crm.models.deal import Deal
from contractor_crm.models.lead import Lead, LeadOrigin, Priority

__all__ = [
    # Base
    "Base",
    "BaseModel",
    # CRM records
    "Lead",
    "LeadOrigin",
    "Priority",
    "Client",
    "ClientStatus",
    "PreferredContact",
    "Deal",
    "Activity",
    "ActivityType",
    "SYSTEM_ACTOR",
    # Settings
    "CrmSettings",
    "CRM_SETTINGS_KEY",
]
