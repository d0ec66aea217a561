"""SQLAlchemy ORM models."""

from riskaudit.models.base import Base
from riskaudit.models.organization import Organization, OrganizationSettings
from riskaudit.models.user import User, inspector_companies
from riskaudit.models.affiliated_company import AffiliatedCompany
from riskaudit.models.inspection import Inspection, InspectionStatus
from riskaudit.models.photo import Photo
from riskaudit.models.finding import Finding, normalize_risk_level

__all__ = [
    "Base", "Organization", "OrganizationSettings", "User", "inspector_companies",
    "AffiliatedCompany", "Inspection", "InspectionStatus", "Photo", "Finding",
    "normalize_risk_level",
]
