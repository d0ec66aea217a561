"""Pydantic request/response schemas."""

from riskaudit.schemas.finding import FindingData, AnalyzerResponse, FindingRead
from riskaudit.schemas.photo import PhotoCreate, PhotoRead
from riskaudit.schemas.inspection import (
    InspectionCreate, InspectionRead, InspectionPage, AnalyzeRequest, AnalysisJobAccepted, AnalysisStatus,
)
from riskaudit.schemas.organization import (
    OrganizationSettingsRead, OrganizationSettingsUpdate,
    AffiliatedCompanyCreate, AffiliatedCompanyRead, AffiliatedCompanyUpdate,
    InspectorRead, ThumbnailBackfillResult,
)

__all__ = [
    "FindingData", "AnalyzerResponse", "FindingRead",
    "PhotoCreate", "PhotoRead",
    "InspectionCreate", "InspectionRead", "InspectionPage",
    "AnalyzeRequest", "AnalysisJobAccepted", "AnalysisStatus",
    "OrganizationSettingsRead", "OrganizationSettingsUpdate",
    "AffiliatedCompanyCreate", "AffiliatedCompanyRead", "AffiliatedCompanyUpdate",
    "InspectorRead", "ThumbnailBackfillResult",
]
