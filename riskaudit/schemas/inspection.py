from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel, Field
from riskaudit.schemas.photo import PhotoCreate, PhotoRead


class InspectionCreate(BaseModel):
    affiliated_company_id: str
    photos: list[PhotoCreate] = Field(min_length=1)


class InspectionRead(BaseModel):
    id: str
    affiliated_company_id: str
    affiliated_company_name: str
    status: str
    started_at: datetime
    completed_at: datetime | None = None
    photos_count: int = 0
    analyzed_photos_count: int = 0
    findings_count: int = 0
    photos: list[PhotoRead] = []


class AnalyzeRequest(BaseModel):
    photo_ids: list[str] = Field(min_length=1)


class AnalysisJobAccepted(BaseModel):
    job_id: str
    inspection_id: str
    status: str = "queued"


class AnalysisStatus(BaseModel):
    inspection_id: str
    status: str
    total_photos: int
    analyzed_photos: int
    pending_photos: int
    started_at: datetime
    completed_at: datetime | None = None


class InspectionPage(BaseModel):
    items: list[InspectionRead]
    total: int
    page: int
    page_size: int
    total_pages: int
