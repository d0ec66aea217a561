from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel, Field


class FindingData(BaseModel):
    """One hazard as returned by the image analyzer, before it is persisted."""

    description: str
    risk_level: str = "unknown"
    corrective_action: str = ""
    preventive_action: str = ""


class AnalyzerResponse(BaseModel):
    findings: list[FindingData] = Field(default_factory=list)


class FindingRead(BaseModel):
    id: str
    photo_id: str
    description: str
    risk_level: str
    corrective_action: str
    preventive_action: str
    created_at: datetime

    model_config = {"from_attributes": True}
