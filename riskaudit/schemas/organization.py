from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel, Field


class OrganizationSettingsRead(BaseModel):
    organization_id: str
    enable_image_optimization: bool
    max_image_width: int
    image_quality: int
    generate_thumbnails: bool
    thumbnail_width: int
    thumbnail_quality: int
    analysis_prompt: str | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class OrganizationSettingsUpdate(BaseModel):
    enable_image_optimization: bool | None = None
    max_image_width: int | None = Field(default=None, ge=100, le=8000)
    image_quality: int | None = Field(default=None, ge=0, le=100)
    generate_thumbnails: bool | None = None
    thumbnail_width: int | None = Field(default=None, ge=50, le=2000)
    thumbnail_quality: int | None = Field(default=None, ge=0, le=100)
    analysis_prompt: str | None = None


class AffiliatedCompanyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    tax_id: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None


class AffiliatedCompanyRead(BaseModel):
    id: str
    organization_id: str
    name: str
    tax_id: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class AffiliatedCompanyUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    tax_id: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    is_active: bool | None = None


class InspectorRead(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    full_name: str
    role: str
    is_active: bool

    model_config = {"from_attributes": True}


class ThumbnailBackfillResult(BaseModel):
    organization_id: str
    total_photos: int = 0
    processed: int = 0
    skipped: int = 0
    errors: int = 0
