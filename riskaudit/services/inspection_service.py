"""Inspection use cases: create with photos, queue analysis, report progress."""

from __future__ import annotations

import base64
import binascii
import logging
import math

from sqlalchemy.ext.asyncio import AsyncSession

from riskaudit.config import ImageDefaultsConfig
from riskaudit.db import crud
from riskaudit.errors import InspectionValidationError, NotFoundError
from riskaudit.jobs.queue import JobQueue
from riskaudit.models import Inspection, Finding
from riskaudit.models.base import utcnow
from riskaudit.schemas import (
    InspectionCreate, InspectionRead, InspectionPage, PhotoRead, AnalysisStatus,
)
from riskaudit.services.image_store import LocalImageStore

logger = logging.getLogger(__name__)


def _decode_photo(image_base64: str) -> bytes:
    data = image_base64.strip()
    # Accept data URLs as sent by browsers
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        decoded = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InspectionValidationError("Photo is not valid base64") from e
    if not decoded:
        raise InspectionValidationError("Photo is empty")
    return decoded


def to_inspection_read(inspection: Inspection) -> InspectionRead:
    photos = list(inspection.photos)
    return InspectionRead(
        id=inspection.id,
        affiliated_company_id=inspection.affiliated_company_id,
        affiliated_company_name=inspection.affiliated_company.name if inspection.affiliated_company else "",
        status=inspection.status,
        started_at=inspection.started_at,
        completed_at=inspection.completed_at,
        photos_count=len(photos),
        analyzed_photos_count=sum(1 for p in photos if p.is_analyzed),
        findings_count=inspection.total_findings,
        photos=[PhotoRead.model_validate(p) for p in photos],
    )


async def create_inspection(
    db: AsyncSession,
    image_store: LocalImageStore,
    data: InspectionCreate,
    user_id: str,
    organization_id: str,
    role: str = "inspector",
    defaults: ImageDefaultsConfig | None = None,
) -> Inspection:
    """Validate the request, store the photos and insert the inspection in PhotosCaptured."""
    company = await crud.get_affiliated_company(db, data.affiliated_company_id)
    if company is None or company.organization_id != organization_id:
        raise NotFoundError("Affiliated company not found")
    if not company.is_active:
        raise InspectionValidationError("Affiliated company is inactive")
    if role == "inspector" and not await crud.is_inspector_assigned(db, user_id, company.id):
        raise InspectionValidationError("Inspector is not assigned to this company")
    if not data.photos:
        raise InspectionValidationError("At least one photo is required")

    decoded = [_decode_photo(p.image_base64) for p in data.photos]
    settings = await crud.get_or_create_organization_settings(db, organization_id, defaults)

    photo_rows = []
    for photo, raw in zip(data.photos, decoded):
        image_ref, thumb_ref = await image_store.save_photo(raw, settings, organization_id)
        photo_rows.append({
            "image_ref": image_ref,
            "thumbnail_ref": thumb_ref,
            "captured_at": photo.captured_at or utcnow(),
            "description": photo.description,
        })

    inspection = await crud.create_inspection(
        db, user_id=user_id, organization_id=organization_id,
        affiliated_company_id=company.id, photos=photo_rows,
    )
    logger.info("Inspection %s created with %d photos", inspection.id, len(photo_rows))
    return inspection


async def get_inspection(db: AsyncSession, inspection_id: str, user_id: str, organization_id: str) -> Inspection:
    inspection = await crud.get_inspection_for_user(db, inspection_id, user_id, organization_id)
    if inspection is None:
        raise NotFoundError("Inspection not found")
    return inspection


async def list_inspections(
    db: AsyncSession, user_id: str, organization_id: str, affiliated_company_id: str | None = None,
    page: int = 1, page_size: int = 20,
) -> InspectionPage:
    """One page of the caller's inspections, newest first."""
    page = max(1, page)
    page_size = max(1, page_size)
    total = await crud.count_inspections_for_user(db, user_id, organization_id, affiliated_company_id)
    inspections = await crud.list_inspections_for_user(
        db, user_id, organization_id, affiliated_company_id,
        offset=(page - 1) * page_size, limit=page_size,
    )
    return InspectionPage(
        items=[to_inspection_read(i) for i in inspections],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size),
    )


async def start_analysis(
    db: AsyncSession,
    queue: JobQueue,
    inspection_id: str,
    photo_ids: list[str],
    user_id: str,
    organization_id: str,
) -> str:
    """Check the caller owns the inspection and queue an analysis job. Returns the job id."""
    inspection = await get_inspection(db, inspection_id, user_id, organization_id)
    known = {p.id for p in inspection.photos}
    unknown = [pid for pid in photo_ids if pid not in known]
    if unknown:
        raise InspectionValidationError(f"Photos not in inspection: {', '.join(unknown)}")
    return await queue.enqueue(inspection.id, photo_ids, user_id)


async def get_analysis_status(
    db: AsyncSession, inspection_id: str, user_id: str | None = None, organization_id: str | None = None,
) -> AnalysisStatus:
    """Current status plus photo counts, read fresh from the database."""
    if user_id is not None and organization_id is not None:
        inspection = await crud.get_inspection_for_user(db, inspection_id, user_id, organization_id)
    else:
        inspection = await crud.load_inspection_with_photos(db, inspection_id)
    if inspection is None:
        raise NotFoundError("Inspection not found")

    total, analyzed = await crud.get_analysis_counts(db, inspection_id)
    return AnalysisStatus(
        inspection_id=inspection.id,
        status=inspection.status,
        total_photos=total,
        analyzed_photos=analyzed,
        pending_photos=total - analyzed,
        started_at=inspection.started_at,
        completed_at=inspection.completed_at,
    )


async def get_photo_findings(
    db: AsyncSession, inspection_id: str, photo_id: str, user_id: str, organization_id: str,
) -> list[Finding]:
    await get_inspection(db, inspection_id, user_id, organization_id)
    photo = await crud.get_photo(db, inspection_id, photo_id)
    if photo is None:
        raise NotFoundError("Photo not found")
    return await crud.list_photo_findings(db, photo.id)
