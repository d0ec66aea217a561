from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from riskaudit.config import Settings
from riskaudit.db.engine import get_db
from riskaudit.dependencies import require_user, get_image_store, get_job_queue, get_settings_dep
from riskaudit.errors import InspectionValidationError, JobQueueClosedError, NotFoundError
from riskaudit.jobs.queue import JobQueue
from riskaudit.schemas import (
    InspectionCreate, InspectionRead, InspectionPage, AnalyzeRequest, AnalysisJobAccepted, AnalysisStatus,
    FindingRead,
)
from riskaudit.services import inspection_service
from riskaudit.services.auth import AuthContext
from riskaudit.services.image_store import LocalImageStore

router = APIRouter(prefix="/api/v1/inspections", tags=["inspections"])


@router.post("", response_model=InspectionRead, status_code=201)
async def create_inspection(
    body: InspectionCreate,
    auth: AuthContext = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    image_store: LocalImageStore = Depends(get_image_store),
    settings: Settings = Depends(get_settings_dep),
):
    try:
        inspection = await inspection_service.create_inspection(
            db, image_store, body,
            user_id=auth.user_id, organization_id=auth.organization_id,
            role=auth.role, defaults=settings.image_defaults,
        )
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    except InspectionValidationError as e:
        raise HTTPException(400, str(e))
    return inspection_service.to_inspection_read(inspection)


@router.get("", response_model=InspectionPage)
async def list_inspections(
    affiliated_company_id: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    auth: AuthContext = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    return await inspection_service.list_inspections(
        db, auth.user_id, auth.organization_id, affiliated_company_id, page, page_size,
    )


@router.get("/{inspection_id}", response_model=InspectionRead)
async def get_inspection(
    inspection_id: str,
    auth: AuthContext = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        inspection = await inspection_service.get_inspection(db, inspection_id, auth.user_id, auth.organization_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    return inspection_service.to_inspection_read(inspection)


@router.post("/{inspection_id}/analyze", response_model=AnalysisJobAccepted, status_code=202)
async def analyze_inspection(
    inspection_id: str,
    body: AnalyzeRequest,
    auth: AuthContext = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    queue: JobQueue = Depends(get_job_queue),
):
    """Queue background analysis of the given photos. Poll /status for progress."""
    try:
        job_id = await inspection_service.start_analysis(
            db, queue, inspection_id, body.photo_ids, auth.user_id, auth.organization_id,
        )
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    except InspectionValidationError as e:
        raise HTTPException(400, str(e))
    except JobQueueClosedError as e:
        raise HTTPException(503, str(e))
    return AnalysisJobAccepted(job_id=job_id, inspection_id=inspection_id)


@router.get("/{inspection_id}/status", response_model=AnalysisStatus)
async def get_analysis_status(
    inspection_id: str,
    auth: AuthContext = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await inspection_service.get_analysis_status(
            db, inspection_id, auth.user_id, auth.organization_id,
        )
    except NotFoundError as e:
        raise HTTPException(404, str(e))


@router.get("/{inspection_id}/photos/{photo_id}/findings", response_model=list[FindingRead])
async def get_photo_findings(
    inspection_id: str,
    photo_id: str,
    auth: AuthContext = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await inspection_service.get_photo_findings(
            db, inspection_id, photo_id, auth.user_id, auth.organization_id,
        )
    except NotFoundError as e:
        raise HTTPException(404, str(e))
