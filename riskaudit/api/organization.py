from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from riskaudit.config import Settings
from riskaudit.db import crud
from riskaudit.db.engine import get_db
from riskaudit.dependencies import require_role, get_image_store, get_settings_dep
from riskaudit.schemas import OrganizationSettingsRead, OrganizationSettingsUpdate, ThumbnailBackfillResult
from riskaudit.services import thumbnails
from riskaudit.services.auth import AuthContext
from riskaudit.services.image_store import LocalImageStore

router = APIRouter(prefix="/api/v1/organization", tags=["organization"])


@router.get("/settings", response_model=OrganizationSettingsRead)
async def get_settings(
    auth: AuthContext = Depends(require_role("admin", "super_admin")),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
):
    return await crud.get_or_create_organization_settings(db, auth.organization_id, settings.image_defaults)


@router.put("/settings", response_model=OrganizationSettingsRead)
async def update_settings(
    body: OrganizationSettingsUpdate,
    auth: AuthContext = Depends(require_role("admin", "super_admin")),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
):
    row = await crud.get_or_create_organization_settings(db, auth.organization_id, settings.image_defaults)
    return await crud.update_organization_settings(
        db, row, updated_by=auth.user_id, **body.model_dump(exclude_unset=True),
    )


@router.post("/settings/generate-thumbnails", response_model=ThumbnailBackfillResult)
async def generate_thumbnails(
    organization_id: str | None = Query(default=None),
    auth: AuthContext = Depends(require_role("admin", "super_admin")),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
    image_store: LocalImageStore = Depends(get_image_store),
):
    """Create thumbnails for existing photos that have none. Super admins may name another organization."""
    target = auth.organization_id
    if organization_id and organization_id != auth.organization_id:
        if auth.role != "super_admin":
            raise HTTPException(403, "Access denied")
        if not await crud.get_organization(db, organization_id):
            raise HTTPException(404, "Organization not found")
        target = organization_id

    row = await crud.get_or_create_organization_settings(db, target, settings.image_defaults)
    if not row.generate_thumbnails:
        raise HTTPException(400, "Thumbnail generation is disabled for this organization")
    return await thumbnails.generate_missing_thumbnails(db, image_store, target, row)
