"""Authenticated, tenant-scoped image serving and deletion."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from cryptography.fernet import InvalidToken
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from riskaudit.dependencies import require_user, require_role, get_image_store
from riskaudit.errors import PathTraversalError
from riskaudit.services.auth import AuthContext
from riskaudit.services.image_store import LocalImageStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/files", tags=["files"])

_CONTENT_TYPES = {".jpg": "image/jpeg", ".jpeg": "image/jpeg", ".png": "image/png", ".webp": "image/webp"}


@router.get("/images/{org_id}/{path:path}")
async def serve_image(
    org_id: str,
    path: str,
    auth: AuthContext = Depends(require_user),
    image_store: LocalImageStore = Depends(get_image_store),
):
    if auth.organization_id != org_id and auth.role != "super_admin":
        raise HTTPException(403, "Access denied")

    try:
        file_path = image_store.resolve_path(org_id, path)
    except PathTraversalError:
        raise HTTPException(400, "Invalid path")

    try:
        data = await asyncio.to_thread(image_store.read_path_sync, file_path)
    except FileNotFoundError:
        raise HTTPException(404, "Image not found")
    except InvalidToken:
        raise HTTPException(500, "Image could not be decrypted")

    ext = Path(path).suffix.lower()
    return Response(content=data, media_type=_CONTENT_TYPES.get(ext, "image/jpeg"))


@router.delete("/images/{org_id}/{path:path}", status_code=204)
async def delete_image(
    org_id: str,
    path: str,
    auth: AuthContext = Depends(require_role("admin", "super_admin")),
    image_store: LocalImageStore = Depends(get_image_store),
):
    if auth.organization_id != org_id and auth.role != "super_admin":
        logger.warning("User %s tried to delete an image of organization %s", auth.user_id, org_id)
        raise HTTPException(403, "Access denied")

    try:
        deleted = await image_store.delete_file(org_id, path)
    except PathTraversalError:
        raise HTTPException(400, "Invalid path")
    if not deleted:
        raise HTTPException(404, "Image not found")
    return Response(status_code=204)
