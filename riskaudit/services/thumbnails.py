"""Retroactive thumbnails for photos stored while thumbnails were off."""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from riskaudit.db import crud
from riskaudit.errors import ImageStoreError
from riskaudit.models import OrganizationSettings
from riskaudit.schemas import ThumbnailBackfillResult
from riskaudit.services import image_optimizer
from riskaudit.services.image_store import LocalImageStore

logger = logging.getLogger(__name__)


async def generate_missing_thumbnails(
    db: AsyncSession,
    image_store: LocalImageStore,
    organization_id: str,
    settings: OrganizationSettings,
) -> ThumbnailBackfillResult:
    """Build a thumbnail for every photo of the organization that has none.

    Photos that already have one are skipped. An unreadable image counts as
    an error and the batch moves on; each new thumbnail is committed on its own.
    """
    result = ThumbnailBackfillResult(organization_id=organization_id)
    photos = await crud.list_organization_photos(db, organization_id)
    result.total_photos = len(photos)

    for photo in photos:
        if photo.thumbnail_ref:
            result.skipped += 1
            continue

        data = await image_store.read_image(photo.image_ref)
        thumb = None
        if data:
            thumb = await asyncio.to_thread(
                image_optimizer.make_thumbnail, data, settings.thumbnail_width, settings.thumbnail_quality,
            )
        if not thumb:
            logger.warning("No thumbnail for photo %s: image unreadable", photo.id)
            result.errors += 1
            continue

        try:
            name = photo.image_ref.rsplit("/", 1)[-1]
            photo.thumbnail_ref = await image_store.save_thumbnail(thumb, name, organization_id)
        except ImageStoreError as e:
            logger.error("Could not store thumbnail for photo %s: %s", photo.id, e)
            result.errors += 1
            continue
        await db.commit()
        result.processed += 1

    logger.info(
        "Thumbnail backfill for organization %s: %d processed, %d skipped, %d errors",
        organization_id, result.processed, result.skipped, result.errors,
    )
    return result
