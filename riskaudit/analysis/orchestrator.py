"""Analysis orchestrator: drives one analysis job over an inspection's photos.

Status goes to Analyzing before the first photo, each successful photo is
committed on its own, and the final status is derived from the run's counters.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from riskaudit.analysis import state_machine
from riskaudit.analysis.analyzer import ImageAnalyzer
from riskaudit.config import Settings
from riskaudit.db import crud
from riskaudit.models import Inspection, InspectionStatus, Photo
from riskaudit.schemas.finding import FindingData
from riskaudit.services.email import Notifier
from riskaudit.services.email_templates import analysis_complete_email
from riskaudit.services.image_store import LocalImageStore
from riskaudit.services.pdf_generator import generate_inspection_report, report_filename

logger = logging.getLogger(__name__)


@dataclass
class AnalysisRunResult:
    inspection_id: str
    status: str | None = None
    analyzed: int = 0
    failed: int = 0
    skipped: int = 0
    found: bool = True
    finished: bool = False
    notified: bool = False


class AnalysisOrchestrator:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        image_store: LocalImageStore,
        analyzer: ImageAnalyzer,
        notifier: Notifier,
        settings: Settings,
    ):
        self.session_factory = session_factory
        self.image_store = image_store
        self.analyzer = analyzer
        self.notifier = notifier
        self.settings = settings

    async def analyze_inspection_photos(
        self, inspection_id: str, photo_ids: list[str], acting_user_id: str,
    ) -> AnalysisRunResult:
        """Analyze the requested photos of one inspection.

        Never raises, except to pass on cancellation after the inspection has
        been forced to Failed.
        """
        result = AnalysisRunResult(inspection_id=inspection_id)
        logger.info(
            "Starting analysis of inspection %s (%d photos) for user %s",
            inspection_id, len(photo_ids), acting_user_id,
        )
        async with self.session_factory() as db:
            try:
                await self._run(db, inspection_id, photo_ids, result)
            except asyncio.CancelledError:
                logger.warning("Analysis job for inspection %s cancelled", inspection_id)
                result.status = await asyncio.shield(self._fail_job(db, inspection_id))
                raise
            except Exception:
                logger.exception("Analysis job for inspection %s aborted", inspection_id)
                result.status = await self._fail_job(db, inspection_id)
                return result

            if result.finished:
                result.notified = await self._notify(db, inspection_id)

        logger.info(
            "Analysis of inspection %s done: status=%s analyzed=%d failed=%d skipped=%d",
            inspection_id, result.status, result.analyzed, result.failed, result.skipped,
        )
        return result

    async def fail_interrupted(self) -> int:
        """Force inspections left in Analyzing by a previous process to Failed.

        Run once at startup, before any worker takes a job. Returns how many
        inspections were closed.
        """
        async with self.session_factory() as db:
            stale = await crud.list_inspections_in_status(db, InspectionStatus.ANALYZING)
            for inspection in stale:
                state_machine.fail_job(inspection)
                logger.warning("Inspection %s was interrupted while analyzing, marking Failed", inspection.id)
            if stale:
                await db.commit()
        return len(stale)

    async def _run(
        self, db: AsyncSession, inspection_id: str, photo_ids: list[str], result: AnalysisRunResult,
    ) -> None:
        inspection = await crud.load_inspection_with_photos(db, inspection_id)
        if inspection is None:
            logger.warning("Inspection %s not found, discarding analysis job", inspection_id)
            result.found = False
            return

        requested = list(dict.fromkeys(photo_ids))
        photos_by_id = {p.id: p for p in inspection.photos}
        pending = [pid for pid in requested if pid in photos_by_id and not photos_by_id[pid].is_analyzed]
        status = state_machine.current_status(inspection)

        if status.is_terminal and not pending:
            logger.info("Inspection %s is %s with nothing pending, nothing to do", inspection_id, status.value)
            result.status = status.value
            result.skipped = len(requested)
            return

        state_machine.begin_analysis(inspection)
        inspection = await crud.save_inspection(db, inspection)

        prompt = await self._prompt_for(db, inspection.organization_id)

        for photo_id in requested:
            photo = photos_by_id.get(photo_id)
            if photo is None:
                logger.warning("Photo %s not in inspection %s, skipping", photo_id, inspection_id)
                result.skipped += 1
                continue
            if photo.is_analyzed:
                result.skipped += 1
                continue

            findings = await self._analyze_photo(photo, prompt)
            if findings is None:
                result.failed += 1
                continue

            rows = await crud.record_photo_findings(db, photo, findings)
            if rows is None:
                logger.info("Photo %s was analyzed by another job, skipping", photo_id)
                result.skipped += 1
                continue
            result.analyzed += 1
            logger.info("Photo %s analyzed: %d findings", photo_id, len(rows))

        final = state_machine.finish_analysis(inspection, result.analyzed)
        await crud.save_inspection(db, inspection)
        result.status = final.value
        result.finished = True

    async def _prompt_for(self, db: AsyncSession, organization_id: str) -> str:
        settings = await crud.get_organization_settings(db, organization_id)
        if settings and settings.analysis_prompt:
            return settings.analysis_prompt
        return self.settings.analyzer.master_prompt

    async def _analyze_photo(self, photo: Photo, prompt: str) -> list[FindingData] | None:
        """Read and analyze one photo. Returns None on any failure."""
        try:
            data = await self.image_store.read_image(photo.image_ref)
            if not data:
                logger.error("Photo %s image unreadable: %s", photo.id, photo.image_ref)
                return None
            return await self.analyzer.analyze(data, prompt)
        except Exception:
            logger.exception("Analysis failed for photo %s", photo.id)
            return None

    async def _fail_job(self, db: AsyncSession, inspection_id: str) -> str | None:
        """Force the inspection to Failed after an aborted job."""
        try:
            await db.rollback()
            inspection = await db.get(Inspection, inspection_id, populate_existing=True)
            if inspection is None:
                return None
            if state_machine.fail_job(inspection):
                await db.commit()
            return inspection.status
        except Exception:
            logger.exception("Could not mark inspection %s as failed", inspection_id)
            return None

    async def _notify(self, db: AsyncSession, inspection_id: str) -> bool:
        """Email the owner the PDF report. Failures are logged and never affect status."""
        try:
            inspection = await crud.load_inspection_with_photos(db, inspection_id, refresh=True)
            owner = inspection.user if inspection else None
            if owner is None or not owner.email:
                logger.info("Inspection %s owner has no email, skipping notification", inspection_id)
                return False

            attachments: dict[str, bytes] = {}
            try:
                pdf = await generate_inspection_report(inspection, self.image_store)
                attachments[report_filename(inspection)] = pdf
            except Exception:
                logger.exception("Report generation failed for inspection %s, sending without attachment", inspection_id)

            company = inspection.affiliated_company.name if inspection.affiliated_company else ""
            subject, body = analysis_complete_email(company, inspection.id, self.settings.email.app_url)
            return await self.notifier.send(owner.email, subject, body, attachments)
        except Exception:
            logger.exception("Notification for inspection %s failed", inspection_id)
            return False
