"""CRUD operations for organizations, companies, users and the inspection aggregate."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select, update, insert, delete, func, case
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from riskaudit.config import ImageDefaultsConfig
from riskaudit.models import (
    Organization, OrganizationSettings, User, AffiliatedCompany,
    Inspection, InspectionStatus, Photo, Finding, inspector_companies,
    normalize_risk_level,
)
from riskaudit.schemas.finding import FindingData

logger = logging.getLogger(__name__)


# ── Organization ─────────────────────────────────────────

async def create_organization(db: AsyncSession, name: str) -> Organization:
    org = Organization(name=name)
    db.add(org)
    await db.commit()
    await db.refresh(org)
    return org


async def get_organization(db: AsyncSession, org_id: str) -> Organization | None:
    return await db.get(Organization, org_id)


# ── OrganizationSettings ─────────────────────────────────

async def get_organization_settings(db: AsyncSession, org_id: str) -> OrganizationSettings | None:
    result = await db.execute(
        select(OrganizationSettings).where(OrganizationSettings.organization_id == org_id)
    )
    return result.scalars().first()


async def get_or_create_organization_settings(
    db: AsyncSession, org_id: str, defaults: ImageDefaultsConfig | None = None,
) -> OrganizationSettings:
    """Return the tenant's settings row, creating it with the image defaults on first read."""
    settings = await get_organization_settings(db, org_id)
    if settings is not None:
        return settings

    defaults = defaults or ImageDefaultsConfig()
    settings = OrganizationSettings(
        organization_id=org_id,
        enable_image_optimization=True,
        max_image_width=defaults.max_image_width,
        image_quality=defaults.image_quality,
        generate_thumbnails=True,
        thumbnail_width=defaults.thumbnail_width,
        thumbnail_quality=defaults.thumbnail_quality,
    )
    db.add(settings)
    await db.commit()
    await db.refresh(settings)
    logger.info("Created default settings for organization %s", org_id)
    return settings


async def update_organization_settings(
    db: AsyncSession, settings: OrganizationSettings, updated_by: str | None = None, **kwargs,
) -> OrganizationSettings:
    for k, v in kwargs.items():
        if v is not None:
            setattr(settings, k, v)
    # An empty prompt resets to the configured master prompt
    if kwargs.get("analysis_prompt") == "":
        settings.analysis_prompt = None
    settings.updated_at = datetime.now(timezone.utc)
    settings.updated_by = updated_by
    await db.commit()
    await db.refresh(settings)
    return settings


# ── User ─────────────────────────────────────────────────

async def create_user(
    db: AsyncSession, organization_id: str, email: str,
    first_name: str = "", last_name: str = "", role: str = "inspector",
) -> User:
    user = User(
        organization_id=organization_id, email=email.lower(),
        first_name=first_name, last_name=last_name, role=role,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def get_user(db: AsyncSession, user_id: str) -> User | None:
    return await db.get(User, user_id)


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalars().first()


# ── AffiliatedCompany ────────────────────────────────────

async def create_affiliated_company(
    db: AsyncSession, organization_id: str, name: str, created_by: str | None = None, **kwargs,
) -> AffiliatedCompany:
    company = AffiliatedCompany(
        organization_id=organization_id, name=name, created_by=created_by, **kwargs,
    )
    db.add(company)
    await db.commit()
    await db.refresh(company)
    return company


async def get_affiliated_company(db: AsyncSession, company_id: str) -> AffiliatedCompany | None:
    return await db.get(AffiliatedCompany, company_id)


async def list_affiliated_companies(
    db: AsyncSession, organization_id: str, include_inactive: bool = False,
) -> list[AffiliatedCompany]:
    q = select(AffiliatedCompany).where(AffiliatedCompany.organization_id == organization_id)
    if not include_inactive:
        q = q.where(AffiliatedCompany.is_active.is_(True))
    result = await db.execute(q.order_by(AffiliatedCompany.name))
    return list(result.scalars().all())


async def deactivate_affiliated_company(db: AsyncSession, company: AffiliatedCompany) -> AffiliatedCompany:
    company.is_active = False
    await db.commit()
    await db.refresh(company)
    return company


async def update_affiliated_company(db: AsyncSession, company: AffiliatedCompany, **kwargs) -> AffiliatedCompany:
    for k, v in kwargs.items():
        if v is not None:
            setattr(company, k, v)
    await db.commit()
    await db.refresh(company)
    return company


async def list_companies_for_inspector(
    db: AsyncSession, user_id: str, organization_id: str,
) -> list[AffiliatedCompany]:
    """Active companies the user is assigned to, within their organization."""
    result = await db.execute(
        select(AffiliatedCompany)
        .join(inspector_companies, inspector_companies.c.affiliated_company_id == AffiliatedCompany.id)
        .where(
            inspector_companies.c.user_id == user_id,
            AffiliatedCompany.organization_id == organization_id,
            AffiliatedCompany.is_active.is_(True),
        )
        .order_by(AffiliatedCompany.name)
    )
    return list(result.scalars().all())


async def list_company_inspectors(db: AsyncSession, company_id: str) -> list[User]:
    result = await db.execute(
        select(User)
        .join(inspector_companies, inspector_companies.c.user_id == User.id)
        .where(inspector_companies.c.affiliated_company_id == company_id)
        .order_by(User.last_name, User.first_name)
    )
    return list(result.scalars().all())


async def is_inspector_assigned(db: AsyncSession, user_id: str, company_id: str) -> bool:
    result = await db.execute(
        select(func.count()).select_from(inspector_companies).where(
            inspector_companies.c.user_id == user_id,
            inspector_companies.c.affiliated_company_id == company_id,
        )
    )
    return result.scalar_one() > 0


async def assign_inspector(db: AsyncSession, user_id: str, company_id: str) -> bool:
    """Link an inspector to a company. Returns False if the link already existed."""
    if await is_inspector_assigned(db, user_id, company_id):
        return False
    await db.execute(
        insert(inspector_companies).values(user_id=user_id, affiliated_company_id=company_id)
    )
    await db.commit()
    return True


async def unassign_inspector(db: AsyncSession, user_id: str, company_id: str) -> bool:
    """Remove an inspector's link to a company. Returns False if there was none."""
    result = await db.execute(
        delete(inspector_companies).where(
            inspector_companies.c.user_id == user_id,
            inspector_companies.c.affiliated_company_id == company_id,
        )
    )
    await db.commit()
    return result.rowcount > 0


# ── Inspection aggregate ─────────────────────────────────

async def create_inspection(
    db: AsyncSession, user_id: str, organization_id: str, affiliated_company_id: str,
    photos: list[dict],
) -> Inspection:
    """Insert an inspection in PhotosCaptured with its photos in one transaction."""
    inspection = Inspection(
        user_id=user_id,
        organization_id=organization_id,
        affiliated_company_id=affiliated_company_id,
        status=InspectionStatus.PHOTOS_CAPTURED.value,
    )
    db.add(inspection)
    await db.flush()
    for p in photos:
        db.add(Photo(inspection_id=inspection.id, **p))
    await db.commit()
    return await load_inspection_with_photos(db, inspection.id, refresh=True)


async def load_inspection_with_photos(
    db: AsyncSession, inspection_id: str, refresh: bool = False,
) -> Inspection | None:
    """Load the inspection with photos, their findings, the owner and the company.

    The result stays attached to ``db``; with ``refresh`` every loaded row is
    re-read from the database even if already in the identity map.
    """
    q = (
        select(Inspection)
        .where(Inspection.id == inspection_id)
        .options(
            selectinload(Inspection.photos).selectinload(Photo.findings),
            selectinload(Inspection.user),
            selectinload(Inspection.affiliated_company),
        )
    )
    if refresh:
        q = q.execution_options(populate_existing=True)
    result = await db.execute(q)
    return result.scalars().first()


async def save_inspection(db: AsyncSession, inspection: Inspection) -> Inspection:
    """Persist changes to an inspection without ever inserting a second row for its id.

    Persistent instances are committed as-is, detached ones are merged by
    primary key, and only brand-new (transient) instances are added.
    """
    state = sa_inspect(inspection)
    if state.transient:
        db.add(inspection)
    elif state.detached or state.session_id != db.sync_session.hash_key:
        inspection = await db.merge(inspection)
    await db.commit()
    return inspection


async def get_inspection_for_user(
    db: AsyncSession, inspection_id: str, user_id: str, organization_id: str,
) -> Inspection | None:
    inspection = await load_inspection_with_photos(db, inspection_id)
    if inspection is None:
        return None
    if inspection.user_id != user_id or inspection.organization_id != organization_id:
        return None
    return inspection


def _user_inspections(user_id: str, organization_id: str, affiliated_company_id: str | None):
    q = select(Inspection).where(Inspection.user_id == user_id, Inspection.organization_id == organization_id)
    if affiliated_company_id:
        q = q.where(Inspection.affiliated_company_id == affiliated_company_id)
    return q


async def list_inspections_for_user(
    db: AsyncSession, user_id: str, organization_id: str, affiliated_company_id: str | None = None,
    offset: int = 0, limit: int | None = None,
) -> list[Inspection]:
    """Newest first. ``offset``/``limit`` select one page."""
    q = (
        _user_inspections(user_id, organization_id, affiliated_company_id)
        .options(
            selectinload(Inspection.photos).selectinload(Photo.findings),
            selectinload(Inspection.affiliated_company),
        )
        .order_by(Inspection.started_at.desc(), Inspection.id.desc())
        .offset(offset)
    )
    if limit is not None:
        q = q.limit(limit)
    result = await db.execute(q)
    return list(result.scalars().all())


async def count_inspections_for_user(
    db: AsyncSession, user_id: str, organization_id: str, affiliated_company_id: str | None = None,
) -> int:
    q = _user_inspections(user_id, organization_id, affiliated_company_id)
    result = await db.execute(select(func.count()).select_from(q.subquery()))
    return result.scalar_one()


async def list_inspections_in_status(db: AsyncSession, status: InspectionStatus) -> list[Inspection]:
    result = await db.execute(select(Inspection).where(Inspection.status == status.value))
    return list(result.scalars().all())


async def get_analysis_counts(db: AsyncSession, inspection_id: str) -> tuple[int, int]:
    """Return (total_photos, analyzed_photos) straight from the database."""
    result = await db.execute(
        select(
            func.count(Photo.id),
            func.coalesce(func.sum(case((Photo.is_analyzed.is_(True), 1), else_=0)), 0),
        ).where(Photo.inspection_id == inspection_id)
    )
    total, analyzed = result.one()
    return int(total), int(analyzed)


async def get_photo(db: AsyncSession, inspection_id: str, photo_id: str) -> Photo | None:
    result = await db.execute(
        select(Photo).where(Photo.id == photo_id, Photo.inspection_id == inspection_id)
    )
    return result.scalars().first()


async def list_photo_findings(db: AsyncSession, photo_id: str) -> list[Finding]:
    result = await db.execute(
        select(Finding).where(Finding.photo_id == photo_id).order_by(Finding.created_at)
    )
    return list(result.scalars().all())


async def record_photo_findings(
    db: AsyncSession, photo: Photo, findings: list[FindingData],
) -> list[Finding] | None:
    """Insert one Finding row per analyzer finding and mark the photo analyzed, in one commit.

    The photo is claimed with a conditional UPDATE so two jobs racing on the
    same photo can never both record findings. Returns None when another job
    already analyzed it.
    """
    result = await db.execute(
        update(Photo)
        .where(Photo.id == photo.id, Photo.is_analyzed.is_(False))
        .values(is_analyzed=True)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.commit()
        return None

    rows = [
        Finding(
            photo_id=photo.id,
            description=f.description,
            risk_level=normalize_risk_level(f.risk_level),
            corrective_action=f.corrective_action or "",
            preventive_action=f.preventive_action or "",
        )
        for f in findings
    ]
    db.add_all(rows)
    await db.commit()
    # Keep the in-memory aggregate in step with what was just committed.
    set_committed_value(photo, "is_analyzed", True)
    if "findings" not in sa_inspect(photo).unloaded:
        set_committed_value(photo, "findings", list(photo.findings) + rows)
    return rows


async def list_organization_photos(db: AsyncSession, organization_id: str) -> list[Photo]:
    result = await db.execute(
        select(Photo)
        .join(Inspection, Inspection.id == Photo.inspection_id)
        .where(Inspection.organization_id == organization_id)
        .order_by(Photo.captured_at)
    )
    return list(result.scalars().all())
