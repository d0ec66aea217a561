from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from riskaudit.db import crud
from riskaudit.db.engine import get_db
from riskaudit.dependencies import require_user, require_role
from riskaudit.schemas import AffiliatedCompanyCreate, AffiliatedCompanyRead, AffiliatedCompanyUpdate, InspectorRead
from riskaudit.services.auth import AuthContext

router = APIRouter(prefix="/api/v1/affiliated-companies", tags=["affiliated-companies"])


async def _get_org_company(db: AsyncSession, company_id: str, organization_id: str):
    company = await crud.get_affiliated_company(db, company_id)
    if not company or company.organization_id != organization_id:
        raise HTTPException(404, "Affiliated company not found")
    return company


@router.post("", response_model=AffiliatedCompanyRead, status_code=201)
async def create_company(
    body: AffiliatedCompanyCreate,
    auth: AuthContext = Depends(require_role("admin", "super_admin")),
    db: AsyncSession = Depends(get_db),
):
    return await crud.create_affiliated_company(
        db, auth.organization_id, created_by=auth.user_id, **body.model_dump(),
    )


@router.get("", response_model=list[AffiliatedCompanyRead])
async def list_companies(
    include_inactive: bool = Query(default=False),
    auth: AuthContext = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    return await crud.list_affiliated_companies(db, auth.organization_id, include_inactive)


@router.get("/my-companies", response_model=list[AffiliatedCompanyRead])
async def my_companies(
    auth: AuthContext = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Active companies the caller is assigned to inspect."""
    return await crud.list_companies_for_inspector(db, auth.user_id, auth.organization_id)


@router.get("/{company_id}", response_model=AffiliatedCompanyRead)
async def get_company(
    company_id: str,
    auth: AuthContext = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    return await _get_org_company(db, company_id, auth.organization_id)


@router.put("/{company_id}", response_model=AffiliatedCompanyRead)
async def update_company(
    company_id: str,
    body: AffiliatedCompanyUpdate,
    auth: AuthContext = Depends(require_role("admin", "super_admin")),
    db: AsyncSession = Depends(get_db),
):
    company = await _get_org_company(db, company_id, auth.organization_id)
    return await crud.update_affiliated_company(db, company, **body.model_dump(exclude_unset=True))


@router.delete("/{company_id}", response_model=AffiliatedCompanyRead)
async def deactivate_company(
    company_id: str,
    auth: AuthContext = Depends(require_role("admin", "super_admin")),
    db: AsyncSession = Depends(get_db),
):
    """Soft-delete: the company stays for historical inspections but takes no new ones."""
    company = await _get_org_company(db, company_id, auth.organization_id)
    return await crud.deactivate_affiliated_company(db, company)


@router.post("/{company_id}/inspectors/{user_id}", status_code=201)
async def assign_inspector(
    company_id: str,
    user_id: str,
    auth: AuthContext = Depends(require_role("admin", "super_admin")),
    db: AsyncSession = Depends(get_db),
):
    company = await _get_org_company(db, company_id, auth.organization_id)
    user = await crud.get_user(db, user_id)
    if not user or user.organization_id != auth.organization_id:
        raise HTTPException(404, "User not found")
    created = await crud.assign_inspector(db, user.id, company.id)
    return {"affiliated_company_id": company.id, "user_id": user.id, "created": created}


@router.get("/{company_id}/inspectors", response_model=list[InspectorRead])
async def list_inspectors(
    company_id: str,
    auth: AuthContext = Depends(require_role("admin", "super_admin")),
    db: AsyncSession = Depends(get_db),
):
    company = await _get_org_company(db, company_id, auth.organization_id)
    return await crud.list_company_inspectors(db, company.id)


@router.delete("/{company_id}/inspectors/{user_id}", status_code=204)
async def unassign_inspector(
    company_id: str,
    user_id: str,
    auth: AuthContext = Depends(require_role("admin", "super_admin")),
    db: AsyncSession = Depends(get_db),
):
    company = await _get_org_company(db, company_id, auth.organization_id)
    if not await crud.unassign_inspector(db, user_id, company.id):
        raise HTTPException(404, "Inspector is not assigned to this company")
    return Response(status_code=204)
