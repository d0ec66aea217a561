"""Central router that includes all sub-routers."""

from fastapi import APIRouter

from riskaudit.api.inspections import router as inspections_router
from riskaudit.api.files import router as files_router
from riskaudit.api.organization import router as organization_router
from riskaudit.api.affiliated_companies import router as companies_router

api_router = APIRouter()
api_router.include_router(inspections_router)
api_router.include_router(files_router)
api_router.include_router(organization_router)
api_router.include_router(companies_router)
