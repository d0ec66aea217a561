"""FastAPI dependency providers for auth, services and role enforcement."""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from riskaudit.config import Settings, get_settings
from riskaudit.db.engine import get_db
from riskaudit.jobs.queue import JobQueue
from riskaudit.services.auth import AuthContext, get_current_user
from riskaudit.services.image_store import LocalImageStore


@lru_cache
def get_settings_dep() -> Settings:
    return get_settings()


async def require_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """Require a known, active caller. Returns AuthContext."""
    return await get_current_user(request, db)


def require_role(*allowed_roles: str):
    """Factory: returns a dependency that enforces role membership."""
    async def _check(auth: AuthContext = Depends(require_user)) -> AuthContext:
        if auth.role not in allowed_roles:
            raise HTTPException(403, "Insufficient permissions")
        return auth
    return _check


def get_image_store(request: Request) -> LocalImageStore:
    return request.app.state.image_store


def get_job_queue(request: Request) -> JobQueue:
    return request.app.state.job_queue
