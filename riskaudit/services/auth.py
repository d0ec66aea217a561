"""Caller identity resolved from the upstream gateway's X-User-Id header."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from riskaudit.db import crud

USER_ID_HEADER = "X-User-Id"


@dataclass
class AuthContext:
    user_id: str
    organization_id: str
    role: str  # 'super_admin' | 'admin' | 'inspector'
    email: str
    display_name: str


async def get_current_user(request: Request, db: AsyncSession) -> AuthContext:
    """Load the active user named by the request header. Raises 401 otherwise."""
    user_id = request.headers.get(USER_ID_HEADER, "").strip()
    if not user_id:
        raise HTTPException(401, "Not authenticated")
    user = await crud.get_user(db, user_id)
    if not user or not user.is_active:
        raise HTTPException(401, "Unknown or inactive user")
    return AuthContext(
        user_id=user.id,
        organization_id=user.organization_id,
        role=user.role,
        email=user.email,
        display_name=user.full_name,
    )
