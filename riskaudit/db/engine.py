"""Async SQLAlchemy engine and session factory."""

from __future__ import annotations

from pathlib import Path
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from riskaudit.config import get_settings

_settings = get_settings()

_SQLITE_PREFIX = "sqlite+aiosqlite:///"

if _settings.database_url.startswith(_SQLITE_PREFIX):
    _db_path = _settings.database_url.replace(_SQLITE_PREFIX, "")
    if _db_path and _db_path != ":memory:":
        Path(_db_path).parent.mkdir(parents=True, exist_ok=True)

engine = create_async_engine(_settings.database_url, echo=False)
# expire_on_commit=False keeps the loaded inspection aggregate usable (and persistent)
# across the orchestrator's per-photo commits.
async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


async def get_db():
    """FastAPI dependency that yields an async DB session."""
    async with async_session_factory() as session:
        yield session


async def create_all(bind: AsyncEngine = engine):
    """Create all tables (idempotent)."""
    from riskaudit.models import Base

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
