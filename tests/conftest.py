"""Shared fixtures: file-backed temp database, image store and a seeded tenant."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from riskaudit.db import crud
from riskaudit.db.engine import make_session_factory
from riskaudit.models import Base
from riskaudit.services.image_store import LocalImageStore

from tests.helpers import make_jpeg


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def jpeg_bytes():
    return make_jpeg()


@pytest.fixture
def image_store(tmp_path):
    return LocalImageStore(tmp_path / "images")


@pytest_asyncio.fixture
async def tenant(db):
    """An organization with an admin, an assigned inspector and an active company."""
    org = await crud.create_organization(db, "Acme Safety")
    admin = await crud.create_user(db, org.id, "admin@acme.test", "Ada", "Admin", role="admin")
    inspector = await crud.create_user(db, org.id, "ines@acme.test", "Ines", "Pector")
    company = await crud.create_affiliated_company(db, org.id, "Northwind Foundry", tax_id="NW-001")
    await crud.assign_inspector(db, inspector.id, company.id)
    return SimpleNamespace(org=org, admin=admin, inspector=inspector, company=company)


@pytest.fixture
def make_inspection(db, image_store, tenant):
    """Factory: insert an inspection owned by the inspector with ``n`` stored photos."""
    async def _make(n: int = 3):
        photos = []
        for i in range(n):
            ref = await image_store.save_image(
                make_jpeg(color=(10 * i, 100, 150)), f"photo_{i}.jpg", tenant.org.id,
            )
            photos.append({"image_ref": ref, "description": f"Photo {i}"})
        inspection = await crud.create_inspection(
            db, tenant.inspector.id, tenant.org.id, tenant.company.id, photos,
        )
        return inspection
    return _make
