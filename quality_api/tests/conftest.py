"""
Shared test fixtures for the SiteProof quality API.

Each test gets its own in-memory SQLite database with the full schema, a session
factory bound to it, and seed fixtures for a project, lot and two ITP templates.
"""

from dataclasses import dataclass
from typing import List

import httpx
import pytest

from siteproof.api.main import app
from siteproof.db.config import Settings
from siteproof.db.models import ITPItem
from siteproof.db.session import build_engine, build_session_maker, create_schema, get_async_session
from siteproof.schemas.itp import ITPItemCreate, ITPTemplateCreate
from siteproof.schemas.projects import LotCreate, ProjectCreate
from siteproof.services.assignments import ITPAssignmentManager
from siteproof.services.lots import LotService
from siteproof.services.templates import TemplateService


@dataclass
class SeededTemplate:
    id: object
    items: List[ITPItem]


@pytest.fixture
async def engine():
    """Provide an AsyncEngine on a fresh in-memory database with all tables created."""
    settings = Settings(DATABASE_URL="sqlite+aiosqlite://")
    eng = build_engine(settings)
    await create_schema(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as s:
        yield s


@pytest.fixture
async def lot(session_maker):
    """A project with one lot. Returns the lot."""
    async with session_maker() as s:
        service = LotService(s)
        project = await service.create_project(ProjectCreate(name="Test Project", project_number="PRJ-T1"))
        return await service.create_lot(project.id, LotCreate(lot_number="LOT-001", description="Footings"))


async def _create_template(session_maker, name, items) -> SeededTemplate:
    async with session_maker() as s:
        template = await TemplateService(s).create_template(
            ITPTemplateCreate(
                name=name,
                items=[ITPItemCreate(item_number=n, description=d, inspection_method=m) for n, d, m in items],
            )
        )
        return SeededTemplate(id=template.id, items=list(template.items))


@pytest.fixture
async def template_t1(session_maker) -> SeededTemplate:
    """Template with two items: numeric then pass/fail."""
    return await _create_template(
        session_maker,
        "Concrete Foundation ITP",
        [("1.1", "Slab thickness", "numeric"), ("1.2", "Base compaction", "pass_fail")],
    )


@pytest.fixture
async def template_t2(session_maker) -> SeededTemplate:
    """Template with three pass/fail items."""
    return await _create_template(
        session_maker,
        "Asphalt Layer Quality Check",
        [
            ("2.1", "Layer thickness", "pass_fail"),
            ("2.2", "Surface temperature", "pass_fail"),
            ("2.3", "Joint finish", "pass_fail"),
        ],
    )


@pytest.fixture
async def assign(session_maker):
    """Return a helper that assigns templates to a lot in its own session."""

    async def _assign(lot_id, *template_ids):
        async with session_maker() as s:
            batch = await ITPAssignmentManager(s).assign_many(lot_id, template_ids)
            assert not batch.failed
            return batch.assigned

    return _assign


@pytest.fixture
async def client(session_maker):
    """httpx AsyncClient talking to the app in-process, using the test database."""

    async def _override_session():
        async with session_maker() as s:
            yield s

    app.dependency_overrides[get_async_session] = _override_session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
    app.dependency_overrides.clear()
