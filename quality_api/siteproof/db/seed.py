"""
Database seeding utilities for minimal reference data.

Seeds:
- Sample project (PRJ-001) with one lot (LOT-001)
- "Concrete Foundation ITP" template (numeric, pass/fail and photo items)
- "Asphalt Layer Quality Check" template

Usage:
  python -m siteproof.db.run_migrations upgrade head
  python -m siteproof.db.seed
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from siteproof.db.models import ITPItem, ITPTemplate, Lot, Project
from siteproof.db.session import get_session_maker

logger = logging.getLogger(__name__)

TEMPLATES: Dict[str, dict] = {
    "Concrete Foundation ITP": {
        "description": "Inspection Test Plan for concrete foundation work",
        "category": "structural",
        "items": [
            ("1.1", "Excavation depth and dimensions", "numeric", "As per approved drawings ±25mm"),
            ("1.2", "Base preparation and compaction", "pass_fail", "Uniform, well compacted, no soft spots"),
            ("1.3", "Photographic evidence", "photo_required", "Before, during, and after photos required"),
        ],
    },
    "Asphalt Layer Quality Check": {
        "description": "Inspection of asphalt layer thickness and compaction",
        "category": "roadwork",
        "items": [
            ("2.1", "Layer thickness", "numeric", "Design thickness -0/+10mm"),
            ("2.2", "Surface temperature at laying", "numeric", "Not below 140°C"),
            ("2.3", "Joint finish and texture", "pass_fail", "No segregation, joints flush"),
            ("2.4", "Density test certificate", "text", "Certificate reference recorded"),
        ],
    },
}


# PUBLIC_INTERFACE
async def seed_all() -> None:
    """
    Seed the database with a sample project, lot and ITP templates.

    Existing rows (matched by project number, lot number or template name) are reused.
    """
    async with get_session_maker()() as session:
        project = await _ensure_project(session, name="Sample Project", project_number="PRJ-001")
        await _ensure_lot(session, project, lot_number="LOT-001")
        for name, definition in TEMPLATES.items():
            await _ensure_template(session, name, definition)
        await session.commit()
    logger.info("Seed data ready")


async def _ensure_project(session: AsyncSession, name: str, project_number: str) -> Project:
    res = await session.execute(select(Project).where(Project.project_number == project_number))
    project = res.scalar_one_or_none()
    if project:
        return project
    project = Project(
        name=name,
        project_number=project_number,
        description="Sample project for trying out ITP inspections",
        location="Test Location",
    )
    session.add(project)
    await session.flush()
    return project


async def _ensure_lot(session: AsyncSession, project: Project, lot_number: str) -> Lot:
    res = await session.execute(
        select(Lot).where(Lot.project_id == project.id, Lot.lot_number == lot_number)
    )
    lot = res.scalar_one_or_none()
    if lot:
        return lot
    lot = Lot(project_id=project.id, lot_number=lot_number, description="Footing pour, grid A1-A4")
    session.add(lot)
    await session.flush()
    return lot


async def _ensure_template(session: AsyncSession, name: str, definition: dict) -> ITPTemplate:
    res = await session.execute(select(ITPTemplate).where(ITPTemplate.name == name))
    template = res.scalar_one_or_none()
    if template:
        return template
    items: List[ITPItem] = [
        ITPItem(
            item_number=number,
            description=description,
            inspection_method=method,
            acceptance_criteria=criteria,
            order_index=index,
        )
        for index, (number, description, method, criteria) in enumerate(definition["items"], start=1)
    ]
    template = ITPTemplate(
        name=name,
        description=definition["description"],
        category=definition["category"],
        items=items,
    )
    session.add(template)
    await session.flush()
    return template


if __name__ == "__main__":
    asyncio.run(seed_all())
