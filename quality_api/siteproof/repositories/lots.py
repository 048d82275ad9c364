from __future__ import annotations

from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import delete, func, select

from siteproof.db.models import ConformanceRecord, Lot, LotITPAssignment, Project
from .base import BaseRepository


class ProjectRepository(BaseRepository):
    """Repository for projects."""

    async def list_projects(self, *, organization_id: Optional[UUID], limit: int, offset: int) -> List[Project]:
        stmt = select(Project)
        if organization_id:
            stmt = stmt.where(Project.organization_id == organization_id)
        stmt = stmt.order_by(Project.created_at.desc()).offset(offset).limit(limit)
        res = await self.scalars(stmt)
        return list(res)

    async def get_project(self, project_id: UUID) -> Optional[Project]:
        return await self.scalar_one_or_none(select(Project).where(Project.id == project_id))

    async def count_by_status(self, project_id: Optional[UUID] = None) -> Dict[str, int]:
        stmt = select(Project.status, func.count(Project.id)).group_by(Project.status)
        if project_id:
            stmt = stmt.where(Project.id == project_id)
        res = await self.execute(stmt)
        return {status: int(count) for status, count in res.all()}


class LotRepository(BaseRepository):
    """Repository for lots."""

    async def get_lot(self, lot_id: UUID) -> Optional[Lot]:
        return await self.scalar_one_or_none(select(Lot).where(Lot.id == lot_id))

    async def get_by_number(self, project_id: UUID, lot_number: str) -> Optional[Lot]:
        stmt = select(Lot).where(Lot.project_id == project_id, Lot.lot_number == lot_number)
        return await self.scalar_one_or_none(stmt)

    async def list_lots(
        self, *, project_id: UUID, status: Optional[str], limit: int, offset: int
    ) -> List[Lot]:
        stmt = select(Lot).where(Lot.project_id == project_id)
        if status:
            stmt = stmt.where(Lot.status == status)
        stmt = stmt.order_by(Lot.lot_number.asc()).offset(offset).limit(limit)
        res = await self.scalars(stmt)
        return list(res)

    async def count_by_status(self, project_id: Optional[UUID] = None) -> Dict[str, int]:
        stmt = select(Lot.status, func.count(Lot.id)).group_by(Lot.status)
        if project_id:
            stmt = stmt.where(Lot.project_id == project_id)
        res = await self.execute(stmt)
        return {status: int(count) for status, count in res.all()}

    async def delete_lot(self, lot: Lot) -> None:
        """
        Delete a lot together with its conformance records and assignments.

        Children are removed explicitly so the cascade does not depend on the backend
        enforcing ON DELETE CASCADE.
        """
        await self.execute(delete(ConformanceRecord).where(ConformanceRecord.lot_id == lot.id))
        await self.execute(delete(LotITPAssignment).where(LotITPAssignment.lot_id == lot.id))
        await self.delete(lot)
