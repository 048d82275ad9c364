from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select

from siteproof.db.models import LotITPAssignment
from .base import BaseRepository


class AssignmentRepository(BaseRepository):
    """Repository for lot/template assignments."""

    async def get_active(self, lot_id: UUID, template_id: UUID) -> Optional[LotITPAssignment]:
        stmt = select(LotITPAssignment).where(
            LotITPAssignment.lot_id == lot_id,
            LotITPAssignment.template_id == template_id,
            LotITPAssignment.is_active.is_(True),
        )
        return await self.scalar_one_or_none(stmt)

    async def get_active_by_id(self, lot_id: UUID, assignment_id: UUID) -> Optional[LotITPAssignment]:
        stmt = select(LotITPAssignment).where(
            LotITPAssignment.id == assignment_id,
            LotITPAssignment.lot_id == lot_id,
            LotITPAssignment.is_active.is_(True),
        )
        return await self.scalar_one_or_none(stmt)

    async def list_active(self, lot_id: UUID) -> List[LotITPAssignment]:
        """Active assignments of a lot, oldest first; ties broken by id."""
        stmt = (
            select(LotITPAssignment)
            .where(LotITPAssignment.lot_id == lot_id, LotITPAssignment.is_active.is_(True))
            .order_by(LotITPAssignment.assigned_at.asc(), LotITPAssignment.id.asc())
        )
        res = await self.scalars(stmt)
        return list(res.unique())

    async def create(self, lot_id: UUID, template_id: UUID, assigned_by: Optional[UUID]) -> LotITPAssignment:
        assignment = LotITPAssignment(lot_id=lot_id, template_id=template_id, assigned_by=assigned_by)
        await self.add(assignment)
        await self.flush()
        return assignment

    async def deactivate(self, assignment: LotITPAssignment, removed_at: datetime) -> None:
        assignment.is_active = False
        assignment.removed_at = removed_at
        await self.flush()
