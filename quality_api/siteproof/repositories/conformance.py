from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, delete, func, select
from sqlalchemy.orm import aliased

from siteproof.db.models import ConformanceRecord, ITPItem, Lot, LotITPAssignment
from .base import BaseRepository


def _in_display_order(stmt):
    """
    Order records by template in assignment order (assigned_at, id), then by item
    display order (order_index, item_number, id).
    """
    assignment = aliased(LotITPAssignment)
    return (
        stmt.join(ITPItem, ITPItem.id == ConformanceRecord.item_id)
        .outerjoin(
            assignment,
            and_(
                assignment.lot_id == ConformanceRecord.lot_id,
                assignment.template_id == ConformanceRecord.template_id,
                assignment.is_active.is_(True),
            ),
        )
        .order_by(
            assignment.assigned_at.asc().nulls_last(),
            assignment.id,
            ConformanceRecord.template_id,
            ITPItem.order_index,
            ITPItem.item_number,
            ITPItem.id,
        )
    )


class ConformanceRepository(BaseRepository):
    """Repository for conformance records."""

    async def find_by_lot_and_item(self, lot_id: UUID, item_id: UUID) -> Optional[ConformanceRecord]:
        stmt = select(ConformanceRecord).where(
            ConformanceRecord.lot_id == lot_id, ConformanceRecord.item_id == item_id
        )
        return await self.scalar_one_or_none(stmt)

    async def find_by_lot(
        self, lot_id: UUID, template_id: Optional[UUID] = None, *, non_conformance_only: bool = False
    ) -> List[ConformanceRecord]:
        """Records of a lot, grouped by template in assignment order."""
        stmt = select(ConformanceRecord).where(ConformanceRecord.lot_id == lot_id)
        if template_id:
            stmt = stmt.where(ConformanceRecord.template_id == template_id)
        if non_conformance_only:
            stmt = stmt.where(ConformanceRecord.is_non_conformance.is_(True))
        res = await self.scalars(_in_display_order(stmt))
        return list(res)

    async def find_non_conformances_for_project(self, project_id: UUID) -> List[ConformanceRecord]:
        """Non-conformance records of every lot in a project, by lot number."""
        stmt = (
            select(ConformanceRecord)
            .join(Lot, Lot.id == ConformanceRecord.lot_id)
            .where(Lot.project_id == project_id, ConformanceRecord.is_non_conformance.is_(True))
            .order_by(Lot.lot_number, Lot.id)
        )
        res = await self.scalars(_in_display_order(stmt))
        return list(res)

    async def count_non_conformances(self, project_id: Optional[UUID] = None) -> int:
        stmt = select(func.count(ConformanceRecord.id)).where(ConformanceRecord.is_non_conformance.is_(True))
        if project_id:
            stmt = stmt.join(Lot, Lot.id == ConformanceRecord.lot_id).where(Lot.project_id == project_id)
        res = await self.execute(stmt)
        return int(res.scalar_one())

    async def delete_for_template(self, lot_id: UUID, template_id: UUID) -> int:
        """Delete every record of ``template_id`` on ``lot_id``; returns the number removed."""
        stmt = delete(ConformanceRecord).where(
            ConformanceRecord.lot_id == lot_id, ConformanceRecord.template_id == template_id
        )
        result = await self.execute(stmt)
        return result.rowcount or 0
