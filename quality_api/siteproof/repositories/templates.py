from __future__ import annotations

from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select

from siteproof.db.models import ITPItem, ITPTemplate
from .base import BaseRepository


class TemplateRepository(BaseRepository):
    """Read access to ITP templates and their items."""

    async def get_template(self, template_id: UUID) -> Optional[ITPTemplate]:
        return await self.scalar_one_or_none(select(ITPTemplate).where(ITPTemplate.id == template_id))

    async def list_templates(
        self,
        *,
        organization_id: Optional[UUID],
        category: Optional[str],
        include_inactive: bool,
        limit: int,
        offset: int,
    ) -> List[ITPTemplate]:
        stmt = select(ITPTemplate)
        if organization_id:
            stmt = stmt.where(ITPTemplate.organization_id == organization_id)
        if category:
            stmt = stmt.where(ITPTemplate.category == category)
        if not include_inactive:
            stmt = stmt.where(ITPTemplate.is_active.is_(True))
        stmt = stmt.order_by(ITPTemplate.name.asc(), ITPTemplate.id).offset(offset).limit(limit)
        res = await self.scalars(stmt)
        return list(res)

    async def get_item(self, item_id: UUID) -> Optional[ITPItem]:
        return await self.scalar_one_or_none(select(ITPItem).where(ITPItem.id == item_id))

    async def max_order_index(self, template_id: UUID) -> int:
        stmt = select(func.coalesce(func.max(ITPItem.order_index), 0)).where(ITPItem.template_id == template_id)
        res = await self.execute(stmt)
        return int(res.scalar_one())

    async def list_items(self, template_ids: Sequence[UUID]) -> List[ITPItem]:
        """Items of the given templates, grouped in template order then by order_index."""
        if not template_ids:
            return []
        stmt = (
            select(ITPItem)
            .where(ITPItem.template_id.in_(template_ids))
            .order_by(ITPItem.order_index, ITPItem.item_number, ITPItem.id)
        )
        res = await self.scalars(stmt)
        rank = {tid: pos for pos, tid in enumerate(template_ids)}
        return sorted(res, key=lambda item: rank[item.template_id])
