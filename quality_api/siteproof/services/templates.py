from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence
from uuid import UUID

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from siteproof.core.errors import EngineError, NotFound, PersistenceFailure
from siteproof.db.models import ITPItem, ITPTemplate
from siteproof.repositories.templates import TemplateRepository
from siteproof.schemas.itp import (
    ImportRowError,
    ITPItemCreate,
    ITPItemImportResult,
    ITPItemRead,
    ITPTemplateCreate,
    ITPTemplateSummary,
    TemplateImportResult,
)
from siteproof.services.base import BaseService

logger = logging.getLogger(__name__)


def _row_error(exc: SchemaValidationError) -> str:
    """Flatten pydantic errors into one line, e.g. ``name: Field required``."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "row"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def _build_item(item: ITPItemCreate, default_order: int) -> ITPItem:
    return ITPItem(
        item_number=item.item_number,
        description=item.description,
        specification_reference=item.specification_reference,
        inspection_method=item.inspection_method,
        acceptance_criteria=item.acceptance_criteria,
        is_mandatory=item.is_mandatory,
        order_index=item.order_index if item.order_index is not None else default_order,
    )


class TemplateService(BaseService):
    """Template catalog. The inspection engine only reads templates; this service creates them."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.templates = TemplateRepository(session)

    # PUBLIC_INTERFACE
    async def create_template(self, payload: ITPTemplateCreate, created_by: Optional[UUID] = None) -> ITPTemplate:
        """
        Create a template with its items.

        Items without an explicit order_index are ordered by their position in the payload.
        """
        items = [_build_item(item, position) for position, item in enumerate(payload.items, start=1)]
        template = ITPTemplate(
            organization_id=payload.organization_id,
            name=payload.name,
            description=payload.description,
            category=payload.category,
            version=payload.version,
            is_active=payload.is_active,
            created_by=created_by,
            items=sorted(items, key=lambda i: i.order_index),
        )
        try:
            await self.templates.add(template)
            await self.templates.flush()
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise PersistenceFailure("Failed to create ITP template", exc) from exc
        logger.info("Created ITP template %s with %d items", template.id, len(items))
        return template

    # PUBLIC_INTERFACE
    async def import_templates(
        self, rows: Sequence[Any], created_by: Optional[UUID] = None
    ) -> TemplateImportResult:
        """
        Create one template per row, collecting per-row outcomes.

        Parameters:
            rows: create-template payloads (dicts); each row may carry its own items
            created_by: user recorded on every created template
        Returns:
            TemplateImportResult; a row that fails validation or persistence is listed
            under ``errors`` and never undoes the rows imported before it.
        """
        result = TemplateImportResult()
        for row, raw in enumerate(rows, start=1):
            try:
                payload = ITPTemplateCreate.model_validate(raw)
            except SchemaValidationError as exc:
                result.errors.append(ImportRowError(row=row, error=_row_error(exc)))
                continue
            try:
                template = await self.create_template(payload, created_by=created_by)
            except EngineError as exc:
                result.errors.append(ImportRowError(row=row, error=exc.message))
                continue
            result.templates.append(ITPTemplateSummary.model_validate(template))

        result.imported = len(result.templates)
        log = logger.warning if result.errors else logger.info
        log("Imported %d of %d ITP templates", result.imported, len(rows))
        return result

    # PUBLIC_INTERFACE
    async def import_items(self, template_id: UUID, rows: Sequence[Any]) -> ITPItemImportResult:
        """
        Append items to an existing template, collecting per-row outcomes.

        Rows without an order_index are placed after the template's current last item,
        in row order.

        Raises:
            NotFound: the template does not exist (no row is attempted)
        """
        await self.get_template(template_id)
        next_order = await self.templates.max_order_index(template_id)

        result = ITPItemImportResult()
        for row, raw in enumerate(rows, start=1):
            try:
                payload = ITPItemCreate.model_validate(raw)
            except SchemaValidationError as exc:
                result.errors.append(ImportRowError(row=row, error=_row_error(exc)))
                continue

            item = _build_item(payload, next_order + 1)
            item.template_id = template_id
            try:
                await self.templates.add(item)
                await self.templates.flush()
                await self.session.commit()
            except SQLAlchemyError:
                await self.session.rollback()
                logger.exception("Importing row %d into ITP template %s failed", row, template_id)
                result.errors.append(ImportRowError(row=row, error="Failed to store ITP item"))
                continue
            next_order = max(next_order, item.order_index)
            result.items.append(ITPItemRead.model_validate(item))

        result.imported = len(result.items)
        log = logger.warning if result.errors else logger.info
        log("Imported %d of %d items into ITP template %s", result.imported, len(rows), template_id)
        return result

    # PUBLIC_INTERFACE
    async def get_template(self, template_id: UUID) -> ITPTemplate:
        """Return a template with its ordered items, raising NotFound when absent."""
        template = await self.templates.get_template(template_id)
        if template is None:
            raise NotFound(f"ITP template {template_id} not found")
        return template

    # PUBLIC_INTERFACE
    async def list_templates(
        self,
        *,
        organization_id: Optional[UUID] = None,
        category: Optional[str] = None,
        include_inactive: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> List[ITPTemplate]:
        return await self.templates.list_templates(
            organization_id=organization_id,
            category=category,
            include_inactive=include_inactive,
            limit=limit,
            offset=offset,
        )
