from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from siteproof.core.errors import Conflict, NotFound, PersistenceFailure, ValidationError
from siteproof.db.base import utcnow
from siteproof.db.models import ConformanceRecord, ITPItem
from siteproof.repositories.assignments import AssignmentRepository
from siteproof.repositories.conformance import ConformanceRepository
from siteproof.repositories.lots import LotRepository, ProjectRepository
from siteproof.repositories.templates import TemplateRepository
from siteproof.schemas.conformance import ConformanceFields
from siteproof.services.base import BaseService

logger = logging.getLogger(__name__)


class ConformanceRecordStore(BaseService):
    """
    Owns create/update of the single conformance record per (lot, item).

    Saving is always an upsert: supplied fields are merged over the stored record and
    unsupplied fields are preserved. ``is_non_conformance`` is recomputed on every
    write. Each successful write commits and bumps ``version``.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.records = ConformanceRepository(session)
        self.lots = LotRepository(session)
        self.projects = ProjectRepository(session)
        self.templates = TemplateRepository(session)
        self.assignments = AssignmentRepository(session)

    # PUBLIC_INTERFACE
    async def upsert(
        self,
        lot_id: Optional[UUID],
        item_id: Optional[UUID],
        fields: Optional[ConformanceFields] = None,
        inspector_id: Optional[UUID] = None,
    ) -> ConformanceRecord:
        """
        Create or update the record for (lot_id, item_id).

        Parameters:
            lot_id: lot being inspected
            item_id: ITP item inspected
            fields: partial field set; only supplied fields are written
            inspector_id: recorded as the inspector of this write when given
        Returns:
            The stored ConformanceRecord
        Raises:
            ValidationError: lot_id or item_id missing
            NotFound: the item does not belong to a template actively assigned to the lot
            Conflict: ``fields.expected_version`` was given and does not match
            PersistenceFailure: the database rejected the write
        """
        if lot_id is None or item_id is None:
            raise ValidationError("lot_id and item_id are required")
        fields = fields or ConformanceFields()

        try:
            item = await self._resolve_item(lot_id, item_id)
            record = await self.records.find_by_lot_and_item(lot_id, item_id)
            if record is None:
                record = await self._insert(lot_id, item, fields, inspector_id)
            else:
                self._apply(record, fields, inspector_id)
                await self.records.flush()
            await self.session.commit()
        except IntegrityError:
            # Another writer created the record between our lookup and insert.
            await self.session.rollback()
            record = await self._merge_after_race(lot_id, item_id, fields, inspector_id)
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("Saving conformance for lot %s item %s failed", lot_id, item_id)
            raise PersistenceFailure("Failed to save conformance record", exc) from exc

        logger.info(
            "Saved conformance lot=%s item=%s result=%s version=%s",
            lot_id,
            item_id,
            record.result_pass_fail,
            record.version,
        )
        return record

    async def _resolve_item(self, lot_id: UUID, item_id: UUID) -> ITPItem:
        if await self.lots.get_lot(lot_id) is None:
            raise NotFound(f"Lot {lot_id} not found")
        item = await self.templates.get_item(item_id)
        if item is None:
            raise NotFound(f"ITP item {item_id} not found")
        if await self.assignments.get_active(lot_id, item.template_id) is None:
            raise NotFound(
                f"ITP item {item_id} does not belong to a template assigned to lot {lot_id}",
                details={"template_id": str(item.template_id)},
            )
        return item

    async def _insert(
        self, lot_id: UUID, item: ITPItem, fields: ConformanceFields, inspector_id: Optional[UUID]
    ) -> ConformanceRecord:
        if fields.expected_version is not None:
            raise Conflict(
                "No stored record to compare the expected version against",
                details={"expected_version": fields.expected_version, "current_version": None},
            )
        record = ConformanceRecord(
            lot_id=lot_id,
            item_id=item.id,
            template_id=item.template_id,
            version=0,
        )
        self._apply(record, fields, inspector_id)
        await self.records.add(record)
        await self.records.flush()
        return record

    def _apply(self, record: ConformanceRecord, fields: ConformanceFields, inspector_id: Optional[UUID]) -> None:
        if fields.expected_version is not None and fields.expected_version != record.version:
            raise Conflict(
                "Conformance record was modified by another save",
                details={"expected_version": fields.expected_version, "current_version": record.version},
            )
        for name, value in fields.changes().items():
            setattr(record, name, value)
        record.is_non_conformance = record.result_pass_fail == "FAIL"
        record.inspection_date = utcnow()
        if inspector_id is not None:
            record.inspector_id = inspector_id
        record.version = (record.version or 0) + 1

    async def _merge_after_race(
        self, lot_id: UUID, item_id: UUID, fields: ConformanceFields, inspector_id: Optional[UUID]
    ) -> ConformanceRecord:
        try:
            record = await self.records.find_by_lot_and_item(lot_id, item_id)
            if record is None:
                raise PersistenceFailure("Conformance record could not be created")
            self._apply(record, fields, inspector_id)
            await self.records.flush()
            await self.session.commit()
            return record
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise PersistenceFailure("Failed to save conformance record", exc) from exc

    # PUBLIC_INTERFACE
    async def find_by_lot_and_item(self, lot_id: UUID, item_id: UUID) -> Optional[ConformanceRecord]:
        """Return the record for (lot_id, item_id) or None."""
        return await self.records.find_by_lot_and_item(lot_id, item_id)

    # PUBLIC_INTERFACE
    async def find_by_lot(self, lot_id: UUID, template_id: Optional[UUID] = None) -> List[ConformanceRecord]:
        """Return the records of a lot, optionally for one template, in item display order."""
        return await self.records.find_by_lot(lot_id, template_id)

    # PUBLIC_INTERFACE
    async def list_non_conformances(self, lot_id: UUID) -> List[ConformanceRecord]:
        """Return the records of a lot flagged as non-conformance."""
        if await self.lots.get_lot(lot_id) is None:
            raise NotFound(f"Lot {lot_id} not found")
        return await self.records.find_by_lot(lot_id, non_conformance_only=True)

    # PUBLIC_INTERFACE
    async def list_project_non_conformances(self, project_id: UUID) -> List[ConformanceRecord]:
        """Non-conformance records across every lot of a project, ordered by lot number."""
        if await self.projects.get_project(project_id) is None:
            raise NotFound(f"Project {project_id} not found")
        return await self.records.find_non_conformances_for_project(project_id)

    # PUBLIC_INTERFACE
    async def approve(self, lot_id: UUID, item_id: UUID, approver_id: Optional[UUID]) -> ConformanceRecord:
        """
        Record approval of an inspected item.

        Raises:
            NotFound: no record exists for (lot_id, item_id)
            ValidationError: the record has no verdict yet
        """
        record = await self.records.find_by_lot_and_item(lot_id, item_id)
        if record is None:
            raise NotFound(f"No conformance record for item {item_id} on lot {lot_id}")
        if record.result_pass_fail is None:
            raise ValidationError("Cannot approve an item that has not been inspected")
        record.approved_by = approver_id
        record.approval_date = utcnow()
        try:
            await self.records.flush()
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise PersistenceFailure("Failed to approve conformance record", exc) from exc
        return record
