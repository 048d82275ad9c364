from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from siteproof.core.errors import Conflict, EngineError, NotFound, PersistenceFailure
from siteproof.db.base import utcnow
from siteproof.db.models import LotITPAssignment
from siteproof.repositories.assignments import AssignmentRepository
from siteproof.repositories.conformance import ConformanceRepository
from siteproof.repositories.lots import LotRepository
from siteproof.repositories.templates import TemplateRepository
from siteproof.schemas.itp import AssignmentBatchRead, AssignmentFailure, AssignmentRead, AssignmentRemovalRead
from siteproof.services.base import BaseService

logger = logging.getLogger(__name__)


class ITPAssignmentManager(BaseService):
    """
    Owns the lot <-> template relation.

    At most one active assignment exists per (lot, template); the partial unique
    index backs this up when two writers race. Removing an assignment deletes that
    template's conformance records on the lot in the same transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.assignments = AssignmentRepository(session)
        self.records = ConformanceRepository(session)
        self.lots = LotRepository(session)
        self.templates = TemplateRepository(session)

    # PUBLIC_INTERFACE
    async def assign(
        self, lot_id: UUID, template_id: UUID, assigned_by: Optional[UUID] = None
    ) -> Tuple[LotITPAssignment, bool]:
        """
        Assign a template to a lot.

        Parameters:
            lot_id: target lot
            template_id: template to activate on the lot
            assigned_by: user recorded on a newly created assignment
        Returns:
            (assignment, created); created is False when the pair was already active
        Raises:
            NotFound: unknown lot, unknown template or inactive template
            Conflict: a concurrent insert won and its row cannot be read back
            PersistenceFailure: the database rejected the write
        """
        try:
            if await self.lots.get_lot(lot_id) is None:
                raise NotFound(f"Lot {lot_id} not found")
            template = await self.templates.get_template(template_id)
            if template is None or not template.is_active:
                raise NotFound(f"ITP template {template_id} not found")

            existing = await self.assignments.get_active(lot_id, template_id)
            if existing is not None:
                return existing, False

            assignment = await self.assignments.create(lot_id, template_id, assigned_by)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            existing = await self.assignments.get_active(lot_id, template_id)
            if existing is None:
                raise Conflict(f"Template {template_id} could not be assigned to lot {lot_id}")
            return existing, False
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("Assigning template %s to lot %s failed", template_id, lot_id)
            raise PersistenceFailure("Failed to assign template", exc) from exc

        logger.info("Assigned template %s to lot %s", template_id, lot_id)
        return assignment, True

    # PUBLIC_INTERFACE
    async def assign_many(
        self, lot_id: UUID, template_ids: Iterable[UUID], assigned_by: Optional[UUID] = None
    ) -> AssignmentBatchRead:
        """
        Assign each template in turn, collecting per-template outcomes.

        Duplicate ids in the input are assigned once. A failure for one template never
        undoes the others.

        Raises:
            NotFound: the lot does not exist (no template is attempted)
        """
        if await self.lots.get_lot(lot_id) is None:
            raise NotFound(f"Lot {lot_id} not found")
        batch = AssignmentBatchRead()
        for template_id in dict.fromkeys(template_ids):
            try:
                assignment, _ = await self.assign(lot_id, template_id, assigned_by)
            except EngineError as exc:
                batch.failed.append(
                    AssignmentFailure(template_id=template_id, error=exc.message, error_type=exc.error_type)
                )
            else:
                batch.assigned.append(AssignmentRead.model_validate(assignment))
        if batch.failed:
            logger.warning(
                "Assigned %d of %d templates to lot %s",
                len(batch.assigned),
                len(batch.assigned) + len(batch.failed),
                lot_id,
            )
        return batch

    # PUBLIC_INTERFACE
    async def remove(self, lot_id: UUID, ref: UUID) -> AssignmentRemovalRead:
        """
        Deactivate an assignment and delete its template's records on the lot.

        Parameters:
            lot_id: lot owning the assignment
            ref: assignment id, or the id of an actively assigned template
        Raises:
            NotFound: nothing active on the lot matches ``ref``
            PersistenceFailure: the database rejected the change
        """
        try:
            assignment = await self.assignments.get_active_by_id(lot_id, ref)
            if assignment is None:
                assignment = await self.assignments.get_active(lot_id, ref)
            if assignment is None:
                raise NotFound(f"No active assignment {ref} on lot {lot_id}")

            await self.assignments.deactivate(assignment, utcnow())
            removed = await self.records.delete_for_template(lot_id, assignment.template_id)
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("Removing assignment %s from lot %s failed", ref, lot_id)
            raise PersistenceFailure("Failed to remove assignment", exc) from exc

        logger.info(
            "Removed template %s from lot %s (%d records deleted)", assignment.template_id, lot_id, removed
        )
        return AssignmentRemovalRead(assignment=AssignmentRead.model_validate(assignment), records_removed=removed)

    # PUBLIC_INTERFACE
    async def list_active(self, lot_id: UUID) -> List[LotITPAssignment]:
        """Active assignments of a lot in stable (assigned_at, id) order."""
        if await self.lots.get_lot(lot_id) is None:
            raise NotFound(f"Lot {lot_id} not found")
        return await self.assignments.list_active(lot_id)
