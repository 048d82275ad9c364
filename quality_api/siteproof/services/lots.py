from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from siteproof.core.errors import Conflict, NotFound, PersistenceFailure
from siteproof.db.base import utcnow
from siteproof.db.models import Lot, Project
from siteproof.repositories.assignments import AssignmentRepository
from siteproof.repositories.conformance import ConformanceRepository
from siteproof.repositories.lots import LotRepository, ProjectRepository
from siteproof.repositories.templates import TemplateRepository
from siteproof.schemas.conformance import ConformanceRecordRead
from siteproof.schemas.inspection import LotInspectionState, TemplateProgress
from siteproof.schemas.itp import AssignmentRead, ITPItemRead, ITPTemplateRead, ITPTemplateSummary
from siteproof.schemas.projects import DashboardStats, LotCreate, LotRead, ProjectCreate, ProjectUpdate
from siteproof.services.base import BaseService
from siteproof.services.progress import compute_stats

logger = logging.getLogger(__name__)


class LotService(BaseService):
    """
    Projects, lots and the lot inspection read model.

    Lot status is owned elsewhere; this service only creates, reads and deletes lots.
    Projects can also be updated, and counted together with their lots for the dashboard.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.projects = ProjectRepository(session)
        self.lots = LotRepository(session)
        self.assignments = AssignmentRepository(session)
        self.templates = TemplateRepository(session)
        self.records = ConformanceRepository(session)

    # PUBLIC_INTERFACE
    async def create_project(self, payload: ProjectCreate, created_by: Optional[UUID] = None) -> Project:
        project = Project(
            organization_id=payload.organization_id,
            name=payload.name,
            project_number=payload.project_number,
            description=payload.description,
            location=payload.location,
            created_by=created_by,
        )
        try:
            await self.projects.add(project)
            await self.projects.flush()
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise PersistenceFailure("Failed to create project", exc) from exc
        return project

    # PUBLIC_INTERFACE
    async def list_projects(
        self, *, organization_id: Optional[UUID] = None, limit: int = 50, offset: int = 0
    ) -> List[Project]:
        return await self.projects.list_projects(organization_id=organization_id, limit=limit, offset=offset)

    # PUBLIC_INTERFACE
    async def get_project(self, project_id: UUID) -> Project:
        project = await self.projects.get_project(project_id)
        if project is None:
            raise NotFound(f"Project {project_id} not found")
        return project

    # PUBLIC_INTERFACE
    async def update_project(self, project_id: UUID, payload: ProjectUpdate) -> Project:
        """
        Apply a partial update to a project.

        Only supplied fields change. A null ``name`` or ``status`` keeps the current value,
        since neither column may be empty.

        Raises:
            NotFound: the project does not exist
        """
        project = await self.get_project(project_id)
        changes = payload.model_dump(exclude_unset=True)
        for key, value in changes.items():
            if value is None and key in ("name", "status"):
                continue
            setattr(project, key, value)
        project.updated_at = utcnow()
        try:
            await self.projects.flush()
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise PersistenceFailure("Failed to update project", exc) from exc
        logger.info("Updated project %s (%s)", project_id, ", ".join(sorted(changes)) or "no fields")
        return project

    # PUBLIC_INTERFACE
    async def dashboard_stats(self, project_id: Optional[UUID] = None) -> DashboardStats:
        """
        Count projects, lots by status and non-conformances.

        Parameters:
            project_id: restrict every count to one project
        Raises:
            NotFound: ``project_id`` is given and does not exist
        """
        if project_id is not None:
            await self.get_project(project_id)
        projects = await self.projects.count_by_status(project_id)
        lots = await self.lots.count_by_status(project_id)
        return DashboardStats(
            total_projects=sum(projects.values()),
            active_projects=projects.get("active", 0),
            completed_projects=projects.get("completed", 0),
            total_lots=sum(lots.values()),
            pending_inspections=lots.get("pending", 0),
            completed_inspections=lots.get("completed", 0),
            non_conformances=await self.records.count_non_conformances(project_id),
        )

    # PUBLIC_INTERFACE
    async def create_lot(self, project_id: UUID, payload: LotCreate, created_by: Optional[UUID] = None) -> Lot:
        """
        Create a lot inside a project.

        Raises:
            NotFound: the project does not exist
            Conflict: the lot number is already used in the project
        """
        if await self.projects.get_project(project_id) is None:
            raise NotFound(f"Project {project_id} not found")
        if await self.lots.get_by_number(project_id, payload.lot_number) is not None:
            raise Conflict(f"Lot number {payload.lot_number} already exists in project {project_id}")

        lot = Lot(
            project_id=project_id,
            lot_number=payload.lot_number,
            description=payload.description,
            location_description=payload.location_description,
            created_by=created_by,
        )
        try:
            await self.lots.add(lot)
            await self.lots.flush()
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise Conflict(f"Lot number {payload.lot_number} already exists in project {project_id}") from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise PersistenceFailure("Failed to create lot", exc) from exc
        logger.info("Created lot %s (%s) in project %s", lot.id, lot.lot_number, project_id)
        return lot

    # PUBLIC_INTERFACE
    async def get_lot(self, lot_id: UUID) -> Lot:
        lot = await self.lots.get_lot(lot_id)
        if lot is None:
            raise NotFound(f"Lot {lot_id} not found")
        return lot

    # PUBLIC_INTERFACE
    async def list_lots(
        self, project_id: UUID, *, status: Optional[str] = None, limit: int = 50, offset: int = 0
    ) -> List[Lot]:
        if await self.projects.get_project(project_id) is None:
            raise NotFound(f"Project {project_id} not found")
        return await self.lots.list_lots(project_id=project_id, status=status, limit=limit, offset=offset)

    # PUBLIC_INTERFACE
    async def delete_lot(self, lot_id: UUID) -> None:
        """Delete a lot with its assignments and conformance records."""
        lot = await self.get_lot(lot_id)
        try:
            await self.lots.delete_lot(lot)
            await self.lots.flush()
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise PersistenceFailure("Failed to delete lot", exc) from exc
        logger.info("Deleted lot %s", lot_id)

    # PUBLIC_INTERFACE
    async def get_inspection_state(self, lot_id: UUID) -> LotInspectionState:
        """
        Build the read model for the lot inspection view.

        Returns:
            LotInspectionState with active assignments in stable order, their templates
            and items, the lot's records and one progress summary per assignment.
        """
        lot = await self.get_lot(lot_id)
        assignments = await self.assignments.list_active(lot_id)
        template_ids = [a.template_id for a in assignments]

        templates = []
        for template_id in template_ids:
            template = await self.templates.get_template(template_id)
            if template is not None:
                templates.append(template)
        items = await self.templates.list_items(template_ids)
        records = await self.records.find_by_lot(lot_id)

        summaries = []
        by_id = {t.id: t for t in templates}
        for assignment in assignments:
            template = by_id.get(assignment.template_id)
            if template is None:
                continue
            template_items = [i for i in items if i.template_id == template.id]
            summaries.append(
                TemplateProgress(
                    assignment_id=assignment.id,
                    template=ITPTemplateSummary.model_validate(template),
                    stats=compute_stats(template_items, records),
                )
            )

        return LotInspectionState(
            lot=LotRead.model_validate(lot),
            assignments=[AssignmentRead.model_validate(a) for a in assignments],
            templates=[ITPTemplateRead.model_validate(t) for t in templates],
            items=[ITPItemRead.model_validate(i) for i in items],
            records=[ConformanceRecordRead.model_validate(r) for r in records],
            summaries=summaries,
            overall=compute_stats(items, records),
        )
