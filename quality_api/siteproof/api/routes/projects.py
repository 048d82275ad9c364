from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from siteproof.core.deps import get_current_inspector_id, get_db_session
from siteproof.schemas.common import ApiResult, MessageResponse
from siteproof.schemas.conformance import ConformanceRecordRead
from siteproof.schemas.projects import (
    DashboardStats,
    LotCreate,
    LotRead,
    LotStatus,
    ProjectCreate,
    ProjectRead,
    ProjectUpdate,
)
from siteproof.services.conformance import ConformanceRecordStore
from siteproof.services.lots import LotService

router = APIRouter(tags=["Projects"])


# PUBLIC_INTERFACE
@router.post(
    "/projects",
    response_model=ApiResult[ProjectRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create project",
)
async def create_project(
    payload: ProjectCreate,
    session: AsyncSession = Depends(get_db_session),
    inspector_id: Optional[UUID] = Depends(get_current_inspector_id),
) -> ApiResult[ProjectRead]:
    project = await LotService(session).create_project(payload, created_by=inspector_id)
    return ApiResult[ProjectRead].ok(ProjectRead.model_validate(project))


# PUBLIC_INTERFACE
@router.get(
    "/projects",
    response_model=ApiResult[List[ProjectRead]],
    summary="List projects",
    description="List projects ordered by created_at desc.",
)
async def list_projects(
    session: AsyncSession = Depends(get_db_session),
    organization_id: Optional[UUID] = Query(None, description="Filter by organization"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> ApiResult[List[ProjectRead]]:
    rows = await LotService(session).list_projects(organization_id=organization_id, limit=limit, offset=offset)
    return ApiResult[List[ProjectRead]].ok([ProjectRead.model_validate(x) for x in rows])


# PUBLIC_INTERFACE
@router.get("/projects/{project_id}", response_model=ApiResult[ProjectRead], summary="Get project")
async def get_project(project_id: UUID, session: AsyncSession = Depends(get_db_session)) -> ApiResult[ProjectRead]:
    project = await LotService(session).get_project(project_id)
    return ApiResult[ProjectRead].ok(ProjectRead.model_validate(project))


# PUBLIC_INTERFACE
@router.patch(
    "/projects/{project_id}",
    response_model=ApiResult[ProjectRead],
    summary="Update project",
    description="Partial update; only supplied fields change.",
)
async def update_project(
    project_id: UUID,
    payload: ProjectUpdate,
    session: AsyncSession = Depends(get_db_session),
    inspector_id: Optional[UUID] = Depends(get_current_inspector_id),
) -> ApiResult[ProjectRead]:
    project = await LotService(session).update_project(project_id, payload)
    return ApiResult[ProjectRead].ok(ProjectRead.model_validate(project))


# PUBLIC_INTERFACE
@router.get(
    "/projects/{project_id}/non-conformances",
    response_model=ApiResult[List[ConformanceRecordRead]],
    summary="List non-conformances of a project",
    description="Non-conformance records across every lot of the project, ordered by lot number.",
)
async def list_project_non_conformances(
    project_id: UUID, session: AsyncSession = Depends(get_db_session)
) -> ApiResult[List[ConformanceRecordRead]]:
    rows = await ConformanceRecordStore(session).list_project_non_conformances(project_id)
    return ApiResult[List[ConformanceRecordRead]].ok([ConformanceRecordRead.model_validate(x) for x in rows])


# PUBLIC_INTERFACE
@router.get(
    "/dashboard/stats",
    response_model=ApiResult[DashboardStats],
    summary="Dashboard statistics",
    description="Project, lot and non-conformance counts, optionally restricted to one project.",
)
async def dashboard_stats(
    session: AsyncSession = Depends(get_db_session),
    project_id: Optional[UUID] = Query(None, description="Restrict counts to one project"),
) -> ApiResult[DashboardStats]:
    stats = await LotService(session).dashboard_stats(project_id)
    return ApiResult[DashboardStats].ok(stats)


# PUBLIC_INTERFACE
@router.post(
    "/projects/{project_id}/lots",
    response_model=ApiResult[LotRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create lot",
    description="Create a lot in a project. Lot numbers are unique within a project (409 otherwise).",
)
async def create_lot(
    project_id: UUID,
    payload: LotCreate,
    session: AsyncSession = Depends(get_db_session),
    inspector_id: Optional[UUID] = Depends(get_current_inspector_id),
) -> ApiResult[LotRead]:
    lot = await LotService(session).create_lot(project_id, payload, created_by=inspector_id)
    return ApiResult[LotRead].ok(LotRead.model_validate(lot))


# PUBLIC_INTERFACE
@router.get(
    "/projects/{project_id}/lots",
    response_model=ApiResult[List[LotRead]],
    summary="List lots of a project",
)
async def list_lots(
    project_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    status_filter: Optional[LotStatus] = Query(None, alias="status", description="Filter by lot status"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> ApiResult[List[LotRead]]:
    rows = await LotService(session).list_lots(project_id, status=status_filter, limit=limit, offset=offset)
    return ApiResult[List[LotRead]].ok([LotRead.model_validate(x) for x in rows])


# PUBLIC_INTERFACE
@router.get("/lots/{lot_id}", response_model=ApiResult[LotRead], summary="Get lot")
async def get_lot(lot_id: UUID, session: AsyncSession = Depends(get_db_session)) -> ApiResult[LotRead]:
    lot = await LotService(session).get_lot(lot_id)
    return ApiResult[LotRead].ok(LotRead.model_validate(lot))


# PUBLIC_INTERFACE
@router.delete(
    "/lots/{lot_id}",
    response_model=ApiResult[MessageResponse],
    summary="Delete lot",
    description="Delete a lot together with its template assignments and conformance records.",
)
async def delete_lot(lot_id: UUID, session: AsyncSession = Depends(get_db_session)) -> ApiResult[MessageResponse]:
    await LotService(session).delete_lot(lot_id)
    return ApiResult[MessageResponse].ok(MessageResponse(message="Lot deleted", details={"lot_id": str(lot_id)}))
