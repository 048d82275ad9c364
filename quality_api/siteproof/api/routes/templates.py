from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from siteproof.core.deps import get_current_inspector_id, get_db_session
from siteproof.schemas.common import ApiResult
from siteproof.schemas.itp import (
    ITPItemImportRequest,
    ITPItemImportResult,
    ITPTemplateCreate,
    ITPTemplateRead,
    ITPTemplateSummary,
    TemplateImportRequest,
    TemplateImportResult,
)
from siteproof.services.templates import TemplateService

router = APIRouter(prefix="/templates", tags=["Templates"])


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ApiResult[ITPTemplateRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create ITP template",
    description="Create a template with its items. Items default to payload order.",
)
async def create_template(
    payload: ITPTemplateCreate,
    session: AsyncSession = Depends(get_db_session),
    inspector_id: Optional[UUID] = Depends(get_current_inspector_id),
) -> ApiResult[ITPTemplateRead]:
    template = await TemplateService(session).create_template(payload, created_by=inspector_id)
    return ApiResult[ITPTemplateRead].ok(ITPTemplateRead.model_validate(template))


# PUBLIC_INTERFACE
@router.post(
    "/import",
    response_model=ApiResult[TemplateImportResult],
    summary="Import ITP templates",
    description=(
        "Create one template per row. Rows are validated and stored independently; "
        "rejected rows are reported under 'errors' with their 1-based row number."
    ),
)
async def import_templates(
    payload: TemplateImportRequest,
    session: AsyncSession = Depends(get_db_session),
    inspector_id: Optional[UUID] = Depends(get_current_inspector_id),
) -> ApiResult[TemplateImportResult]:
    result = await TemplateService(session).import_templates(payload.templates, created_by=inspector_id)
    return ApiResult[TemplateImportResult].ok(result)


# PUBLIC_INTERFACE
@router.post(
    "/{template_id}/items/import",
    response_model=ApiResult[ITPItemImportResult],
    summary="Import items into an ITP template",
    description="Append items to a template. Rows without order_index go after the current last item.",
)
async def import_items(
    template_id: UUID,
    payload: ITPItemImportRequest,
    session: AsyncSession = Depends(get_db_session),
    inspector_id: Optional[UUID] = Depends(get_current_inspector_id),
) -> ApiResult[ITPItemImportResult]:
    result = await TemplateService(session).import_items(template_id, payload.items)
    return ApiResult[ITPItemImportResult].ok(result)


# PUBLIC_INTERFACE
@router.get("", response_model=ApiResult[List[ITPTemplateSummary]], summary="List ITP templates")
async def list_templates(
    session: AsyncSession = Depends(get_db_session),
    organization_id: Optional[UUID] = Query(None, description="Filter by organization"),
    category: Optional[str] = Query(None, description="Filter by category"),
    include_inactive: bool = Query(False),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> ApiResult[List[ITPTemplateSummary]]:
    rows = await TemplateService(session).list_templates(
        organization_id=organization_id,
        category=category,
        include_inactive=include_inactive,
        limit=limit,
        offset=offset,
    )
    return ApiResult[List[ITPTemplateSummary]].ok([ITPTemplateSummary.model_validate(x) for x in rows])


# PUBLIC_INTERFACE
@router.get("/{template_id}", response_model=ApiResult[ITPTemplateRead], summary="Get ITP template with items")
async def get_template(template_id: UUID, session: AsyncSession = Depends(get_db_session)) -> ApiResult[ITPTemplateRead]:
    template = await TemplateService(session).get_template(template_id)
    return ApiResult[ITPTemplateRead].ok(ITPTemplateRead.model_validate(template))
