from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from siteproof.core.deps import get_current_inspector_id, get_db_session
from siteproof.schemas.common import ApiResult
from siteproof.schemas.conformance import ConformanceFields, ConformanceRecordRead
from siteproof.schemas.inspection import LotInspectionState
from siteproof.schemas.itp import AssignmentBatchRead, AssignmentRemovalRead, AssignTemplatesRequest
from siteproof.services.assignments import ITPAssignmentManager
from siteproof.services.conformance import ConformanceRecordStore
from siteproof.services.lots import LotService

router = APIRouter(prefix="/lots/{lot_id}", tags=["Inspection"])


# PUBLIC_INTERFACE
@router.post(
    "/assignments",
    response_model=ApiResult[AssignmentBatchRead],
    summary="Assign ITP templates to a lot",
    description=(
        "Assign each template independently. Already active templates are returned unchanged; "
        "templates that cannot be assigned are listed under 'failed'."
    ),
)
async def assign_templates(
    lot_id: UUID,
    payload: AssignTemplatesRequest,
    session: AsyncSession = Depends(get_db_session),
    inspector_id: Optional[UUID] = Depends(get_current_inspector_id),
) -> ApiResult[AssignmentBatchRead]:
    batch = await ITPAssignmentManager(session).assign_many(lot_id, payload.template_ids, assigned_by=inspector_id)
    return ApiResult[AssignmentBatchRead].ok(batch)


# PUBLIC_INTERFACE
@router.delete(
    "/assignments/{ref}",
    response_model=ApiResult[AssignmentRemovalRead],
    summary="Remove an ITP template from a lot",
    description="`ref` is an assignment id or a template id. The template's conformance records on the lot are deleted.",
)
async def remove_assignment(
    lot_id: UUID, ref: UUID, session: AsyncSession = Depends(get_db_session)
) -> ApiResult[AssignmentRemovalRead]:
    removal = await ITPAssignmentManager(session).remove(lot_id, ref)
    return ApiResult[AssignmentRemovalRead].ok(removal)


# PUBLIC_INTERFACE
@router.put(
    "/items/{item_id}/conformance",
    response_model=ApiResult[ConformanceRecordRead],
    summary="Save a conformance result",
    description=(
        "Upsert the single record for (lot, item). Omitted fields keep their stored values; "
        "is_non_conformance is derived from result_pass_fail. Send expected_version to reject stale writes."
    ),
)
async def save_conformance(
    lot_id: UUID,
    item_id: UUID,
    fields: Optional[ConformanceFields] = None,
    session: AsyncSession = Depends(get_db_session),
    inspector_id: Optional[UUID] = Depends(get_current_inspector_id),
) -> ApiResult[ConformanceRecordRead]:
    record = await ConformanceRecordStore(session).upsert(lot_id, item_id, fields, inspector_id=inspector_id)
    return ApiResult[ConformanceRecordRead].ok(ConformanceRecordRead.model_validate(record))


# PUBLIC_INTERFACE
@router.get(
    "/inspection",
    response_model=ApiResult[LotInspectionState],
    summary="Lot inspection state",
    description="Assignments, templates, items, records and per-template progress for a lot.",
)
async def get_lot_inspection_state(
    lot_id: UUID, session: AsyncSession = Depends(get_db_session)
) -> ApiResult[LotInspectionState]:
    state = await LotService(session).get_inspection_state(lot_id)
    return ApiResult[LotInspectionState].ok(state)


# PUBLIC_INTERFACE
@router.get(
    "/conformance",
    response_model=ApiResult[List[ConformanceRecordRead]],
    summary="List conformance records of a lot",
    description="Records in item display order, optionally for one template.",
)
async def list_conformance(
    lot_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    template_id: Optional[UUID] = Query(None, description="Only records of this template"),
) -> ApiResult[List[ConformanceRecordRead]]:
    await LotService(session).get_lot(lot_id)
    rows = await ConformanceRecordStore(session).find_by_lot(lot_id, template_id)
    return ApiResult[List[ConformanceRecordRead]].ok([ConformanceRecordRead.model_validate(x) for x in rows])


# PUBLIC_INTERFACE
@router.get(
    "/non-conformances",
    response_model=ApiResult[List[ConformanceRecordRead]],
    summary="List non-conformances of a lot",
)
async def list_non_conformances(
    lot_id: UUID, session: AsyncSession = Depends(get_db_session)
) -> ApiResult[List[ConformanceRecordRead]]:
    rows = await ConformanceRecordStore(session).list_non_conformances(lot_id)
    return ApiResult[List[ConformanceRecordRead]].ok([ConformanceRecordRead.model_validate(x) for x in rows])


# PUBLIC_INTERFACE
@router.post(
    "/items/{item_id}/approval",
    response_model=ApiResult[ConformanceRecordRead],
    summary="Approve an inspected item",
)
async def approve_item(
    lot_id: UUID,
    item_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    inspector_id: Optional[UUID] = Depends(get_current_inspector_id),
) -> ApiResult[ConformanceRecordRead]:
    record = await ConformanceRecordStore(session).approve(lot_id, item_id, approver_id=inspector_id)
    return ApiResult[ConformanceRecordRead].ok(ConformanceRecordRead.model_validate(record))
