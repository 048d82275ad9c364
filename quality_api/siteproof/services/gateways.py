"""
Gateways used by LotInspectionView to reach the inspection engine.

Every call returns the ``ApiResult`` envelope; expected failures are reported in
the envelope rather than raised. ``ServiceGateway`` runs the services in-process
with one session per call; ``HttpGateway`` talks to the REST routes.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Protocol, Type, TypeVar
from uuid import UUID

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from siteproof.core.errors import EngineError
from siteproof.schemas.common import ApiResult
from siteproof.schemas.conformance import ConformanceFields, ConformanceRecordRead
from siteproof.schemas.inspection import LotInspectionState
from siteproof.schemas.itp import AssignmentBatchRead, AssignmentRemovalRead
from siteproof.services.assignments import ITPAssignmentManager
from siteproof.services.conformance import ConformanceRecordStore
from siteproof.services.lots import LotService

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class InspectionGateway(Protocol):
    """The four engine operations the inspection view depends on."""

    async def get_lot_inspection_state(self, lot_id: UUID) -> ApiResult[LotInspectionState]: ...

    async def save_conformance(
        self, lot_id: UUID, item_id: UUID, fields: ConformanceFields
    ) -> ApiResult[ConformanceRecordRead]: ...

    async def assign_templates(self, lot_id: UUID, template_ids: Iterable[UUID]) -> ApiResult[AssignmentBatchRead]: ...

    async def remove_assignment(self, lot_id: UUID, ref: UUID) -> ApiResult[AssignmentRemovalRead]: ...


def _failure(exc: EngineError) -> ApiResult:
    return ApiResult.fail(exc.message, error_type=exc.error_type, details=exc.details)


# PUBLIC_INTERFACE
class ServiceGateway:
    """
    In-process gateway.

    Opens a fresh AsyncSession for every call so concurrent calls from one batch
    never share a session.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession], inspector_id: Optional[UUID] = None) -> None:
        self.session_maker = session_maker
        self.inspector_id = inspector_id

    async def get_lot_inspection_state(self, lot_id: UUID) -> ApiResult[LotInspectionState]:
        async with self.session_maker() as session:
            try:
                state = await LotService(session).get_inspection_state(lot_id)
            except EngineError as exc:
                return _failure(exc)
        return ApiResult[LotInspectionState].ok(state)

    async def save_conformance(
        self, lot_id: UUID, item_id: UUID, fields: ConformanceFields
    ) -> ApiResult[ConformanceRecordRead]:
        async with self.session_maker() as session:
            try:
                record = await ConformanceRecordStore(session).upsert(lot_id, item_id, fields, self.inspector_id)
            except EngineError as exc:
                return _failure(exc)
            return ApiResult[ConformanceRecordRead].ok(ConformanceRecordRead.model_validate(record))

    async def assign_templates(self, lot_id: UUID, template_ids: Iterable[UUID]) -> ApiResult[AssignmentBatchRead]:
        async with self.session_maker() as session:
            try:
                batch = await ITPAssignmentManager(session).assign_many(lot_id, template_ids, self.inspector_id)
            except EngineError as exc:
                return _failure(exc)
            return ApiResult[AssignmentBatchRead].ok(batch)

    async def remove_assignment(self, lot_id: UUID, ref: UUID) -> ApiResult[AssignmentRemovalRead]:
        async with self.session_maker() as session:
            try:
                removal = await ITPAssignmentManager(session).remove(lot_id, ref)
            except EngineError as exc:
                return _failure(exc)
            return ApiResult[AssignmentRemovalRead].ok(removal)


# PUBLIC_INTERFACE
class HttpGateway:
    """
    Gateway over this service's REST API.

    Parameters:
        client: an httpx.AsyncClient whose base_url points at the service
        base_path: API prefix the routes are mounted under
    """

    def __init__(self, client: httpx.AsyncClient, base_path: str = "/api/v1") -> None:
        self.client = client
        self.base_path = base_path.rstrip("/")

    async def _call(self, model: Type[M], method: str, path: str, **kwargs) -> ApiResult[M]:
        try:
            response = await self.client.request(method, f"{self.base_path}{path}", **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            return ApiResult.fail(str(exc) or exc.__class__.__name__, error_type="persistence_failure")
        try:
            return ApiResult[model].model_validate(response.json())
        except (ValueError, PydanticValidationError):
            return ApiResult.fail(
                f"Unexpected response from {path} (HTTP {response.status_code})", error_type="bad_response"
            )

    async def get_lot_inspection_state(self, lot_id: UUID) -> ApiResult[LotInspectionState]:
        return await self._call(LotInspectionState, "GET", f"/lots/{lot_id}/inspection")

    async def save_conformance(
        self, lot_id: UUID, item_id: UUID, fields: ConformanceFields
    ) -> ApiResult[ConformanceRecordRead]:
        return await self._call(
            ConformanceRecordRead,
            "PUT",
            f"/lots/{lot_id}/items/{item_id}/conformance",
            json=fields.model_dump(mode="json", exclude_unset=True),
        )

    async def assign_templates(self, lot_id: UUID, template_ids: Iterable[UUID]) -> ApiResult[AssignmentBatchRead]:
        return await self._call(
            AssignmentBatchRead,
            "POST",
            f"/lots/{lot_id}/assignments",
            json={"template_ids": [str(t) for t in template_ids]},
        )

    async def remove_assignment(self, lot_id: UUID, ref: UUID) -> ApiResult[AssignmentRemovalRead]:
        return await self._call(AssignmentRemovalRead, "DELETE", f"/lots/{lot_id}/assignments/{ref}")
