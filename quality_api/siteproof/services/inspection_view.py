"""
Per-lot inspection view with optimistic quick actions and batched saving.

State is kept in two layers: the committed layer (records as last read from or
written to the store) and the pending-edit layer (verdicts set locally and not yet
saved). The status shown for an item is the pending edit if there is one, else
the committed verdict, else ``pending``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional
from uuid import UUID

from siteproof.core.errors import NotFound, ValidationError
from siteproof.schemas.common import ApiResult
from siteproof.schemas.conformance import ConformanceRecordRead, normalize_verdict
from siteproof.schemas.inspection import (
    BatchOutcome,
    BatchResult,
    ItemSaveFailure,
    ItemView,
    LotInspectionState,
    PendingEdit,
    ProgressStats,
    TemplateProgress,
    ViewMode,
)
from siteproof.schemas.itp import AssignmentBatchRead, AssignmentRemovalRead, ITPItemRead, ITPTemplateSummary
from siteproof.services.gateways import InspectionGateway
from siteproof.services.progress import status_for, summarize

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class LotInspectionView:
    """
    Inspection state of one lot, as seen by one inspector.

    Parameters:
        gateway: engine access (in-process or over HTTP)
        lot_id: the lot being inspected

    Call ``load()`` before reading. Quick actions (``set_local_result``) are
    synchronous and only touch local state; ``save_all()`` commits every savable
    pending edit in one concurrent wave. After ``close()`` late results are ignored.
    """

    def __init__(self, gateway: InspectionGateway, lot_id: UUID) -> None:
        self.gateway = gateway
        self.lot_id = lot_id
        self.state: Optional[LotInspectionState] = None
        self.active_template_id: Optional[UUID] = None
        self._committed: Dict[UUID, ConformanceRecordRead] = {}
        self._edits: Dict[UUID, PendingEdit] = {}
        self._errors: Dict[UUID, str] = {}
        self._closed = False

    # ---- loading -------------------------------------------------------

    # PUBLIC_INTERFACE
    async def load(self) -> ApiResult[LotInspectionState]:
        """
        Refresh the committed layer from the engine.

        Pending edits survive the reload, except for items that are no longer part
        of any assigned template. A failed load leaves the current state untouched.
        """
        result = await self.gateway.get_lot_inspection_state(self.lot_id)
        if self._closed or not result.success or result.data is None:
            if not result.success:
                logger.warning("Loading lot %s failed: %s", self.lot_id, result.error)
            return result

        state = result.data
        self.state = state
        known = {i.id for i in state.items}
        self._committed = self._merge_loaded(state.records, known)
        self._edits = {k: v for k, v in self._edits.items() if k in known}
        self._errors = {k: v for k, v in self._errors.items() if k in known}

        template_ids = [a.template_id for a in state.assignments]
        if self.active_template_id not in template_ids:
            self.active_template_id = template_ids[0] if template_ids else None
        return result

    def _merge_loaded(self, records: List[ConformanceRecordRead], known: set) -> Dict[UUID, ConformanceRecordRead]:
        # a save that finished while the load was in flight may hold a newer version
        merged = {r.item_id: r for r in records}
        for item_id, current in self._committed.items():
            if item_id not in known:
                continue
            loaded = merged.get(item_id)
            if loaded is None or current.version > loaded.version:
                merged[item_id] = current
        return merged

    def _require_state(self) -> LotInspectionState:
        if self.state is None:
            raise ValidationError("Inspection view has not been loaded")
        return self.state

    # ---- navigation ----------------------------------------------------

    @property
    def mode(self) -> ViewMode:
        count = len(self.state.assignments) if self.state else 0
        if count == 0:
            return ViewMode.NEEDS_ASSIGNMENT
        return ViewMode.SINGLE if count == 1 else ViewMode.TABBED

    # PUBLIC_INTERFACE
    def select_template(self, template_id: UUID) -> None:
        """Make an assigned template the active one."""
        state = self._require_state()
        if template_id not in {a.template_id for a in state.assignments}:
            raise NotFound(f"Template {template_id} is not assigned to lot {self.lot_id}")
        self.active_template_id = template_id

    def _items_of(self, template_id: Optional[UUID]) -> List[ITPItemRead]:
        if self.state is None or template_id is None:
            return []
        return [i for i in self.state.items if i.template_id == template_id]

    # PUBLIC_INTERFACE
    def effective_status(self, item_id: UUID) -> str:
        """Pending edit, else committed verdict, else ``pending``."""
        edit = self._edits.get(item_id)
        if edit is not None:
            return status_for(edit.verdict)
        record = self._committed.get(item_id)
        return status_for(record.result_pass_fail if record else None)

    # PUBLIC_INTERFACE
    def items(self) -> List[ItemView]:
        """Items of the active template in display order, with their effective status."""
        return [
            ItemView(
                item=item,
                record=self._committed.get(item.id),
                status=self.effective_status(item.id),
                unsaved=item.id in self._edits and self._edits[item.id].savable,
                error=self._errors.get(item.id),
            )
            for item in self._items_of(self.active_template_id)
        ]

    # PUBLIC_INTERFACE
    def stats(self, template_id: Optional[UUID] = None) -> ProgressStats:
        """Progress of one template (the active one by default), counting pending edits."""
        items = self._items_of(template_id or self.active_template_id)
        return summarize(self.effective_status(i.id) for i in items)

    # PUBLIC_INTERFACE
    def summaries(self) -> List[TemplateProgress]:
        """One entry per assignment in stable order, for tab navigation."""
        if self.state is None:
            return []
        templates = {t.id: t for t in self.state.templates}
        tabs = []
        for assignment in self.state.assignments:
            template = templates.get(assignment.template_id)
            if template is None:
                continue
            tabs.append(
                TemplateProgress(
                    assignment_id=assignment.id,
                    template=ITPTemplateSummary.model_validate(template.model_dump()),
                    stats=self.stats(template.id),
                )
            )
        return tabs

    # ---- quick actions -------------------------------------------------

    # PUBLIC_INTERFACE
    def set_local_result(self, item_id: UUID, verdict: Optional[str], comments: Optional[str] = None) -> None:
        """
        Record a verdict locally without saving it.

        Parameters:
            item_id: an item of an assigned template
            verdict: PASS / FAIL / N/A (or passed / failed / na), or pending to clear
            comments: optional comment saved together with the verdict
        Raises:
            NotFound: the item is not part of this lot's assigned templates
            ValueError: unknown verdict spelling
        """
        state = self._require_state()
        if item_id not in {i.id for i in state.items}:
            raise NotFound(f"ITP item {item_id} is not part of lot {self.lot_id}")
        normalized = normalize_verdict(verdict)

        committed = self._committed.get(item_id)
        committed_verdict = committed.result_pass_fail if committed else None
        if normalized == committed_verdict and comments is None:
            self._edits.pop(item_id, None)
        else:
            self._edits[item_id] = PendingEdit(verdict=normalized, comments=comments)
        self._errors.pop(item_id, None)

    @property
    def has_unsaved_changes(self) -> bool:
        return any(edit.savable for edit in self._edits.values())

    def unsaved_item_ids(self) -> List[UUID]:
        return [item_id for item_id, edit in self._edits.items() if edit.savable]

    # ---- saving --------------------------------------------------------

    async def _save_one(self, item_id: UUID, edit: PendingEdit) -> ApiResult[ConformanceRecordRead]:
        return await self.gateway.save_conformance(self.lot_id, item_id, edit.to_fields())

    # PUBLIC_INTERFACE
    async def save_all(self) -> BatchResult:
        """
        Save every pending edit that carries a verdict, concurrently.

        Successful items leave the pending layer and their records replace the
        committed ones; failed items stay pending with an item-scoped error so the
        next call only re-submits them. Never raises for item failures.
        """
        batch = {item_id: edit for item_id, edit in self._edits.items() if edit.savable}
        if self._closed or not batch:
            return BatchResult(outcome=BatchOutcome.NOTHING_TO_SAVE)

        item_ids = list(batch)
        outcomes = await asyncio.gather(
            *(self._save_one(item_id, batch[item_id]) for item_id in item_ids),
            return_exceptions=True,
        )

        result = BatchResult(outcome=BatchOutcome.ALL_SUCCEEDED)
        for item_id, outcome in zip(item_ids, outcomes):
            if isinstance(outcome, BaseException):
                result.failures.append(
                    ItemSaveFailure(
                        item_id=item_id,
                        error=str(outcome) or outcome.__class__.__name__,
                        error_type="persistence_failure",
                    )
                )
            elif not outcome.success or outcome.data is None:
                result.failures.append(
                    ItemSaveFailure(item_id=item_id, error=outcome.error or "Save failed", error_type=outcome.error_type)
                )
            else:
                result.succeeded.append(item_id)
                if not self._closed:
                    self._merge_saved(item_id, batch[item_id], outcome.data)

        if result.failures:
            result.outcome = BatchOutcome.PARTIAL_FAILURE if result.succeeded else BatchOutcome.ALL_FAILED
            if not self._closed:
                for failure in result.failures:
                    self._errors[failure.item_id] = failure.error
            logger.warning("Lot %s: %s", self.lot_id, result.message)
        else:
            logger.info("Lot %s: %s", self.lot_id, result.message)
        return result

    def _merge_saved(self, item_id: UUID, submitted: PendingEdit, record: ConformanceRecordRead) -> None:
        current = self._committed.get(item_id)
        if current is None or record.version >= current.version:
            self._committed[item_id] = record
        # an edit made while the save was in flight stays pending
        if self._edits.get(item_id) is submitted:
            del self._edits[item_id]
        self._errors.pop(item_id, None)

    # ---- assignment changes ----------------------------------------------

    # PUBLIC_INTERFACE
    async def assign_templates(self, template_ids: List[UUID]) -> ApiResult[AssignmentBatchRead]:
        """Assign templates to the lot and reload on success."""
        result = await self.gateway.assign_templates(self.lot_id, template_ids)
        if result.success and not self._closed:
            await self.load()
        return result

    # PUBLIC_INTERFACE
    async def remove_assignment(self, ref: UUID) -> ApiResult[AssignmentRemovalRead]:
        """Remove an assignment (by assignment or template id) and reload on success."""
        result = await self.gateway.remove_assignment(self.lot_id, ref)
        if result.success and not self._closed:
            await self.load()
        return result

    def close(self) -> None:
        """Tear the view down; results arriving afterwards are ignored."""
        self._closed = True
