from __future__ import annotations

from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from siteproof.core.errors import PartialBatchFailure
from .conformance import ConformanceFields, ConformanceRecordRead, Verdict
from .itp import AssignmentRead, ITPItemRead, ITPTemplateRead, ITPTemplateSummary
from .projects import LotRead


class ProgressStats(BaseModel):
    """Aggregate inspection progress for a set of items."""
    total: int = Field(0, ge=0)
    completed: int = Field(0, ge=0)
    passed: int = Field(0, ge=0)
    failed: int = Field(0, ge=0)
    na: int = Field(0, ge=0)
    pending: int = Field(0, ge=0)
    percentage: int = Field(0, ge=0, le=100, description="round(100 * completed / total), 0 when empty")


class TemplateProgress(BaseModel):
    """Per-template summary used for tab navigation."""
    assignment_id: UUID = Field(...)
    template: ITPTemplateSummary = Field(...)
    stats: ProgressStats = Field(...)


class LotInspectionState(BaseModel):
    """Read model feeding the lot inspection view."""
    lot: LotRead = Field(...)
    assignments: List[AssignmentRead] = Field(default_factory=list)
    templates: List[ITPTemplateRead] = Field(default_factory=list)
    items: List[ITPItemRead] = Field(default_factory=list)
    records: List[ConformanceRecordRead] = Field(default_factory=list)
    summaries: List[TemplateProgress] = Field(default_factory=list)
    overall: Optional[ProgressStats] = Field(None, description="Progress across every assigned template")


class ViewMode(str, Enum):
    NEEDS_ASSIGNMENT = "needs_assignment"
    SINGLE = "single"
    TABBED = "tabbed"


class BatchOutcome(str, Enum):
    ALL_SUCCEEDED = "all_succeeded"
    PARTIAL_FAILURE = "partial_failure"
    ALL_FAILED = "all_failed"
    NOTHING_TO_SAVE = "nothing_to_save"


class PendingEdit(BaseModel):
    """A locally set verdict. ``verdict`` None means the item was set back to pending."""
    verdict: Optional[Verdict] = Field(None)
    comments: Optional[str] = Field(None)

    class Config:
        frozen = True

    @property
    def savable(self) -> bool:
        return self.verdict is not None

    def to_fields(self) -> ConformanceFields:
        data = {"result_pass_fail": self.verdict}
        if self.comments is not None:
            data["comments"] = self.comments
        return ConformanceFields(**data)


class ItemSaveFailure(BaseModel):
    """One item of a batch save that was not stored."""
    item_id: UUID = Field(...)
    error: str = Field(...)
    error_type: Optional[str] = Field(None)


class BatchResult(BaseModel):
    """Per-item outcome of a batch save."""
    outcome: BatchOutcome = Field(...)
    succeeded: List[UUID] = Field(default_factory=list)
    failures: List[ItemSaveFailure] = Field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def message(self) -> str:
        if self.outcome is BatchOutcome.NOTHING_TO_SAVE:
            return "No unsaved changes"
        if self.outcome is BatchOutcome.ALL_SUCCEEDED:
            return f"Saved {self.success_count} inspection result(s)"
        errors = "; ".join(sorted({f.error for f in self.failures}))
        if self.outcome is BatchOutcome.PARTIAL_FAILURE:
            total = self.success_count + len(self.failures)
            return f"Saved {self.success_count} of {total} inspection results; {len(self.failures)} failed: {errors}"
        return f"Failed to save {len(self.failures)} inspection result(s): {errors}"

    def raise_for_failures(self) -> None:
        """Raise PartialBatchFailure when any item failed."""
        if self.failures:
            raise PartialBatchFailure(
                self.message,
                success_count=self.success_count,
                failures={str(f.item_id): f.error for f in self.failures},
            )


class ItemView(BaseModel):
    """An item of the active template as displayed, with its effective status."""
    item: ITPItemRead = Field(...)
    record: Optional[ConformanceRecordRead] = Field(None, description="Committed record, if any")
    status: str = Field(..., description="passed | failed | na | pending")
    unsaved: bool = Field(False, description="A savable local edit is waiting for save_all")
    error: Optional[str] = Field(None, description="Error of the last failed save of this item")
