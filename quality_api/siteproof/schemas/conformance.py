from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

Verdict = Literal["PASS", "FAIL", "N/A"]

_VERDICT_ALIASES = {
    "PASS": "PASS",
    "PASSED": "PASS",
    "FAIL": "FAIL",
    "FAILED": "FAIL",
    "N/A": "N/A",
    "NA": "N/A",
    "PENDING": None,
    "": None,
}

# Fields a caller may write; everything else on the record is derived or bookkeeping.
WRITABLE_FIELDS = ("result_pass_fail", "result_numeric", "result_text", "comments", "corrective_action")


# PUBLIC_INTERFACE
def normalize_verdict(value: Any) -> Optional[str]:
    """
    Map verdict spellings (``pass``, ``Passed``, ``na``, ``pending`` ...) to PASS/FAIL/N/A or None.

    Raises:
        ValueError: for anything that is not a recognised verdict.
    """
    if value is None:
        return None
    key = str(value).strip().upper()
    if key not in _VERDICT_ALIASES:
        raise ValueError(f"Unknown verdict {value!r}; expected PASS, FAIL, N/A or pending")
    return _VERDICT_ALIASES[key]


class ConformanceFields(BaseModel):
    """
    Partial field set for saving a conformance result.

    Only fields present in the payload are written; omitted fields keep their stored
    value. ``is_non_conformance`` is accepted for compatibility but always recomputed.
    """
    result_pass_fail: Optional[Verdict] = Field(None, description="PASS | FAIL | N/A; null or 'pending' clears")
    result_numeric: Optional[float] = Field(None)
    result_text: Optional[str] = Field(None)
    comments: Optional[str] = Field(None)
    corrective_action: Optional[str] = Field(None)
    is_non_conformance: Optional[bool] = Field(None, description="Ignored; derived from result_pass_fail")
    expected_version: Optional[int] = Field(
        None, ge=1, description="Reject the write with 409 unless the stored record has this version"
    )

    @field_validator("result_pass_fail", mode="before")
    @classmethod
    def _normalize_verdict(cls, v):
        return normalize_verdict(v)

    def changes(self) -> Dict[str, Any]:
        """Return the writable fields the caller actually supplied."""
        supplied = self.model_dump(exclude_unset=True)
        return {k: v for k, v in supplied.items() if k in WRITABLE_FIELDS}


class ConformanceRecordRead(BaseModel):
    """Conformance record read model."""
    id: UUID = Field(..., description="Record id")
    lot_id: UUID = Field(...)
    item_id: UUID = Field(...)
    template_id: UUID = Field(...)
    result_pass_fail: Optional[Verdict] = Field(None)
    result_numeric: Optional[float] = Field(None)
    result_text: Optional[str] = Field(None)
    comments: Optional[str] = Field(None)
    is_non_conformance: bool = Field(False)
    corrective_action: Optional[str] = Field(None)
    inspector_id: Optional[UUID] = Field(None)
    inspection_date: Optional[datetime] = Field(None)
    approved_by: Optional[UUID] = Field(None)
    approval_date: Optional[datetime] = Field(None)
    version: int = Field(1)
    created_at: datetime = Field(..., description="Created at")
    updated_at: datetime = Field(..., description="Updated at")

    class Config:
        from_attributes = True
