from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ITPItemCreate(BaseModel):
    """Checklist line supplied when creating a template."""
    item_number: Optional[str] = Field(None, description="Display number, e.g. 1.2")
    description: str = Field(..., min_length=1)
    specification_reference: Optional[str] = Field(None)
    inspection_method: str = Field("pass_fail", description="pass_fail | numeric | text | photo_required | ...")
    acceptance_criteria: Optional[str] = Field(None)
    is_mandatory: bool = Field(True)
    order_index: Optional[int] = Field(None, description="Defaults to the position in the payload")


class ITPItemRead(BaseModel):
    """ITP item read model."""
    id: UUID = Field(..., description="Item id")
    template_id: UUID = Field(...)
    item_number: Optional[str] = Field(None)
    description: str = Field(...)
    specification_reference: Optional[str] = Field(None)
    inspection_method: str = Field(...)
    acceptance_criteria: Optional[str] = Field(None)
    is_mandatory: bool = Field(True)
    order_index: int = Field(0)

    class Config:
        from_attributes = True


class ITPTemplateCreate(BaseModel):
    """Create template payload including its ordered items."""
    name: str = Field(..., min_length=1)
    description: Optional[str] = Field(None)
    category: Optional[str] = Field(None)
    version: str = Field("1.0")
    is_active: bool = Field(True, description="Inactive templates cannot be assigned")
    organization_id: Optional[UUID] = Field(None)
    items: List[ITPItemCreate] = Field(default_factory=list)


class ITPTemplateSummary(BaseModel):
    """Template header without items."""
    id: UUID = Field(..., description="Template id")
    name: str = Field(...)
    description: Optional[str] = Field(None)
    category: Optional[str] = Field(None)
    version: str = Field("1.0")
    is_active: bool = Field(True)
    organization_id: Optional[UUID] = Field(None)

    class Config:
        from_attributes = True


class ITPTemplateRead(ITPTemplateSummary):
    """Template with its items in display order."""
    items: List[ITPItemRead] = Field(default_factory=list)
    created_at: datetime = Field(..., description="Created at")
    updated_at: datetime = Field(..., description="Updated at")


class AssignmentRead(BaseModel):
    """Lot/template assignment read model."""
    id: UUID = Field(..., description="Assignment id")
    lot_id: UUID = Field(...)
    template_id: UUID = Field(...)
    assigned_by: Optional[UUID] = Field(None)
    assigned_at: datetime = Field(...)
    is_active: bool = Field(True)
    removed_at: Optional[datetime] = Field(None)

    class Config:
        from_attributes = True


class AssignTemplatesRequest(BaseModel):
    """Assign one or more templates to a lot."""
    template_ids: List[UUID] = Field(..., min_length=1)


class AssignmentFailure(BaseModel):
    """One template that could not be assigned."""
    template_id: UUID = Field(...)
    error: str = Field(...)
    error_type: str = Field(...)


class AssignmentBatchRead(BaseModel):
    """Per-template outcome of a multi-assign; never all-or-nothing."""
    assigned: List[AssignmentRead] = Field(default_factory=list)
    failed: List[AssignmentFailure] = Field(default_factory=list)


class AssignmentRemovalRead(BaseModel):
    """Outcome of removing an assignment."""
    assignment: AssignmentRead = Field(...)
    records_removed: int = Field(..., description="Conformance records deleted with the assignment")


class TemplateImportRequest(BaseModel):
    """Bulk template import. Rows are validated one by one so a bad row never rejects the file."""
    templates: List[Any] = Field(..., description="Rows shaped like the create-template payload")


class ITPItemImportRequest(BaseModel):
    """Bulk item import into an existing template."""
    items: List[Any] = Field(..., description="Rows shaped like a template item")


class ImportRowError(BaseModel):
    """A row that was not imported."""
    row: int = Field(..., ge=1, description="1-based position of the row in the request")
    error: str = Field(...)


class TemplateImportResult(BaseModel):
    """Per-row outcome of a template import."""
    imported: int = Field(0, ge=0)
    templates: List[ITPTemplateSummary] = Field(default_factory=list)
    errors: List[ImportRowError] = Field(default_factory=list)


class ITPItemImportResult(BaseModel):
    """Per-row outcome of an item import."""
    imported: int = Field(0, ge=0)
    items: List[ITPItemRead] = Field(default_factory=list)
    errors: List[ImportRowError] = Field(default_factory=list)
