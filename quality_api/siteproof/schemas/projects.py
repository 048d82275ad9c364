from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

LotStatus = Literal["pending", "in_progress", "completed", "approved", "rejected"]
ProjectStatus = Literal["active", "completed", "on_hold", "cancelled"]


class ProjectCreate(BaseModel):
    """Create project payload."""
    name: str = Field(..., min_length=1, description="Project name")
    project_number: Optional[str] = Field(None, description="Human project number, e.g. PRJ-001")
    organization_id: Optional[UUID] = Field(None)
    description: Optional[str] = Field(None)
    location: Optional[str] = Field(None)


class ProjectUpdate(BaseModel):
    """Partial project update; only supplied fields change."""
    name: Optional[str] = Field(None, min_length=1, description="Project name; null keeps the current name")
    project_number: Optional[str] = Field(None)
    description: Optional[str] = Field(None)
    location: Optional[str] = Field(None)
    status: Optional[ProjectStatus] = Field(None, description="active | completed | on_hold | cancelled")


class ProjectRead(BaseModel):
    """Project read model."""
    id: UUID = Field(..., description="Project id")
    name: str = Field(...)
    project_number: Optional[str] = Field(None)
    organization_id: Optional[UUID] = Field(None)
    description: Optional[str] = Field(None)
    location: Optional[str] = Field(None)
    status: ProjectStatus = Field("active")
    created_at: datetime = Field(..., description="Created at")
    updated_at: datetime = Field(..., description="Updated at")

    class Config:
        from_attributes = True


class LotCreate(BaseModel):
    """Create lot payload; the project comes from the route."""
    lot_number: str = Field(..., min_length=1, description="Lot number, unique within the project")
    description: Optional[str] = Field(None)
    location_description: Optional[str] = Field(None)


class LotRead(BaseModel):
    """Lot read model."""
    id: UUID = Field(..., description="Lot id")
    project_id: UUID = Field(...)
    lot_number: str = Field(...)
    description: Optional[str] = Field(None)
    location_description: Optional[str] = Field(None)
    status: LotStatus = Field("pending")
    created_by: Optional[UUID] = Field(None)
    created_at: datetime = Field(..., description="Created at")
    updated_at: datetime = Field(..., description="Updated at")

    class Config:
        from_attributes = True


class DashboardStats(BaseModel):
    """Aggregate counts across projects, or within one project."""
    total_projects: int = Field(0, ge=0)
    active_projects: int = Field(0, ge=0)
    completed_projects: int = Field(0, ge=0)
    total_lots: int = Field(0, ge=0)
    pending_inspections: int = Field(0, ge=0, description="Lots still in status pending")
    completed_inspections: int = Field(0, ge=0, description="Lots in status completed")
    non_conformances: int = Field(0, ge=0, description="Conformance records flagged as non-conformance")
