from __future__ import annotations

import uuid
from typing import List, Optional

from sqlalchemy import ForeignKey, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from siteproof.db.base import Base, TimestampMixin, UUIDPkMixin


class Project(UUIDPkMixin, TimestampMixin, Base):
    """Construction project owning a set of lots."""
    __tablename__ = "projects"

    organization_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    project_number: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active")
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    lots: Mapped[List["Lot"]] = relationship(
        back_populates="project", cascade="all, delete-orphan", passive_deletes=True
    )


class Lot(UUIDPkMixin, TimestampMixin, Base):
    """Inspectable unit of work within a project."""
    __tablename__ = "lots"
    __table_args__ = (UniqueConstraint("project_id", "lot_number", name="uq_lots_project_lot_number"),)

    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    lot_number: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # pending | in_progress | completed | approved | rejected
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    project: Mapped[Project] = relationship(back_populates="lots")
