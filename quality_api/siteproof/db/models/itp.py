from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from siteproof.db.base import Base, TimestampMixin, UUIDPkMixin, utcnow


class ITPTemplate(UUIDPkMixin, TimestampMixin, Base):
    """Named, versioned Inspection & Test Plan checklist owned by an organization."""
    __tablename__ = "itp_templates"

    organization_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    version: Mapped[str] = mapped_column(Text, nullable=False, default="1.0")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    items: Mapped[List["ITPItem"]] = relationship(
        back_populates="template",
        order_by="ITPItem.order_index",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ITPItem(UUIDPkMixin, Base):
    """One checklist line of a template."""
    __tablename__ = "itp_items"

    template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("itp_templates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_number: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    specification_reference: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # pass_fail | numeric | text | photo_required | visual | measurement | ...
    inspection_method: Mapped[str] = mapped_column(Text, nullable=False, default="pass_fail")
    acceptance_criteria: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_mandatory: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    template: Mapped[ITPTemplate] = relationship(back_populates="items")


class LotITPAssignment(UUIDPkMixin, Base):
    """Association "template T is active on lot L"; removed assignments are kept inactive."""
    __tablename__ = "lot_itp_assignments"
    __table_args__ = (
        Index(
            "uq_lot_itp_assignments_active_pair",
            "lot_id",
            "template_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    lot_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("lots.id", ondelete="CASCADE"), nullable=False, index=True
    )
    template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("itp_templates.id"), nullable=False, index=True
    )
    assigned_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    removed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    template: Mapped[ITPTemplate] = relationship(lazy="joined")
