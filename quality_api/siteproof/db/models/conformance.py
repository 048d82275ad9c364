from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from siteproof.db.base import Base, TimestampMixin, UUIDPkMixin


class ConformanceRecord(UUIDPkMixin, TimestampMixin, Base):
    """Inspection result of one ITP item on one lot. At most one per (lot, item)."""
    __tablename__ = "conformance_records"
    __table_args__ = (UniqueConstraint("lot_id", "item_id", name="uq_conformance_records_lot_item"),)

    lot_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("lots.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("itp_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Copied from the item on write so per-template cascades need no join.
    template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("itp_templates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    result_pass_fail: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # PASS | FAIL | N/A
    result_numeric: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    result_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_non_conformance: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    corrective_action: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    inspector_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    inspection_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    approval_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
