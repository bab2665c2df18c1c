"""Batch and BatchItem: the production run and its tracked blocks.

A Batch is one production run of a single species.  It is created during
planning (outside this service) and mutated by stage transitions and harvest
recording.  Each physical block inoculated for the batch becomes a BatchItem
whose status moves through the lifecycle defined in models.statuses.

Batch lifecycle:  PLANNING → CULTURE → … → FRUITING → HARVESTING → COMPLETED
"""

import uuid
from datetime import date, datetime

from sqlalchemy import (
    Date, DateTime, Enum as SAEnum, Float, ForeignKey, Integer, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from mycotrack.database import Base
from mycotrack.models.statuses import BatchStatus, DeliveryStatus, ItemStatus
from mycotrack.utils.timeutil import utcnow


class Batch(Base):
    __tablename__ = "batches"

    # BT-YY-MM-NNN
    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    species: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[BatchStatus] = mapped_column(
        SAEnum(BatchStatus, native_enum=False), default=BatchStatus.PLANNING, index=True
    )

    # ── Locations ────────────────────────────────────────────
    location: Mapped[str | None] = mapped_column(String(100))
    incubation_location: Mapped[str | None] = mapped_column(String(100))
    fruiting_location: Mapped[str | None] = mapped_column(String(100))

    start_date: Mapped[date | None] = mapped_column(Date)
    end_date: Mapped[date | None] = mapped_column(Date)

    # ── Harvest readiness baselines ──────────────────────────
    baseline_cap_diameter: Mapped[float | None] = mapped_column(Float)      # cm
    baseline_maturation_days: Mapped[int | None] = mapped_column(Integer)   # days from pinning
    est_avg_weight_per_block: Mapped[float | None] = mapped_column(Float)   # grams

    # ── Yield / flush tracking ───────────────────────────────
    current_flush: Mapped[int] = mapped_column(Integer, default=1)
    target_yield: Mapped[float | None] = mapped_column(Float)               # kg
    actual_yield: Mapped[float] = mapped_column(Float, default=0.0)         # kg

    # Mirrors the active delivery order; kept apart from `status` so a
    # completed batch is never re-labelled by logistics.
    delivery_status: Mapped[DeliveryStatus | None] = mapped_column(
        SAEnum(DeliveryStatus, native_enum=False)
    )

    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class BatchItem(Base):
    """One physical block (inoculated bag) within a batch."""
    __tablename__ = "batch_items"

    # <batch_id>-NNN
    id: Mapped[str] = mapped_column(String(80), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    batch_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("batches.id"), nullable=False, index=True
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[ItemStatus] = mapped_column(
        SAEnum(ItemStatus, native_enum=False), default=ItemStatus.INOCULATED, index=True
    )
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
