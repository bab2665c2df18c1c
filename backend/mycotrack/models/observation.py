"""Observation: persisted result of one maturity scoring run."""

import uuid
from datetime import datetime

from sqlalchemy import (
    DateTime, Enum as SAEnum, Float, ForeignKey, Integer, JSON, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from mycotrack.database import Base
from mycotrack.models.statuses import AlertLevel, CapShape
from mycotrack.utils.timeutil import utcnow


class Observation(Base):
    __tablename__ = "observations"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    batch_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("batches.id"), nullable=False, index=True
    )
    flush_number: Mapped[int] = mapped_column(Integer, default=1)

    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    pinning_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    days_since_pinning: Mapped[int] = mapped_column(Integer, default=0)

    # ── Sample aggregate ─────────────────────────────────────
    sample_size: Mapped[int] = mapped_column(Integer, default=0)
    avg_diameter: Mapped[float] = mapped_column(Float, default=0.0)
    dominant_shape: Mapped[CapShape] = mapped_column(
        SAEnum(CapShape, native_enum=False), default=CapShape.CONVEX
    )
    flat_percentage: Mapped[float] = mapped_column(Float, default=0.0)
    samples: Mapped[list | None] = mapped_column(JSON)

    # ── Scoring result ───────────────────────────────────────
    maturity_index: Mapped[int] = mapped_column(Integer, default=0)
    suggested_status: Mapped[str] = mapped_column(String(30))
    # Operator-confirmed label (may differ from the suggestion)
    status_label: Mapped[str] = mapped_column(String(30))
    alert_level: Mapped[AlertLevel | None] = mapped_column(
        SAEnum(AlertLevel, native_enum=False)
    )
    alert_message: Mapped[str | None] = mapped_column(Text)

    recorded_by: Mapped[str | None] = mapped_column(String(200))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
