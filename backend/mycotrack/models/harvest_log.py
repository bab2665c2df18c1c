"""HarvestLog: graded yield for one flush, plus the post-harvest action."""

import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Enum as SAEnum, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from mycotrack.database import Base
from mycotrack.models.statuses import HarvestAction
from mycotrack.utils.timeutil import utcnow


class HarvestLog(Base):
    __tablename__ = "harvest_logs"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    batch_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("batches.id"), nullable=False, index=True
    )
    flush_number: Mapped[int] = mapped_column(Integer, nullable=False)

    harvest_date: Mapped[date] = mapped_column(Date, nullable=False)
    grade_a_yield: Mapped[float] = mapped_column(Float, default=0.0)   # kg
    grade_b_yield: Mapped[float] = mapped_column(Float, default=0.0)   # kg
    total_yield: Mapped[float] = mapped_column(Float, default=0.0)     # kg

    action: Mapped[HarvestAction] = mapped_column(
        SAEnum(HarvestAction, native_enum=False), nullable=False
    )

    recorded_by: Mapped[str | None] = mapped_column(String(200))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
