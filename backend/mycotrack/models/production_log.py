"""Stage production logs and incubation snapshots.

One ProductionLog row per saved Culture / Spawn / Substrate / Inoculation
form.  The stage-specific fields (material selections, quantities, counts)
live in the `fields` JSON column and are validated by the matching schema in
mycotrack.schemas.stage_logs before they are written.

IncubationSnapshot is the point-in-time count-by-status record written after
every incubation bulk update.  Snapshots are never edited.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mycotrack.database import Base
from mycotrack.models.statuses import ProductionStage
from mycotrack.utils.timeutil import utcnow


class ProductionLog(Base):
    __tablename__ = "production_logs"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    batch_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("batches.id"), nullable=False, index=True
    )
    stage: Mapped[ProductionStage] = mapped_column(
        SAEnum(ProductionStage, native_enum=False), nullable=False, index=True
    )

    fields: Mapped[dict] = mapped_column(JSON, default=dict)

    date_started: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    created_by: Mapped[str | None] = mapped_column(String(200))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    last_modified: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class IncubationSnapshot(Base):
    __tablename__ = "incubation_snapshots"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    batch_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("batches.id"), nullable=False, index=True
    )

    room_no: Mapped[str] = mapped_column(String(100), default="Unassigned")
    # {"INOCULATED": n, "INCUBATING": n, ...}
    counts: Mapped[dict] = mapped_column(JSON, default=dict)
    success_count: Mapped[int] = mapped_column(Integer, default=0)
    fail_count: Mapped[int] = mapped_column(Integer, default=0)
    notes: Mapped[str | None] = mapped_column(Text)

    date_started: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    created_by: Mapped[str | None] = mapped_column(String(200))
