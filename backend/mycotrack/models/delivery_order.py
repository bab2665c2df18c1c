"""DeliveryOrder: outbound shipment of a flush to the processing partner.

At most one PENDING/CONFIRMED order exists per (batch, flush); the delivery
trigger checks before it creates.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum as SAEnum, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mycotrack.database import Base
from mycotrack.models.statuses import DeliveryStatus
from mycotrack.utils.timeutil import utcnow


class DeliveryOrder(Base):
    __tablename__ = "delivery_orders"

    # DO-<timestamp>
    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    batch_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("batches.id"), nullable=False, index=True
    )
    flush_number: Mapped[int] = mapped_column(Integer, nullable=False)
    species: Mapped[str | None] = mapped_column(String(100))

    estimated_yield: Mapped[float] = mapped_column(Float, default=0.0)   # kg
    delivery_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    recipient: Mapped[str] = mapped_column(String(200), nullable=False)

    status: Mapped[DeliveryStatus] = mapped_column(
        SAEnum(DeliveryStatus, native_enum=False), default=DeliveryStatus.PENDING, index=True
    )
    email_content: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
