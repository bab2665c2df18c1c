"""PendingAlert: durable notification outbox.

Rows are written by the workflow and polled by the UI on start-up; an alert
stays pending until acknowledged.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum as SAEnum, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mycotrack.database import Base
from mycotrack.models.statuses import AlertChannel, AlertLevel, AlertRecipient
from mycotrack.utils.timeutil import utcnow


class PendingAlert(Base):
    __tablename__ = "pending_alerts"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    batch_id: Mapped[str | None] = mapped_column(String(64), index=True)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    level: Mapped[AlertLevel] = mapped_column(
        SAEnum(AlertLevel, native_enum=False), default=AlertLevel.INFO
    )
    recipient: Mapped[AlertRecipient | None] = mapped_column(
        SAEnum(AlertRecipient, native_enum=False)
    )
    channel: Mapped[AlertChannel | None] = mapped_column(
        SAEnum(AlertChannel, native_enum=False)
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )
    acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    acknowledged_by: Mapped[str | None] = mapped_column(String(200))
