"""Pydantic schemas for delivery orders and the alert outbox."""

from datetime import datetime

from pydantic import BaseModel

from mycotrack.models.statuses import (
    AlertChannel, AlertLevel, AlertRecipient, DeliveryStatus,
)


class DeliveryOrderOut(BaseModel):
    id: str
    batch_id: str
    flush_number: int
    species: str | None = None
    estimated_yield: float
    delivery_date: datetime
    recipient: str
    status: DeliveryStatus
    email_content: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class DeliveryStatusRequest(BaseModel):
    status: DeliveryStatus


class RescheduleRequest(BaseModel):
    delivery_date: datetime


class PendingAlertOut(BaseModel):
    id: str
    batch_id: str | None = None
    title: str
    message: str
    level: AlertLevel
    recipient: AlertRecipient | None = None
    channel: AlertChannel | None = None
    created_at: datetime
    acknowledged_at: datetime | None = None

    model_config = {"from_attributes": True}
