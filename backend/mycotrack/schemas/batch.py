"""Pydantic schemas for batch items, observations and harvests."""

from datetime import date, datetime

from pydantic import BaseModel, Field

from mycotrack.models.statuses import (
    AlertLevel, BatchStatus, CapShape, DeliveryStatus, HarvestAction, ItemStatus,
    MaturityStatus,
)


# ── Items ───────────────────────────────────────────────────

class BatchItemOut(BaseModel):
    id: str
    batch_id: str
    sequence: int
    status: ItemStatus
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class IncubationUpdateRequest(BaseModel):
    """Incubation-room triage: set a status on hand-picked items."""
    item_ids: list[str] = Field(..., min_length=1)
    status: ItemStatus


class FruitingFailRequest(BaseModel):
    item_ids: list[str] = Field(..., min_length=1)


class BulkUpdateResult(BaseModel):
    status: ItemStatus
    updated: int
    skipped: int = 0


class ItemCountsOut(BaseModel):
    counts: dict[ItemStatus, int]
    active: int
    ready: int
    failed: int
    total: int


# ── Observations ────────────────────────────────────────────

class SampleIn(BaseModel):
    diameter: float = Field(..., ge=0)   # cm
    shape: CapShape
    block_id: str | None = None


class ObservationRequest(BaseModel):
    samples: list[SampleIn] = Field(default_factory=list)
    date: datetime | None = None
    pinning_date: datetime | None = None
    # Operator override; defaults to the suggested status
    status: MaturityStatus | None = None


class ObservationPreviewOut(BaseModel):
    sample_size: int
    avg_diameter: float
    dominant_shape: CapShape
    flat_percentage: float
    maturity_index: int
    days_since_pinning: int
    suggested_status: MaturityStatus
    alert_level: AlertLevel | None = None
    alert_message: str | None = None
    projected_yield_kg: float


class ObservationOut(BaseModel):
    id: str
    batch_id: str
    flush_number: int
    date: datetime
    pinning_date: datetime | None = None
    days_since_pinning: int
    sample_size: int
    avg_diameter: float
    dominant_shape: CapShape
    flat_percentage: float
    maturity_index: int
    suggested_status: str
    status_label: str
    alert_level: AlertLevel | None = None
    alert_message: str | None = None
    recorded_by: str | None = None

    model_config = {"from_attributes": True}


class ObservationResult(BaseModel):
    observation: ObservationOut
    updated: int
    skipped: int
    delivery_order_id: str | None = None


# ── Harvest ─────────────────────────────────────────────────

class HarvestRequest(BaseModel):
    # Sign is checked by the workflow so the error carries its own code
    harvest_date: date
    grade_a_yield: float = 0.0
    grade_b_yield: float = 0.0
    action: HarvestAction


class HarvestLogOut(BaseModel):
    id: str
    batch_id: str
    flush_number: int
    harvest_date: date
    grade_a_yield: float
    grade_b_yield: float
    total_yield: float
    action: HarvestAction
    recorded_by: str | None = None

    model_config = {"from_attributes": True}


class HarvestResult(BaseModel):
    harvest: HarvestLogOut
    current_flush: int
    batch_status: BatchStatus | None = None
    actual_yield: float
    items_reset: int
    delivery_status: DeliveryStatus | None = None
    delivery_order_id: str | None = None
