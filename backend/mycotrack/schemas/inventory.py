"""Pydantic schemas for materials, stock and the movement ledger."""

from datetime import datetime

from pydantic import BaseModel, Field

from mycotrack.models.statuses import MaterialCategory, MovementType, ProductionStage


# ── Stock overview ──────────────────────────────────────────

class StockOut(BaseModel):
    material_id: str
    name: str
    category: MaterialCategory
    uom: str
    standard_cost: float
    quantity_on_hand: float


# ── Receipt (stock in) ─────────────────────────────────────

class StockReceiptRequest(BaseModel):
    material_id: str
    quantity: float = Field(..., gt=0)
    reference: str | None = None


# ── Stocktake ───────────────────────────────────────────────

class StockAdjustmentRequest(BaseModel):
    """Set stock to the physically counted quantity."""
    material_id: str
    actual_quantity: float = Field(..., ge=0)
    reason: str = Field(..., min_length=1)


# ── Movement history ────────────────────────────────────────

class MovementOut(BaseModel):
    id: str
    material_id: str
    movement_type: MovementType
    quantity: float
    reason: str | None = None
    batch_id: str | None = None
    stage: ProductionStage | None = None
    reference_id: str | None = None
    performed_by: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Edit limits ─────────────────────────────────────────────

class FieldLimitOut(BaseModel):
    material_id: str
    physical: float
    limit: float
    badge: str


class MaterialCostLineOut(BaseModel):
    material_id: str
    name: str
    uom: str
    quantity: float
    unit_cost: float
    cost: float


class BatchMaterialCostOut(BaseModel):
    batch_id: str
    lines: list[MaterialCostLineOut]
    total_cost: float
