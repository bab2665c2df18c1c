"""Inventory router.

Endpoints:
    GET   /api/inventory/stock               Current stock per material
    GET   /api/inventory/movements           Movement ledger (optionally per material)
    POST  /api/inventory/receipt             Receive stock
    POST  /api/inventory/adjustment          Stocktake correction
    GET   /api/inventory/limits              Edit ceiling / badge for a form field
    GET   /api/inventory/batches/{id}/cost   Material cost of a batch
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query

from mycotrack.deps import get_context
from mycotrack.middleware.exceptions import ResourceNotFoundError
from mycotrack.models.statuses import IMMUTABLE_STAGES, ProductionStage
from mycotrack.schemas.inventory import (
    BatchMaterialCostOut,
    FieldLimitOut,
    MovementOut,
    StockAdjustmentRequest,
    StockOut,
    StockReceiptRequest,
)
from mycotrack.services import inventory
from mycotrack.services.ledger import InventoryLedger
from mycotrack.services.stock_reconciliation import field_stock_status
from mycotrack.store.base import STAGE_LOG_COLLECTIONS
from mycotrack.tenancy import TenantContext

router = APIRouter()


# ── GET /api/inventory/stock ────────────────────────────────

@router.get("/stock", response_model=list[StockOut])
async def get_stock_levels(ctx: TenantContext = Depends(get_context)):
    rows = await inventory.list_stock(ctx)
    return [
        StockOut(
            material_id=material.id,
            name=material.name,
            category=material.category,
            uom=material.uom,
            standard_cost=material.standard_cost or 0.0,
            quantity_on_hand=quantity,
        )
        for material, quantity in rows
    ]


# ── GET /api/inventory/movements ────────────────────────────

@router.get("/movements", response_model=list[MovementOut])
async def get_movements(
    material_id: str | None = Query(None),
    ctx: TenantContext = Depends(get_context),
):
    return await InventoryLedger(ctx).history(material_id)


# ── POST /api/inventory/receipt ─────────────────────────────

@router.post("/receipt", response_model=MovementOut, status_code=201)
async def receive_stock(
    body: StockReceiptRequest,
    ctx: TenantContext = Depends(get_context),
):
    return await inventory.receive_stock(ctx, body.material_id, body.quantity, body.reference)


# ── POST /api/inventory/adjustment ──────────────────────────

@router.post("/adjustment", response_model=MovementOut | None)
async def adjust_stock(
    body: StockAdjustmentRequest,
    ctx: TenantContext = Depends(get_context),
):
    """Returns null when the counted quantity already matches."""
    return await inventory.adjust_to_count(
        ctx, body.material_id, body.actual_quantity, body.reason
    )


# ── GET /api/inventory/limits ───────────────────────────────

@router.get("/limits", response_model=FieldLimitOut)
async def get_field_limit(
    material_id: str,
    stage: ProductionStage,
    requested: float = Query(0, ge=0),
    log_id: str | None = Query(None, description="Log being edited, if any"),
    ctx: TenantContext = Depends(get_context),
):
    original_fields = None
    if log_id is not None and stage not in IMMUTABLE_STAGES:
        log = await ctx.store.get(STAGE_LOG_COLLECTIONS[stage], ctx.tenant_id, log_id)
        if log is None:
            raise ResourceNotFoundError(f"{stage.value.title()} log", log_id)
        original_fields = log.fields

    physical = await InventoryLedger(ctx).get_stock(material_id)
    result = field_stock_status(
        physical, requested,
        material_id=material_id, stage=stage, original_fields=original_fields,
    )
    return FieldLimitOut(
        material_id=material_id,
        physical=result.physical,
        limit=result.limit,
        badge=result.badge.value,
    )


# ── GET /api/inventory/batches/{batch_id}/cost ──────────────

@router.get("/batches/{batch_id}/cost", response_model=BatchMaterialCostOut)
async def get_batch_cost(batch_id: str, ctx: TenantContext = Depends(get_context)):
    cost = await inventory.batch_material_cost(ctx, batch_id)
    return BatchMaterialCostOut(
        batch_id=cost.batch_id,
        lines=[asdict(line) for line in cost.lines],
        total_cost=cost.total_cost,
    )
