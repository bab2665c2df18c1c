"""Inventory operations outside stage logs: receipts, stocktakes, costing."""

import logging
from collections import defaultdict
from dataclasses import dataclass

from mycotrack import events
from mycotrack.middleware.exceptions import BusinessLogicError, ResourceNotFoundError
from mycotrack.models.material import InventoryMovement, Material
from mycotrack.models.statuses import MovementType
from mycotrack.services.ledger import InventoryLedger, StockDelta
from mycotrack.store.base import BATCHES, MATERIALS
from mycotrack.tenancy import TenantContext
from mycotrack.utils.activity import log_activity

logger = logging.getLogger(__name__)


async def _material(ctx: TenantContext, material_id: str) -> Material:
    material = await ctx.store.get(MATERIALS, ctx.tenant_id, material_id)
    if material is None:
        raise ResourceNotFoundError("Material", material_id)
    return material


async def list_stock(ctx: TenantContext) -> list[tuple[Material, float]]:
    """Every material with its current on-hand quantity."""
    rows = []
    for material in await ctx.store.get_all(MATERIALS, ctx.tenant_id):
        rows.append(
            (material, await ctx.store.get_inventory(ctx.tenant_id, material.id))
        )
    return rows


async def receive_stock(
    ctx: TenantContext,
    material_id: str,
    quantity: float,
    reference: str | None = None,
) -> InventoryMovement:
    """Stock-in from a supplier delivery."""
    if quantity <= 0:
        raise BusinessLogicError("Received quantity must be positive", "INVALID_QUANTITY")
    material = await _material(ctx, material_id)

    movement = await InventoryLedger(ctx).apply_delta(
        StockDelta(
            material_id=material_id,
            quantity=quantity,
            movement_type=MovementType.PROCUREMENT,
            reason=f"Stock receipt{f' ({reference})' if reference else ''}",
            reference_id=reference,
        )
    )
    await log_activity(
        ctx,
        action="RECEIVE_STOCK",
        entity_type="material",
        entity_id=material_id,
        summary=f"Received {quantity:g} {material.uom} of {material.name}",
    )
    await ctx.feed.publish(
        events.STOCK_ADJUSTED, ctx.tenant_id,
        material_id=material_id, quantity=quantity,
    )
    return movement


async def adjust_to_count(
    ctx: TenantContext,
    material_id: str,
    actual_quantity: float,
    reason: str,
) -> InventoryMovement | None:
    """Stocktake: bring on-hand stock to the counted quantity.

    Returns None when the count already matches.
    """
    if actual_quantity < 0:
        raise BusinessLogicError("Counted quantity cannot be negative", "INVALID_QUANTITY")
    material = await _material(ctx, material_id)
    ledger = InventoryLedger(ctx)

    current = await ledger.get_stock(material_id)
    delta = actual_quantity - current
    if delta == 0:
        return None

    movement = await ledger.apply_delta(
        StockDelta(
            material_id=material_id,
            quantity=delta,
            movement_type=MovementType.ADJUSTMENT,
            reason=reason,
        )
    )
    logger.info("Stocktake %s: %s → %s", material.name, current, actual_quantity)
    await log_activity(
        ctx,
        action="ADJUST_STOCK",
        entity_type="material",
        entity_id=material_id,
        summary=(
            f"Stock adjustment for {material.name}: {delta:+g} {material.uom}. "
            f"Reason: {reason}"
        ),
        details={"previous": current, "counted": actual_quantity},
    )
    await ctx.feed.publish(
        events.STOCK_ADJUSTED, ctx.tenant_id,
        material_id=material_id, quantity=delta,
    )
    return movement


@dataclass
class MaterialCostLine:
    material_id: str
    name: str
    uom: str
    quantity: float
    unit_cost: float
    cost: float


@dataclass
class BatchMaterialCost:
    batch_id: str
    lines: list[MaterialCostLine]
    total_cost: float


async def batch_material_cost(ctx: TenantContext, batch_id: str) -> BatchMaterialCost:
    """Net material usage of a batch priced at standard cost.

    Consumption and edit adjustments are netted per material; a material
    whose net movement is not negative did not cost the batch anything.
    """
    if await ctx.store.get(BATCHES, ctx.tenant_id, batch_id) is None:
        raise ResourceNotFoundError("Batch", batch_id)

    net: dict[str, float] = defaultdict(float)
    for movement in await ctx.store.movements(ctx.tenant_id):
        if movement.batch_id != batch_id:
            continue
        if movement.movement_type not in (MovementType.CONSUMPTION, MovementType.ADJUSTMENT):
            continue
        net[movement.material_id] += movement.quantity

    lines = []
    for material_id, quantity in net.items():
        if quantity >= 0:
            continue
        material = await ctx.store.get(MATERIALS, ctx.tenant_id, material_id)
        used = -quantity
        unit_cost = (material.standard_cost or 0.0) if material else 0.0
        lines.append(MaterialCostLine(
            material_id=material_id,
            name=material.name if material else "Unknown Material",
            uom=material.uom if material else "",
            quantity=used,
            unit_cost=unit_cost,
            cost=round(used * unit_cost, 2),
        ))

    return BatchMaterialCost(
        batch_id=batch_id,
        lines=lines,
        total_cost=round(sum(line.cost for line in lines), 2),
    )
