"""Stock reconciliation for stage-log saves and edits.

A stage log records material selections as (quantity field, material id
field) pairs.  Saving a new log consumes those quantities; editing a log
reverts what the old version consumed and consumes what the new version
asks for, but only for materials whose quantity actually changed.

Flow for one save:
  1. extract {material_id: qty} from the new fields (and the old fields)
  2. plan reverts / consumes per changed material
  3. dry-run: physical stock + (reverts - consumes) must stay >= 0
  4. commit every revert, then every consume, as one ledger batch

Virtual stock (physical + what the edited log already reserves) is the
ceiling shown to an operator editing an existing log.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from mycotrack.middleware.exceptions import InsufficientInventory, InsufficientStock
from mycotrack.models.material import InventoryMovement
from mycotrack.models.statuses import MovementType, ProductionStage
from mycotrack.services.ledger import STOCK_EPSILON, InventoryLedger, StockDelta
from mycotrack.store.base import MATERIALS

logger = logging.getLogger(__name__)

# quantity field → material id field, per consuming stage
STAGE_CONSUMPTION_FIELDS: dict[ProductionStage, dict[str, str]] = {
    ProductionStage.CULTURE: {
        "culture_qty": "culture_material_id",
        "dish_qty": "dish_material_id",
        "agar_qty": "agar_material_id",
    },
    ProductionStage.SPAWN: {
        "grain_qty": "grain_material_id",
        "bag_qty": "bag_material_id",
    },
    ProductionStage.SUBSTRATE: {
        "base_qty": "base_material_id",
        "supp_qty": "supplement_id",
        "additive_qty": "additive_id",
    },
    ProductionStage.INOCULATION: {
        "inoculation_bag_qty": "inoculation_bag_id",
    },
}


def extract_consumption(
    stage: ProductionStage, fields: Mapping[str, Any] | None
) -> dict[str, float]:
    """Map material id → total quantity a log's fields consume.

    Fields without a material selection, or with a zero / missing quantity,
    consume nothing.
    """
    consumption: dict[str, float] = {}
    if not fields:
        return consumption
    for qty_field, material_field in STAGE_CONSUMPTION_FIELDS.get(stage, {}).items():
        material_id = fields.get(material_field)
        quantity = fields.get(qty_field)
        if not material_id or quantity is None:
            continue
        quantity = float(quantity)
        if quantity <= 0:
            continue
        consumption[material_id] = consumption.get(material_id, 0.0) + quantity
    return consumption


@dataclass
class ReconciliationPlan:
    stage: ProductionStage
    # material id → quantity returned to stock / taken from stock
    reverts: dict[str, float] = field(default_factory=dict)
    consumes: dict[str, float] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.reverts and not self.consumes

    @property
    def net_delta(self) -> dict[str, float]:
        """Projected signed stock change per material."""
        net: dict[str, float] = {}
        for material_id, qty in self.reverts.items():
            net[material_id] = net.get(material_id, 0.0) + qty
        for material_id, qty in self.consumes.items():
            net[material_id] = net.get(material_id, 0.0) - qty
        return net


def plan_reconciliation(
    stage: ProductionStage,
    new_fields: Mapping[str, Any],
    old_fields: Mapping[str, Any] | None = None,
) -> ReconciliationPlan:
    new = extract_consumption(stage, new_fields)
    old = extract_consumption(stage, old_fields)

    plan = ReconciliationPlan(stage=stage)
    for material_id in [*old, *(m for m in new if m not in old)]:
        old_qty = old.get(material_id, 0.0)
        new_qty = new.get(material_id, 0.0)
        if old_qty == new_qty:
            continue
        if old_qty > 0:
            plan.reverts[material_id] = old_qty
        if new_qty > 0:
            plan.consumes[material_id] = new_qty
    return plan


def virtual_stock(
    physical: float,
    material_id: str,
    stage: ProductionStage,
    original_fields: Mapping[str, Any] | None = None,
) -> float:
    """Ceiling for a field while editing: physical + the log's own reservation."""
    return physical + extract_consumption(stage, original_fields).get(material_id, 0.0)


# ── Form-field stock badge ───────────────────────────────────

class StockBadge(str, enum.Enum):
    OUT_OF_STOCK = "OUT_OF_STOCK"
    INSUFFICIENT = "INSUFFICIENT"
    MAX_AVAILABLE = "MAX_AVAILABLE"
    IN_STOCK = "IN_STOCK"


@dataclass
class FieldStockStatus:
    badge: StockBadge
    limit: float
    physical: float


def field_stock_status(
    physical: float,
    requested: float,
    *,
    material_id: str,
    stage: ProductionStage,
    original_fields: Mapping[str, Any] | None = None,
) -> FieldStockStatus:
    limit = virtual_stock(physical, material_id, stage, original_fields)
    editing = original_fields is not None
    if limit <= 0:
        badge = StockBadge.OUT_OF_STOCK
    elif requested > limit:
        badge = StockBadge.INSUFFICIENT
    elif editing and limit > physical:
        badge = StockBadge.MAX_AVAILABLE
    else:
        badge = StockBadge.IN_STOCK
    return FieldStockStatus(badge=badge, limit=limit, physical=physical)


# ── Commit ───────────────────────────────────────────────────

class StockReconciler:
    def __init__(self, ledger: InventoryLedger):
        self.ledger = ledger
        self.ctx = ledger.ctx

    async def _material_name(self, material_id: str) -> str:
        material = await self.ctx.store.get(MATERIALS, self.ctx.tenant_id, material_id)
        return material.name if material else material_id

    async def check(self, plan: ReconciliationPlan) -> None:
        """Dry run: raise InsufficientInventory for the first material that
        would go negative.  Touches nothing."""
        for material_id, delta in plan.net_delta.items():
            stock = await self.ledger.get_stock(material_id)
            if stock + delta < -STOCK_EPSILON:
                name = await self._material_name(material_id)
                logger.warning(
                    "Save rejected: %s would drop to %s", name, stock + delta
                )
                raise InsufficientInventory(material_id, name, stock + delta)

    async def reconcile(
        self,
        stage: ProductionStage,
        new_fields: Mapping[str, Any],
        *,
        log_id: str,
        batch_id: str,
        old_fields: Mapping[str, Any] | None = None,
    ) -> list[InventoryMovement]:
        """Apply the stock side of saving (or editing) one stage log."""
        plan = plan_reconciliation(stage, new_fields, old_fields)
        if plan.is_empty:
            return []

        await self.check(plan)

        editing = old_fields is not None
        deltas = [
            StockDelta(
                material_id=material_id,
                quantity=qty,
                movement_type=MovementType.ADJUSTMENT,
                reason=f"Log Edit Revert ({log_id})",
                batch_id=batch_id,
                stage=stage,
                reference_id=log_id,
            )
            for material_id, qty in plan.reverts.items()
        ]
        deltas += [
            StockDelta(
                material_id=material_id,
                quantity=-qty,
                movement_type=MovementType.CONSUMPTION,
                reason=(
                    f"Log Edit Apply ({log_id})" if editing
                    else f"{stage.value} Consumption"
                ),
                batch_id=batch_id,
                stage=stage,
                reference_id=log_id,
            )
            for material_id, qty in plan.consumes.items()
        ]

        logger.info(
            "Reconciling %s log %s: %d revert(s), %d consume(s)",
            stage.value, log_id, len(plan.reverts), len(plan.consumes),
        )
        try:
            return await self.ledger.apply_batch(deltas)
        except InsufficientStock as exc:
            name = await self._material_name(exc.material_id)
            raise InsufficientInventory(exc.material_id, name) from exc
