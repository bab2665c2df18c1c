"""Inventory ledger: signed stock movements that never go below zero.

Every change to a material's on-hand quantity goes through `apply_batch`:
the projected balance after each delta is checked first, and only when all
of them stay non-negative are the movements written, inside one
`stock_transaction`.  A rejected batch writes nothing.
"""

import logging
from dataclasses import dataclass

from mycotrack.middleware.exceptions import InsufficientStock
from mycotrack.models.material import InventoryMovement
from mycotrack.models.statuses import MovementType, ProductionStage
from mycotrack.store.base import MovementMeta
from mycotrack.tenancy import TenantContext

logger = logging.getLogger(__name__)

# Float residue tolerated when a balance lands exactly on zero
STOCK_EPSILON = 1e-9


@dataclass
class StockDelta:
    material_id: str
    quantity: float                 # signed: + stock in, - stock out
    movement_type: MovementType
    reason: str | None = None
    batch_id: str | None = None
    stage: ProductionStage | None = None
    reference_id: str | None = None


class InventoryLedger:
    def __init__(self, ctx: TenantContext):
        self.ctx = ctx

    async def get_stock(self, material_id: str) -> float:
        return await self.ctx.store.get_inventory(self.ctx.tenant_id, material_id)

    async def apply_delta(self, delta: StockDelta) -> InventoryMovement:
        movements = await self.apply_batch([delta])
        return movements[0]

    async def apply_batch(self, deltas: list[StockDelta]) -> list[InventoryMovement]:
        """Validate then write all deltas atomically, in order.

        Raises InsufficientStock (nothing written) if any running balance
        would drop below zero.
        """
        if not deltas:
            return []

        store = self.ctx.store
        material_ids = {d.material_id for d in deltas}

        async with store.stock_transaction(self.ctx.tenant_id, material_ids):
            balances = {mid: await self.get_stock(mid) for mid in material_ids}

            projected = dict(balances)
            requested = dict.fromkeys(material_ids, 0.0)
            for delta in deltas:
                projected[delta.material_id] += delta.quantity
                requested[delta.material_id] += delta.quantity
                if projected[delta.material_id] < -STOCK_EPSILON:
                    logger.warning(
                        "Ledger rejected %s: on hand %s, change %s",
                        delta.material_id,
                        balances[delta.material_id],
                        requested[delta.material_id],
                    )
                    raise InsufficientStock(
                        delta.material_id,
                        available=balances[delta.material_id],
                        requested=requested[delta.material_id],
                    )

            movements = []
            for delta in deltas:
                movement = await store.update_stock(
                    self.ctx.tenant_id,
                    delta.material_id,
                    delta.quantity,
                    MovementMeta(
                        movement_type=delta.movement_type,
                        reason=delta.reason,
                        batch_id=delta.batch_id,
                        stage=delta.stage,
                        reference_id=delta.reference_id,
                        performed_by=self.ctx.actor,
                    ),
                )
                movements.append(movement)

        logger.info(
            "Ledger applied %d movement(s) across %d material(s)",
            len(movements), len(material_ids),
        )
        return movements

    async def history(self, material_id: str | None = None) -> list[InventoryMovement]:
        """Read-only movement history, oldest first."""
        return await self.ctx.store.movements(self.ctx.tenant_id, material_id)
