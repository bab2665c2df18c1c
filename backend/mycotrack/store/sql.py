"""CollectionStore over an AsyncSession.

Each collection key maps to an ORM model plus optional fixed criteria (the
four editable stage logs share the production_logs table and are told apart
by stage).  Writes are flushed, not committed: the request-scoped session
from database.get_db owns the transaction, so a failure anywhere in a
request rolls every collection back together.  `commit` is called by the
request dependency before change events go out, and `stock_transaction`
runs its body inside a SAVEPOINT.
"""

import uuid
from contextlib import asynccontextmanager
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mycotrack.middleware.exceptions import ResourceNotFoundError
from mycotrack.models import (
    ActivityLog, Batch, BatchItem, DeliveryOrder, HarvestLog, IncubationSnapshot,
    InventoryMovement, InventoryRecord, Material, Observation, PendingAlert,
    ProductionLog,
)
from mycotrack.models.statuses import ProductionStage
from mycotrack.store import base
from mycotrack.store.base import CollectionStore, MovementMeta
from mycotrack.utils.timeutil import utcnow

# key → (model, fixed criteria, ordering)
REGISTRY: dict[str, tuple[type, tuple, tuple]] = {
    base.MATERIALS: (Material, (), (Material.name,)),
    base.INVENTORY: (InventoryRecord, (), (InventoryRecord.material_id,)),
    base.INVENTORY_MOVEMENTS: (InventoryMovement, (), (InventoryMovement.created_at,)),
    base.BATCHES: (Batch, (), (Batch.created_at,)),
    base.BATCH_ITEMS: (BatchItem, (), (BatchItem.batch_id, BatchItem.sequence)),
    base.LOGS_CULTURE: (
        ProductionLog, (ProductionLog.stage == ProductionStage.CULTURE,),
        (ProductionLog.created_at,),
    ),
    base.LOGS_SPAWN: (
        ProductionLog, (ProductionLog.stage == ProductionStage.SPAWN,),
        (ProductionLog.created_at,),
    ),
    base.LOGS_SUBSTRATE: (
        ProductionLog, (ProductionLog.stage == ProductionStage.SUBSTRATE,),
        (ProductionLog.created_at,),
    ),
    base.LOGS_INOCULATION: (
        ProductionLog, (ProductionLog.stage == ProductionStage.INOCULATION,),
        (ProductionLog.created_at,),
    ),
    base.LOGS_INCUBATION: (IncubationSnapshot, (), (IncubationSnapshot.date_started,)),
    base.LOGS_OBSERVATIONS: (Observation, (), (Observation.date, Observation.created_at)),
    base.LOGS_HARVEST: (HarvestLog, (), (HarvestLog.created_at,)),
    base.DELIVERY_ORDERS: (DeliveryOrder, (), (DeliveryOrder.created_at,)),
    base.ACTIVITY_LOGS: (ActivityLog, (), (ActivityLog.created_at,)),
    base.PENDING_ALERTS: (PendingAlert, (), (PendingAlert.created_at,)),
}


class SqlAlchemyStore(CollectionStore):
    def __init__(self, session: AsyncSession):
        self.session = session

    def _select(self, key: str, tenant_id: str, **filters: Any):
        try:
            model, criteria, ordering = REGISTRY[key]
        except KeyError:
            raise ValueError(f"Unknown collection: {key}")
        stmt = select(model).where(model.tenant_id == tenant_id, *criteria)
        for name, value in filters.items():
            stmt = stmt.where(getattr(model, name) == value)
        return model, stmt.order_by(*ordering)

    # ── Generic collections ──────────────────────────────────

    async def get_all(self, key: str, tenant_id: str, **filters: Any) -> list:
        _, stmt = self._select(key, tenant_id, **filters)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get(self, key: str, tenant_id: str, item_id: str) -> Any | None:
        model, stmt = self._select(key, tenant_id)
        result = await self.session.execute(stmt.where(model.id == item_id))
        return result.scalar_one_or_none()

    async def add(self, key: str, item: Any) -> Any:
        self.session.add(item)
        await self.session.flush()
        return item

    async def add_all(self, key: str, items: Iterable[Any]) -> None:
        self.session.add_all(list(items))
        await self.session.flush()

    async def update(self, key: str, item: Any) -> Any:
        model, _, _ = REGISTRY[key]
        if await self.session.get(model, item.id) is None:
            raise ResourceNotFoundError(key, item.id)
        merged = await self.session.merge(item)
        await self.session.flush()
        return merged

    # ── Stock ────────────────────────────────────────────────

    async def _record(self, tenant_id: str, material_id: str) -> InventoryRecord | None:
        result = await self.session.execute(
            select(InventoryRecord).where(
                InventoryRecord.tenant_id == tenant_id,
                InventoryRecord.material_id == material_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_inventory(self, tenant_id: str, material_id: str) -> float:
        record = await self._record(tenant_id, material_id)
        return record.quantity_on_hand if record else 0.0

    async def update_stock(
        self,
        tenant_id: str,
        material_id: str,
        signed_delta: float,
        meta: MovementMeta,
    ) -> InventoryMovement:
        now = utcnow()
        record = await self._record(tenant_id, material_id)
        if record is None:
            record = InventoryRecord(
                id=str(uuid.uuid4()),
                tenant_id=tenant_id,
                material_id=material_id,
                quantity_on_hand=0.0,
                location="Default",
            )
            self.session.add(record)
        record.quantity_on_hand = (record.quantity_on_hand or 0.0) + signed_delta
        record.updated_at = now

        movement = InventoryMovement(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            material_id=material_id,
            quantity=signed_delta,
            movement_type=meta.movement_type,
            reason=meta.reason,
            batch_id=meta.batch_id,
            stage=meta.stage,
            reference_id=meta.reference_id,
            performed_by=meta.performed_by,
            created_at=now,
        )
        self.session.add(movement)
        await self.session.flush()
        return movement

    async def movements(
        self, tenant_id: str, material_id: str | None = None
    ) -> list[InventoryMovement]:
        if material_id is None:
            return await self.get_all(base.INVENTORY_MOVEMENTS, tenant_id)
        return await self.get_all(
            base.INVENTORY_MOVEMENTS, tenant_id, material_id=material_id
        )

    @asynccontextmanager
    async def stock_transaction(self, tenant_id: str, material_ids: Iterable[str]):
        # Lock rows in a stable order so concurrent saves cannot deadlock.
        await self.session.execute(
            select(InventoryRecord)
            .where(
                InventoryRecord.tenant_id == tenant_id,
                InventoryRecord.material_id.in_(sorted(set(material_ids))),
            )
            .order_by(InventoryRecord.material_id)
            .with_for_update()
        )
        async with self.session.begin_nested():
            yield self

    async def commit(self) -> None:
        await self.session.commit()
