"""In-process CollectionStore backed by plain dicts."""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, Iterable

from mycotrack.middleware.exceptions import ResourceNotFoundError
from mycotrack.models.material import InventoryMovement, InventoryRecord
from mycotrack.store.base import INVENTORY, INVENTORY_MOVEMENTS, CollectionStore, MovementMeta
from mycotrack.utils.timeutil import utcnow

logger = logging.getLogger(__name__)


class MemoryStore(CollectionStore):
    def __init__(self):
        # key → {item_id: item}; dicts keep insertion order
        self._collections: dict[str, dict[str, Any]] = {}
        self._stock_lock = asyncio.Lock()

    def _bucket(self, key: str) -> dict[str, Any]:
        return self._collections.setdefault(key, {})

    # ── Generic collections ──────────────────────────────────

    async def get_all(self, key: str, tenant_id: str, **filters: Any) -> list:
        return [
            item for item in self._bucket(key).values()
            if item.tenant_id == tenant_id
            and all(getattr(item, name) == value for name, value in filters.items())
        ]

    async def get(self, key: str, tenant_id: str, item_id: str) -> Any | None:
        item = self._bucket(key).get(item_id)
        if item is None or item.tenant_id != tenant_id:
            return None
        return item

    async def add(self, key: str, item: Any) -> Any:
        if item.id is None:
            item.id = str(uuid.uuid4())
        self._bucket(key)[item.id] = item
        return item

    async def add_all(self, key: str, items: Iterable[Any]) -> None:
        for item in items:
            await self.add(key, item)

    async def update(self, key: str, item: Any) -> Any:
        bucket = self._bucket(key)
        if item.id not in bucket:
            raise ResourceNotFoundError(key, item.id)
        bucket[item.id] = item
        return item

    # ── Stock ────────────────────────────────────────────────

    def _record(self, tenant_id: str, material_id: str) -> InventoryRecord | None:
        for record in self._bucket(INVENTORY).values():
            if record.tenant_id == tenant_id and record.material_id == material_id:
                return record
        return None

    async def get_inventory(self, tenant_id: str, material_id: str) -> float:
        record = self._record(tenant_id, material_id)
        return record.quantity_on_hand if record else 0.0

    async def update_stock(
        self,
        tenant_id: str,
        material_id: str,
        signed_delta: float,
        meta: MovementMeta,
    ) -> InventoryMovement:
        now = utcnow()
        record = self._record(tenant_id, material_id)
        if record is None:
            record = InventoryRecord(
                id=str(uuid.uuid4()),
                tenant_id=tenant_id,
                material_id=material_id,
                quantity_on_hand=0.0,
                location="Default",
            )
            await self.add(INVENTORY, record)
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
        await self.add(INVENTORY_MOVEMENTS, movement)
        return movement

    async def movements(
        self, tenant_id: str, material_id: str | None = None
    ) -> list[InventoryMovement]:
        if material_id is None:
            return await self.get_all(INVENTORY_MOVEMENTS, tenant_id)
        return await self.get_all(INVENTORY_MOVEMENTS, tenant_id, material_id=material_id)

    @asynccontextmanager
    async def stock_transaction(self, tenant_id: str, material_ids: Iterable[str]):
        material_ids = set(material_ids)
        async with self._stock_lock:
            balances = {
                material_id: await self.get_inventory(tenant_id, material_id)
                for material_id in material_ids
            }
            existing = set(self._bucket(INVENTORY))
            logged = set(self._bucket(INVENTORY_MOVEMENTS))
            try:
                yield self
            except BaseException:
                logger.warning(
                    "Rolling back stock window for %s", sorted(material_ids)
                )
                records = self._bucket(INVENTORY)
                for record_id in set(records) - existing:
                    del records[record_id]
                for material_id, quantity in balances.items():
                    record = self._record(tenant_id, material_id)
                    if record is not None:
                        record.quantity_on_hand = quantity
                movements = self._bucket(INVENTORY_MOVEMENTS)
                for movement_id in set(movements) - logged:
                    del movements[movement_id]
                raise

    async def commit(self) -> None:
        # Writes land directly in the dicts.
        return None
