"""Keyed collection store: the persistence contract the services run on.

Services never touch a session or a dict directly; they read and write
named collections scoped by tenant.  Two adapters implement the contract:

  - MemoryStore       dict-of-collections, for tests and local tooling
  - SqlAlchemyStore   ORM-backed, writes flush into the request transaction

Stock is special: `update_stock` moves the running total and appends the
ledger row together, and `stock_transaction` gives the InventoryLedger an
isolated all-or-nothing window over a set of materials.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import Any, Iterable

from mycotrack.models.material import InventoryMovement
from mycotrack.models.statuses import MovementType, ProductionStage

# ── Collection keys ──────────────────────────────────────────

MATERIALS = "materials"
INVENTORY = "inventory"
INVENTORY_MOVEMENTS = "inventory_movements"
BATCHES = "batches"
BATCH_ITEMS = "batch_items"
LOGS_CULTURE = "logs_culture"
LOGS_SPAWN = "logs_spawn"
LOGS_SUBSTRATE = "logs_substrate"
LOGS_INOCULATION = "logs_inoculation"
LOGS_INCUBATION = "logs_incubation"
LOGS_OBSERVATIONS = "logs_observations"
LOGS_HARVEST = "logs_harvest"
DELIVERY_ORDERS = "delivery_orders"
ACTIVITY_LOGS = "activity_logs"
PENDING_ALERTS = "pending_alerts"

STAGE_LOG_COLLECTIONS: dict[ProductionStage, str] = {
    ProductionStage.CULTURE: LOGS_CULTURE,
    ProductionStage.SPAWN: LOGS_SPAWN,
    ProductionStage.SUBSTRATE: LOGS_SUBSTRATE,
    ProductionStage.INOCULATION: LOGS_INOCULATION,
    ProductionStage.INCUBATION: LOGS_INCUBATION,
    ProductionStage.FRUITING: LOGS_OBSERVATIONS,
    ProductionStage.HARVEST: LOGS_HARVEST,
}


@dataclass
class MovementMeta:
    """Audit metadata attached to every stock movement."""
    movement_type: MovementType
    reason: str | None = None
    batch_id: str | None = None
    stage: ProductionStage | None = None
    reference_id: str | None = None
    performed_by: str | None = None


class CollectionStore(ABC):

    @abstractmethod
    async def get_all(self, key: str, tenant_id: str, **filters: Any) -> list:
        """Every item in the collection for the tenant, oldest first.

        Keyword filters are attribute equality matches.
        """

    @abstractmethod
    async def get(self, key: str, tenant_id: str, item_id: str) -> Any | None:
        ...

    @abstractmethod
    async def add(self, key: str, item: Any) -> Any:
        ...

    @abstractmethod
    async def add_all(self, key: str, items: Iterable[Any]) -> None:
        ...

    @abstractmethod
    async def update(self, key: str, item: Any) -> Any:
        """Replace the stored item with the same id."""

    @abstractmethod
    async def get_inventory(self, tenant_id: str, material_id: str) -> float:
        ...

    @abstractmethod
    async def update_stock(
        self,
        tenant_id: str,
        material_id: str,
        signed_delta: float,
        meta: MovementMeta,
    ) -> InventoryMovement:
        """Move the running total and append one ledger row.

        No balance check happens here; InventoryLedger owns that rule.
        """

    @abstractmethod
    async def movements(
        self, tenant_id: str, material_id: str | None = None
    ) -> list[InventoryMovement]:
        ...

    @abstractmethod
    def stock_transaction(
        self, tenant_id: str, material_ids: Iterable[str]
    ) -> AbstractAsyncContextManager["CollectionStore"]:
        """Isolated window over the given materials.

        No other stock write for those materials interleaves with the body,
        and an exception raised inside it leaves stock and movement history
        as they were on entry.
        """

    @abstractmethod
    async def commit(self) -> None:
        """Make the unit of work durable; called once per request."""
