"""Closed status enumerations and their transition tables.

Every status value used by the production models is defined here.  Values
arriving from the API are parsed into these enums by pydantic, so an unknown
status string is rejected before it reaches a service.

Item lifecycle (batch_items.status):

    INOCULATED → INCUBATING → READY_TO_FRUIT → FRUITING_PINNING
        → FRUITING_MATURING → FRUITING_READY → FRUITING_OVERMATURE

    FAILED | CONTAMINATED | DISPOSED are reachable from any non-exception
    state and are terminal for automatic (batch-wide) operations.

Delivery lifecycle (delivery_orders.status):

    PENDING → CONFIRMED → IN_TRANSIT → DELIVERED
    (CANCELLED from any non-terminal state)
"""

import enum


class ProductionStage(str, enum.Enum):
    CULTURE = "CULTURE"
    SPAWN = "SPAWN"
    SUBSTRATE = "SUBSTRATE"
    INOCULATION = "INOCULATION"
    INCUBATION = "INCUBATION"
    FRUITING = "FRUITING"
    HARVEST = "HARVEST"


# Stages whose records are point-in-time snapshots and never edited in place
IMMUTABLE_STAGES = frozenset({
    ProductionStage.INCUBATION,
    ProductionStage.FRUITING,
    ProductionStage.HARVEST,
})


class BatchStatus(str, enum.Enum):
    PLANNING = "PLANNING"
    CULTURE = "CULTURE"
    SPAWN = "SPAWN"
    SUBSTRATE = "SUBSTRATE"
    INOCULATION = "INOCULATION"
    INCUBATION = "INCUBATION"
    FRUITING = "FRUITING"
    HARVESTING = "HARVESTING"
    COMPLETED = "COMPLETED"


class MovementType(str, enum.Enum):
    PROCUREMENT = "PROCUREMENT"
    CONSUMPTION = "CONSUMPTION"
    ADJUSTMENT = "ADJUSTMENT"
    INITIAL = "INITIAL"
    REPLACEMENT = "REPLACEMENT"


class MaterialCategory(str, enum.Enum):
    GRAINS = "GRAINS"
    SUBSTRATES = "SUBSTRATES"
    CONSUMABLES = "CONSUMABLES"
    CHEMICALS = "CHEMICALS"
    SPECIES = "SPECIES"
    PACKAGING = "PACKAGING"
    PETRI_DISH = "PETRI_DISH"
    AGAR = "AGAR"
    OTHER = "OTHER"


class HarvestAction(str, enum.Enum):
    NEXT_FLUSH = "NEXT_FLUSH"
    DISPOSE = "DISPOSE"


# ── Item lifecycle ───────────────────────────────────────────

class ItemStatus(str, enum.Enum):
    INOCULATED = "INOCULATED"
    INCUBATING = "INCUBATING"
    READY_TO_FRUIT = "READY_TO_FRUIT"
    FRUITING_PINNING = "FRUITING_PINNING"
    FRUITING_MATURING = "FRUITING_MATURING"
    FRUITING_READY = "FRUITING_READY"
    FRUITING_OVERMATURE = "FRUITING_OVERMATURE"
    CONTAMINATED = "CONTAMINATED"
    DISPOSED = "DISPOSED"
    FAILED = "FAILED"

    @property
    def is_exception(self) -> bool:
        return self in EXCEPTION_STATUSES

    @property
    def is_fruiting(self) -> bool:
        return self in FRUITING_STATUSES


EXCEPTION_STATUSES = frozenset({
    ItemStatus.FAILED,
    ItemStatus.CONTAMINATED,
    ItemStatus.DISPOSED,
})

FRUITING_STATUSES = frozenset({
    ItemStatus.FRUITING_PINNING,
    ItemStatus.FRUITING_MATURING,
    ItemStatus.FRUITING_READY,
    ItemStatus.FRUITING_OVERMATURE,
})

# Items a batch-wide observation update may touch, and the statuses it may set
BATCH_WIDE_STATUSES = FRUITING_STATUSES | {ItemStatus.READY_TO_FRUIT}

ITEM_TRANSITIONS: dict[ItemStatus, frozenset[ItemStatus]] = {
    ItemStatus.INOCULATED: frozenset({
        ItemStatus.INCUBATING, ItemStatus.READY_TO_FRUIT,
    }) | EXCEPTION_STATUSES,
    ItemStatus.INCUBATING: frozenset({
        ItemStatus.READY_TO_FRUIT,
    }) | EXCEPTION_STATUSES,
    ItemStatus.READY_TO_FRUIT: FRUITING_STATUSES | EXCEPTION_STATUSES,
    ItemStatus.FRUITING_PINNING: BATCH_WIDE_STATUSES | EXCEPTION_STATUSES,
    ItemStatus.FRUITING_MATURING: BATCH_WIDE_STATUSES | EXCEPTION_STATUSES,
    ItemStatus.FRUITING_READY: BATCH_WIDE_STATUSES | EXCEPTION_STATUSES,
    ItemStatus.FRUITING_OVERMATURE: BATCH_WIDE_STATUSES | EXCEPTION_STATUSES,
    ItemStatus.CONTAMINATED: frozenset(),
    ItemStatus.DISPOSED: frozenset(),
    ItemStatus.FAILED: frozenset(),
}


def can_transition(current: ItemStatus, target: ItemStatus) -> bool:
    """True if an automatic operation may move an item from current to target.

    Re-applying the current status is allowed for non-exception states.
    """
    if current == target:
        return not current.is_exception
    return target in ITEM_TRANSITIONS[current]


# ── Delivery lifecycle ───────────────────────────────────────

class DeliveryStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


ACTIVE_DELIVERY_STATUSES = frozenset({
    DeliveryStatus.PENDING,
    DeliveryStatus.CONFIRMED,
})

DELIVERY_TRANSITIONS: dict[DeliveryStatus, frozenset[DeliveryStatus]] = {
    DeliveryStatus.PENDING: frozenset({
        DeliveryStatus.CONFIRMED, DeliveryStatus.IN_TRANSIT, DeliveryStatus.CANCELLED,
    }),
    DeliveryStatus.CONFIRMED: frozenset({
        DeliveryStatus.IN_TRANSIT, DeliveryStatus.CANCELLED,
    }),
    DeliveryStatus.IN_TRANSIT: frozenset({
        DeliveryStatus.DELIVERED, DeliveryStatus.CANCELLED,
    }),
    DeliveryStatus.DELIVERED: frozenset(),
    DeliveryStatus.CANCELLED: frozenset(),
}


# ── Maturity scoring vocabulary ──────────────────────────────

class CapShape(str, enum.Enum):
    CONVEX = "CONVEX"
    FLAT = "FLAT"
    UPTURNED = "UPTURNED"


class MaturityStatus(str, enum.Enum):
    GROWING = "Growing"
    APPROACHING_MATURITY = "Approaching Maturity"
    READY_TO_HARVEST = "Ready to Harvest"
    # Manual override only; never produced by the scoring engine
    OVER_MATURE = "Over Mature"


# Operator-facing maturity label → item status set by the batch-wide update
MATURITY_TO_ITEM_STATUS: dict[MaturityStatus, ItemStatus] = {
    MaturityStatus.GROWING: ItemStatus.FRUITING_PINNING,
    MaturityStatus.APPROACHING_MATURITY: ItemStatus.FRUITING_MATURING,
    MaturityStatus.READY_TO_HARVEST: ItemStatus.FRUITING_READY,
    MaturityStatus.OVER_MATURE: ItemStatus.FRUITING_OVERMATURE,
}


class AlertLevel(str, enum.Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class AlertRecipient(str, enum.Enum):
    VILLAGE_C = "VILLAGE_C"
    WORKERS = "WORKERS"
    MANAGER = "MANAGER"


class AlertChannel(str, enum.Enum):
    EMAIL = "EMAIL"
    PUSH = "PUSH"
    SMS_SYSTEM = "SMS_SYSTEM"
