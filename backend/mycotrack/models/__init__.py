"""Aggregate model imports for Alembic auto-detection."""

# ── Reference data / inventory ───────────────────────────────
from mycotrack.models.material import InventoryMovement, InventoryRecord, Material  # noqa: F401

# ── Production ───────────────────────────────────────────────
from mycotrack.models.batch import Batch, BatchItem  # noqa: F401
from mycotrack.models.production_log import IncubationSnapshot, ProductionLog  # noqa: F401
from mycotrack.models.observation import Observation  # noqa: F401
from mycotrack.models.harvest_log import HarvestLog  # noqa: F401

# ── Logistics / audit ────────────────────────────────────────
from mycotrack.models.delivery_order import DeliveryOrder  # noqa: F401
from mycotrack.models.activity_log import ActivityLog  # noqa: F401
from mycotrack.models.pending_alert import PendingAlert  # noqa: F401
