"""Material reference data, stock levels and the inventory movement ledger.

Material is created externally (master data).  InventoryRecord holds the
running on-hand total per material; InventoryMovement is the append-only
audit ledger behind it: every stock change (procurement, stage consumption,
edit reverts, stocktake adjustments) is one signed row.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    DateTime, Enum as SAEnum, Float, ForeignKey, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from mycotrack.database import Base
from mycotrack.models.statuses import MaterialCategory, MovementType, ProductionStage
from mycotrack.utils.timeutil import utcnow


class Material(Base):
    __tablename__ = "materials"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[MaterialCategory] = mapped_column(
        SAEnum(MaterialCategory, native_enum=False), default=MaterialCategory.OTHER
    )
    # KG | BAG | LITER | PCS | GRAM
    uom: Mapped[str] = mapped_column(String(20), default="KG")
    standard_cost: Mapped[float] = mapped_column(Float, default=0.0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class InventoryRecord(Base):
    """Current on-hand quantity per material (running total of movements)."""
    __tablename__ = "inventory"
    __table_args__ = (UniqueConstraint("tenant_id", "material_id"),)

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    material_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("materials.id"), nullable=False, index=True
    )

    quantity_on_hand: Mapped[float] = mapped_column(Float, default=0.0)
    location: Mapped[str] = mapped_column(String(100), default="Default")

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class InventoryMovement(Base):
    """Append-only ledger row.  Never updated after insert."""
    __tablename__ = "inventory_movements"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    material_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("materials.id"), nullable=False, index=True
    )

    movement_type: Mapped[MovementType] = mapped_column(
        SAEnum(MovementType, native_enum=False), nullable=False
    )
    # Positive for stock in, negative for stock out
    quantity: Mapped[float] = mapped_column(Float, nullable=False)

    # Traceability: which batch / stage / log caused the movement
    batch_id: Mapped[str | None] = mapped_column(String(64), index=True)
    stage: Mapped[ProductionStage | None] = mapped_column(
        SAEnum(ProductionStage, native_enum=False)
    )
    reference_id: Mapped[str | None] = mapped_column(String(64))
    reason: Mapped[str | None] = mapped_column(Text)

    performed_by: Mapped[str | None] = mapped_column(String(200))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )
