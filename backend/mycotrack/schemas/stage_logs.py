"""Pydantic schemas for stage production logs.

Each consuming stage has a fixed field set: material selections paired with
the quantity drawn, plus descriptive counts.  The workflow validates the
raw `fields` payload against the stage's schema before any stock moves.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from mycotrack.models.statuses import ProductionStage


class _StageFields(BaseModel):
    model_config = {"extra": "forbid"}


class CultureFields(_StageFields):
    culture_material_id: str | None = None
    culture_qty: float = Field(0, ge=0)
    dish_material_id: str | None = None
    dish_qty: float = Field(0, ge=0)
    agar_material_id: str | None = None
    agar_qty: float = Field(0, ge=0)

    plates_produced: int = Field(0, ge=0)
    plates_contaminated: int = Field(0, ge=0)

    @model_validator(mode="after")
    def _contaminated_within_produced(self):
        if self.plates_contaminated > self.plates_produced:
            raise ValueError("plates_contaminated cannot exceed plates_produced")
        return self


class SpawnFields(_StageFields):
    grain_material_id: str | None = None
    grain_qty: float = Field(0, ge=0)
    bag_material_id: str | None = None
    bag_qty: float = Field(0, ge=0)

    success_count: int = Field(0, ge=0)
    fail_count: int = Field(0, ge=0)
    colonization_percent: float = Field(0, ge=0, le=100)


class SubstrateFields(_StageFields):
    base_material_id: str | None = None
    base_qty: float = Field(0, ge=0)
    supplement_id: str | None = None
    supp_qty: float = Field(0, ge=0)
    additive_id: str | None = None
    additive_qty: float = Field(0, ge=0)

    moisture_percent: float | None = Field(None, ge=0, le=100)
    # step name → done
    checklist: dict[str, bool] = Field(default_factory=dict)
    completion_percent: float = Field(0, ge=0, le=100)

    @model_validator(mode="after")
    def _completion_from_checklist(self):
        if self.checklist:
            done = sum(1 for v in self.checklist.values() if v)
            self.completion_percent = round(100 * done / len(self.checklist), 1)
        return self


class InoculationFields(_StageFields):
    inoculation_bag_id: str | None = None
    inoculation_bag_qty: float = Field(0, ge=0)

    # Intermediates produced by earlier stages; not drawn from stock
    spawn_qty_used: float = Field(0, ge=0)
    substrate_qty_used: float = Field(0, ge=0)
    bags_packed: int = Field(0, ge=0)


STAGE_FIELD_SCHEMAS: dict[ProductionStage, type[_StageFields]] = {
    ProductionStage.CULTURE: CultureFields,
    ProductionStage.SPAWN: SpawnFields,
    ProductionStage.SUBSTRATE: SubstrateFields,
    ProductionStage.INOCULATION: InoculationFields,
}


def validate_stage_fields(stage: ProductionStage, fields: dict[str, Any]) -> dict[str, Any]:
    """Parse and normalise a stage payload; raises pydantic.ValidationError."""
    schema = STAGE_FIELD_SCHEMAS[stage]
    return schema.model_validate(fields).model_dump()


# ── Requests / responses ────────────────────────────────────

class StageLogRequest(BaseModel):
    date_started: datetime | None = None
    fields: dict[str, Any] = Field(default_factory=dict)


class StageLogOut(BaseModel):
    id: str
    batch_id: str
    stage: ProductionStage
    fields: dict[str, Any]
    date_started: datetime
    created_by: str | None = None
    created_at: datetime
    last_modified: datetime | None = None

    model_config = {"from_attributes": True}


class IncubationSnapshotOut(BaseModel):
    id: str
    batch_id: str
    room_no: str
    counts: dict[str, int]
    success_count: int
    fail_count: int
    notes: str | None = None
    date_started: datetime
    created_by: str | None = None

    model_config = {"from_attributes": True}
