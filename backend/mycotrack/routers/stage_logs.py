"""Stage log router.

Endpoints:
    GET   /api/batches/{id}/logs/{stage}            Logs of one stage
    POST  /api/batches/{id}/logs/{stage}            Record a stage log
    PUT   /api/batches/{id}/logs/{stage}/{log_id}   Edit a stage log (stock is re-reconciled)

Incubation, fruiting and harvest logs are listed here but written by their
own endpoints and never edited.
"""

from fastapi import APIRouter, Depends

from mycotrack.deps import get_context
from mycotrack.models.statuses import ProductionStage
from mycotrack.schemas.batch import HarvestLogOut, ObservationOut
from mycotrack.schemas.stage_logs import IncubationSnapshotOut, StageLogOut, StageLogRequest
from mycotrack.services import batch_items, stage_logs
from mycotrack.tenancy import TenantContext

router = APIRouter()

_LIST_SCHEMAS = {
    ProductionStage.INCUBATION: IncubationSnapshotOut,
    ProductionStage.FRUITING: ObservationOut,
    ProductionStage.HARVEST: HarvestLogOut,
}


@router.get("/{batch_id}/logs/{stage}")
async def list_stage_logs(
    batch_id: str,
    stage: ProductionStage,
    ctx: TenantContext = Depends(get_context),
):
    await batch_items.get_batch(ctx, batch_id)
    schema = _LIST_SCHEMAS.get(stage, StageLogOut)
    logs = await stage_logs.list_stage_logs(ctx, batch_id, stage)
    return [schema.model_validate(log) for log in logs]


@router.post("/{batch_id}/logs/{stage}", response_model=StageLogOut, status_code=201)
async def create_stage_log(
    batch_id: str,
    stage: ProductionStage,
    body: StageLogRequest,
    ctx: TenantContext = Depends(get_context),
):
    return await stage_logs.save_stage_log(
        ctx, batch_id, stage, body.fields, date_started=body.date_started
    )


@router.put("/{batch_id}/logs/{stage}/{log_id}", response_model=StageLogOut)
async def update_stage_log(
    batch_id: str,
    stage: ProductionStage,
    log_id: str,
    body: StageLogRequest,
    ctx: TenantContext = Depends(get_context),
):
    return await stage_logs.save_stage_log(
        ctx, batch_id, stage, body.fields, log_id=log_id, date_started=body.date_started
    )
