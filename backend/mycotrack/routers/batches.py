"""Batch production router: items, observations and harvests.

Endpoints:
    GET   /api/batches/{id}/items                   Items (optional ?status=)
    GET   /api/batches/{id}/items/counts            Count by status + fruiting stats
    POST  /api/batches/{id}/items/incubation        Incubation triage on selected items
    POST  /api/batches/{id}/items/fail              Mark selected fruiting items FAILED
    POST  /api/batches/{id}/observations/preview    Score samples without saving
    POST  /api/batches/{id}/observations            Record observation, move items
    POST  /api/batches/{id}/harvest                 Record harvest for the current flush
"""

from fastapi import APIRouter, Depends, Query

from mycotrack.deps import get_context
from mycotrack.models.statuses import ItemStatus
from mycotrack.schemas.batch import (
    BatchItemOut,
    BulkUpdateResult,
    FruitingFailRequest,
    HarvestLogOut,
    HarvestRequest,
    HarvestResult,
    IncubationUpdateRequest,
    ItemCountsOut,
    ObservationOut,
    ObservationPreviewOut,
    ObservationRequest,
    ObservationResult,
    SampleIn,
)
from mycotrack.services import batch_items, stage_logs
from mycotrack.services.maturity import Sample
from mycotrack.tenancy import TenantContext

router = APIRouter()


def _samples(samples: list[SampleIn]) -> list[Sample]:
    return [Sample(s.diameter, s.shape, s.block_id) for s in samples]


# ── Items ────────────────────────────────────────────────────

@router.get("/{batch_id}/items", response_model=list[BatchItemOut])
async def list_items(
    batch_id: str,
    status: ItemStatus | None = Query(None),
    ctx: TenantContext = Depends(get_context),
):
    await batch_items.get_batch(ctx, batch_id)
    return await batch_items.list_items(ctx, batch_id, status)


@router.get("/{batch_id}/items/counts", response_model=ItemCountsOut)
async def item_counts(batch_id: str, ctx: TenantContext = Depends(get_context)):
    await batch_items.get_batch(ctx, batch_id)
    counts = await batch_items.status_counts(ctx, batch_id)
    stats = await batch_items.fruiting_stats(ctx, batch_id)
    return ItemCountsOut(
        counts=counts,
        active=stats.active,
        ready=stats.ready,
        failed=stats.failed,
        total=stats.total,
    )


@router.post("/{batch_id}/items/incubation", response_model=BulkUpdateResult)
async def update_incubation_items(
    batch_id: str,
    body: IncubationUpdateRequest,
    ctx: TenantContext = Depends(get_context),
):
    updated, _ = await stage_logs.update_incubation_items(
        ctx, batch_id, body.item_ids, body.status
    )
    return BulkUpdateResult(
        status=body.status,
        updated=len(updated),
        skipped=len(set(body.item_ids)) - len(updated),
    )


@router.post("/{batch_id}/items/fail", response_model=BulkUpdateResult)
async def mark_items_failed(
    batch_id: str,
    body: FruitingFailRequest,
    ctx: TenantContext = Depends(get_context),
):
    updated = await stage_logs.mark_items_failed(ctx, batch_id, body.item_ids)
    return BulkUpdateResult(
        status=ItemStatus.FAILED,
        updated=len(updated),
        skipped=len(set(body.item_ids)) - len(updated),
    )


# ── Observations ─────────────────────────────────────────────

@router.post("/{batch_id}/observations/preview", response_model=ObservationPreviewOut)
async def preview_observation(
    batch_id: str,
    body: ObservationRequest,
    ctx: TenantContext = Depends(get_context),
):
    preview = await stage_logs.preview_observation(
        ctx, batch_id, _samples(body.samples),
        pinning_date=body.pinning_date, now=body.date,
    )
    return ObservationPreviewOut(
        sample_size=preview.aggregate.sample_size,
        avg_diameter=preview.aggregate.avg_diameter,
        dominant_shape=preview.aggregate.dominant_shape,
        flat_percentage=preview.aggregate.flat_percentage,
        maturity_index=preview.score.index,
        days_since_pinning=preview.score.days_since_pinning,
        suggested_status=preview.suggested_status,
        alert_level=preview.alert.level if preview.alert else None,
        alert_message=preview.alert.message if preview.alert else None,
        projected_yield_kg=preview.projected_yield_kg,
    )


@router.post("/{batch_id}/observations", response_model=ObservationResult, status_code=201)
async def record_observation(
    batch_id: str,
    body: ObservationRequest,
    ctx: TenantContext = Depends(get_context),
):
    outcome = await stage_logs.record_observation(
        ctx, batch_id, _samples(body.samples),
        observed_at=body.date, pinning_date=body.pinning_date, status=body.status,
    )
    return ObservationResult(
        observation=ObservationOut.model_validate(outcome.observation),
        updated=outcome.transition.updated,
        skipped=outcome.transition.skipped,
        delivery_order_id=outcome.delivery_order.id if outcome.delivery_order else None,
    )


# ── Harvest ──────────────────────────────────────────────────

@router.post("/{batch_id}/harvest", response_model=HarvestResult, status_code=201)
async def record_harvest(
    batch_id: str,
    body: HarvestRequest,
    ctx: TenantContext = Depends(get_context),
):
    outcome = await stage_logs.record_harvest(
        ctx, batch_id,
        harvest_date=body.harvest_date,
        grade_a_yield=body.grade_a_yield,
        grade_b_yield=body.grade_b_yield,
        action=body.action,
    )
    return HarvestResult(
        harvest=HarvestLogOut.model_validate(outcome.harvest),
        current_flush=outcome.batch.current_flush,
        batch_status=outcome.batch.status,
        actual_yield=outcome.batch.actual_yield,
        items_reset=outcome.items_reset,
        delivery_status=outcome.batch.delivery_status,
        delivery_order_id=outcome.delivery_order.id if outcome.delivery_order else None,
    )
