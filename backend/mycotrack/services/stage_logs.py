"""Stage log workflow: the orchestration layer over stock and items.

  save_stage_log          validate → reconcile stock → persist log
                          (inoculation also generates the batch's items)
  update_incubation_items explicit status change + count snapshot
  mark_items_failed       explicit FAILED on selected fruiting items
  record_observation      score samples → batch-wide transition →
                          delivery trigger → alerts
  record_harvest          yield log → flush / completion → dispatch

Every operation validates before it writes; a rejected save leaves stock,
logs and items untouched.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable

from mycotrack import events
from mycotrack.config import settings
from mycotrack.middleware.exceptions import (
    BusinessLogicError, ImmutableLogError, ItemSelectionMismatch, NegativeYield,
    ResourceNotFoundError,
)
from mycotrack.models.batch import Batch, BatchItem
from mycotrack.models.delivery_order import DeliveryOrder
from mycotrack.models.harvest_log import HarvestLog
from mycotrack.models.observation import Observation
from mycotrack.models.production_log import IncubationSnapshot, ProductionLog
from mycotrack.models.statuses import (
    IMMUTABLE_STAGES, MATURITY_TO_ITEM_STATUS, AlertLevel, BatchStatus, HarvestAction,
    ItemStatus, MaturityStatus, ProductionStage,
)
from mycotrack.schemas.stage_logs import validate_stage_fields
from mycotrack.services import batch_items
from mycotrack.services.alerts import enqueue_alert
from mycotrack.services.batch_items import TransitionResult
from mycotrack.services.delivery import dispatch_on_harvest, trigger_delivery
from mycotrack.services.ledger import InventoryLedger
from mycotrack.services.maturity import (
    HarvestAlert, MaturityBaseline, MaturityScore, Sample, SampleAggregate,
    aggregate_samples, calculate_maturity_index, evaluate_batch_status,
    evaluate_harvest_status, round_half_up,
)
from mycotrack.services.stock_reconciliation import StockReconciler
from mycotrack.store.base import BATCHES, LOGS_HARVEST, LOGS_OBSERVATIONS, STAGE_LOG_COLLECTIONS
from mycotrack.tenancy import TenantContext
from mycotrack.utils.activity import log_activity
from mycotrack.utils.numbering import stage_log_code
from mycotrack.utils.timeutil import as_utc, utcnow

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# Stage logs
# ═══════════════════════════════════════════════════════════════

async def list_stage_logs(
    ctx: TenantContext, batch_id: str, stage: ProductionStage
) -> list[Any]:
    return await ctx.store.get_all(
        STAGE_LOG_COLLECTIONS[stage], ctx.tenant_id, batch_id=batch_id
    )


async def save_stage_log(
    ctx: TenantContext,
    batch_id: str,
    stage: ProductionStage,
    fields: dict[str, Any],
    *,
    log_id: str | None = None,
    date_started: datetime | None = None,
) -> ProductionLog:
    """Create (log_id=None) or edit a Culture/Spawn/Substrate/Inoculation log.

    Inoculation items are generated once, when the log is created with
    bags_packed > 0.  Editing the log later only moves stock by the
    difference; it never adds or removes items, even if bags_packed changes.
    """
    if stage in IMMUTABLE_STAGES:
        raise ImmutableLogError(stage.value)

    batch = await batch_items.get_batch(ctx, batch_id)
    collection = STAGE_LOG_COLLECTIONS[stage]
    validated = validate_stage_fields(stage, fields)

    existing = None
    if log_id is not None:
        existing = await ctx.store.get(collection, ctx.tenant_id, log_id)
        if existing is None or existing.batch_id != batch_id:
            raise ResourceNotFoundError(f"{stage.value.title()} log", log_id)

    reconciler = StockReconciler(InventoryLedger(ctx))
    now = utcnow()

    if existing is not None:
        await reconciler.reconcile(
            stage, validated,
            log_id=existing.id, batch_id=batch.id, old_fields=existing.fields,
        )
        existing.fields = validated
        if date_started is not None:
            existing.date_started = date_started
        existing.last_modified = now
        log = await ctx.store.update(collection, existing)
        action = "UPDATE_LOG"
    else:
        new_id = stage_log_code(stage)
        await reconciler.reconcile(stage, validated, log_id=new_id, batch_id=batch.id)
        log = ProductionLog(
            id=new_id,
            tenant_id=ctx.tenant_id,
            batch_id=batch.id,
            stage=stage,
            fields=validated,
            date_started=date_started or now,
            created_by=ctx.actor,
            created_at=now,
        )
        await ctx.store.add(collection, log)
        action = "CREATE_LOG"

        if stage == ProductionStage.INOCULATION and validated["bags_packed"] > 0:
            await batch_items.generate_items(ctx, batch.id, validated["bags_packed"])

    await log_activity(
        ctx,
        action=action,
        entity_type="stage_log",
        entity_id=log.id,
        summary=f"{'Updated' if existing else 'Recorded'} {stage.value} log for batch {batch.id}",
    )
    await ctx.feed.publish(
        events.STAGE_LOG_SAVED, ctx.tenant_id,
        batch_id=batch.id, stage=stage.value, log_id=log.id, edited=existing is not None,
    )
    return log


# ═══════════════════════════════════════════════════════════════
# Explicit item updates
# ═══════════════════════════════════════════════════════════════

async def update_incubation_items(
    ctx: TenantContext,
    batch_id: str,
    item_ids: list[str],
    status: ItemStatus,
) -> tuple[list[BatchItem], IncubationSnapshot]:
    """Triage selected incubation items, then snapshot the room's counts."""
    batch = await batch_items.get_batch(ctx, batch_id)
    updated = await batch_items.bulk_set_status(ctx, batch.id, item_ids, status)
    if not updated:
        raise ItemSelectionMismatch()

    counts = await batch_items.status_counts(ctx, batch.id)
    snapshot = IncubationSnapshot(
        id=str(uuid.uuid4()),
        tenant_id=ctx.tenant_id,
        batch_id=batch.id,
        room_no=batch.incubation_location or batch.location or "Unassigned",
        counts={
            s.value: counts[s] for s in (
                ItemStatus.INOCULATED, ItemStatus.INCUBATING, ItemStatus.READY_TO_FRUIT,
                ItemStatus.CONTAMINATED, ItemStatus.DISPOSED,
            )
        },
        success_count=counts[ItemStatus.READY_TO_FRUIT],
        fail_count=counts[ItemStatus.CONTAMINATED] + counts[ItemStatus.DISPOSED],
        notes=f"Bulk Update: {len(updated)} items set to {status.value}",
        date_started=utcnow(),
        created_by=ctx.actor,
    )
    await ctx.store.add(STAGE_LOG_COLLECTIONS[ProductionStage.INCUBATION], snapshot)

    await log_activity(
        ctx,
        action="UPDATE_STATUS",
        entity_type="batch",
        entity_id=batch.id,
        summary=snapshot.notes,
    )
    await ctx.feed.publish(
        events.ITEMS_UPDATED, ctx.tenant_id,
        batch_id=batch.id, status=status.value, updated=len(updated),
    )
    return updated, snapshot


async def mark_items_failed(
    ctx: TenantContext, batch_id: str, item_ids: list[str]
) -> list[BatchItem]:
    batch = await batch_items.get_batch(ctx, batch_id)
    updated = await batch_items.bulk_set_status(ctx, batch.id, item_ids, ItemStatus.FAILED)
    if not updated:
        raise ItemSelectionMismatch(
            "None of the selected blocks were found in this batch. Refresh and try again."
        )
    await log_activity(
        ctx,
        action="UPDATE_STATUS",
        entity_type="batch",
        entity_id=batch.id,
        summary=f"Marked {len(updated)} fruiting blocks as FAILED",
    )
    await ctx.feed.publish(
        events.ITEMS_UPDATED, ctx.tenant_id,
        batch_id=batch.id, status=ItemStatus.FAILED.value, updated=len(updated),
    )
    return updated


# ═══════════════════════════════════════════════════════════════
# Observations
# ═══════════════════════════════════════════════════════════════

@dataclass
class ObservationPreview:
    aggregate: SampleAggregate
    score: MaturityScore
    suggested_status: MaturityStatus
    alert: HarvestAlert | None
    pinning_date: datetime | None
    projected_yield_kg: float


@dataclass
class ObservationOutcome:
    observation: Observation
    transition: TransitionResult
    delivery_order: DeliveryOrder | None


def batch_baseline(batch: Batch) -> MaturityBaseline:
    return MaturityBaseline(
        target_diameter_cm=batch.baseline_cap_diameter or settings.default_target_diameter_cm,
        target_maturation_days=batch.baseline_maturation_days or settings.default_maturation_days,
    )


async def latest_pinning_date(ctx: TenantContext, batch_id: str) -> datetime | None:
    observations = await ctx.store.get_all(LOGS_OBSERVATIONS, ctx.tenant_id, batch_id=batch_id)
    for observation in reversed(observations):
        if observation.pinning_date is not None:
            return as_utc(observation.pinning_date)
    return None


async def preview_observation(
    ctx: TenantContext,
    batch_id: str,
    samples: Iterable[Sample],
    *,
    pinning_date: datetime | None = None,
    now: datetime | None = None,
) -> ObservationPreview:
    """Score a sampling session without writing anything."""
    batch = await batch_items.get_batch(ctx, batch_id)
    if pinning_date is None:
        pinning_date = await latest_pinning_date(ctx, batch.id)
    else:
        pinning_date = as_utc(pinning_date)

    aggregate = aggregate_samples(samples)
    score = calculate_maturity_index(
        aggregate.avg_diameter,
        aggregate.flat_percentage,
        pinning_date,
        batch_baseline(batch),
        now=now,
    )
    stats = await batch_items.fruiting_stats(ctx, batch.id)
    weight_g = batch.est_avg_weight_per_block or 0.0
    return ObservationPreview(
        aggregate=aggregate,
        score=score,
        suggested_status=evaluate_batch_status(
            score.index, aggregate.flat_percentage, pinning_date is not None
        ),
        alert=evaluate_harvest_status(score.index, aggregate.flat_percentage, batch.id),
        pinning_date=pinning_date,
        projected_yield_kg=round_half_up(weight_g * (stats.active + stats.ready) / 1000, 1),
    )


async def record_observation(
    ctx: TenantContext,
    batch_id: str,
    samples: Iterable[Sample],
    *,
    observed_at: datetime | None = None,
    pinning_date: datetime | None = None,
    status: MaturityStatus | None = None,
) -> ObservationOutcome:
    """Persist a scored observation and move the batch's fruiting items.

    `status` overrides the suggested label (the only way to reach
    Over Mature).
    """
    samples = list(samples)
    observed_at = as_utc(observed_at) if observed_at else utcnow()
    preview = await preview_observation(
        ctx, batch_id, samples, pinning_date=pinning_date, now=observed_at
    )
    batch = await batch_items.get_batch(ctx, batch_id)
    label = status or preview.suggested_status
    flush = batch.current_flush or 1

    observation = Observation(
        id=str(uuid.uuid4()),
        tenant_id=ctx.tenant_id,
        batch_id=batch.id,
        flush_number=flush,
        date=observed_at,
        pinning_date=preview.pinning_date,
        days_since_pinning=preview.score.days_since_pinning,
        sample_size=preview.aggregate.sample_size,
        avg_diameter=preview.aggregate.avg_diameter,
        dominant_shape=preview.aggregate.dominant_shape,
        flat_percentage=preview.aggregate.flat_percentage,
        samples=[
            {"diameter": s.diameter, "shape": s.shape.value, "block_id": s.block_id}
            for s in samples
        ],
        maturity_index=preview.score.index,
        suggested_status=preview.suggested_status.value,
        status_label=label.value,
        alert_level=preview.alert.level if preview.alert else None,
        alert_message=preview.alert.message if preview.alert else None,
        recorded_by=ctx.actor,
        created_at=utcnow(),
    )
    await ctx.store.add(LOGS_OBSERVATIONS, observation)

    target = MATURITY_TO_ITEM_STATUS[label]
    transition = await batch_items.batch_wide_transition(ctx, batch.id, target)

    order = None
    if transition.updated > 0:
        stats = await batch_items.fruiting_stats(ctx, batch.id)
        order = await trigger_delivery(
            ctx, batch, target,
            observation_date=observed_at,
            active_count=stats.active,
            ready_count=stats.ready,
        )
        summary = (
            f"Successfully updated: {transition.updated} blocks to \"{label.value}\". "
            f"Skipped (Failed/Exception): {transition.skipped} blocks."
        )
        title = "Batch Observation Saved"
    else:
        summary = (
            f"No active blocks were updated. "
            f"(Skipped {transition.skipped} blocks marked as Failed/Exception)"
        )
        title = "Observation Saved"

    await enqueue_alert(ctx, title, summary, batch_id=batch.id)
    if preview.alert is not None:
        await enqueue_alert(
            ctx,
            "Harvest Alert" if preview.alert.level == AlertLevel.WARNING else "Maturity Notice",
            preview.alert.message,
            level=preview.alert.level,
            batch_id=batch.id,
            recipient=preview.alert.recipient,
            channel=preview.alert.channel,
        )

    await log_activity(
        ctx,
        action="UPDATE_STATUS",
        entity_type="batch",
        entity_id=batch.id,
        summary=f"Observation (index {observation.maturity_index}%): {summary}",
    )
    await ctx.feed.publish(
        events.OBSERVATION_RECORDED, ctx.tenant_id,
        batch_id=batch.id, observation_id=observation.id,
        maturity_index=observation.maturity_index, status=label.value,
    )
    if transition.updated:
        await ctx.feed.publish(
            events.ITEMS_UPDATED, ctx.tenant_id,
            batch_id=batch.id, status=target.value, updated=transition.updated,
        )
    return ObservationOutcome(observation, transition, order)


# ═══════════════════════════════════════════════════════════════
# Harvest
# ═══════════════════════════════════════════════════════════════

@dataclass
class HarvestOutcome:
    harvest: HarvestLog
    batch: Batch
    items_reset: int
    delivery_order: DeliveryOrder | None


async def record_harvest(
    ctx: TenantContext,
    batch_id: str,
    *,
    harvest_date: date,
    grade_a_yield: float,
    grade_b_yield: float,
    action: HarvestAction,
) -> HarvestOutcome:
    if grade_a_yield < 0 or grade_b_yield < 0:
        raise NegativeYield()

    batch = await batch_items.get_batch(ctx, batch_id)
    if batch.status == BatchStatus.COMPLETED:
        raise BusinessLogicError(f"Batch {batch.id} is already completed", "BATCH_COMPLETED")

    flush = batch.current_flush or 1
    total = grade_a_yield + grade_b_yield
    harvest = HarvestLog(
        id=str(uuid.uuid4()),
        tenant_id=ctx.tenant_id,
        batch_id=batch.id,
        flush_number=flush,
        harvest_date=harvest_date,
        grade_a_yield=grade_a_yield,
        grade_b_yield=grade_b_yield,
        total_yield=total,
        action=action,
        recorded_by=ctx.actor,
        created_at=utcnow(),
    )
    await ctx.store.add(LOGS_HARVEST, harvest)

    batch.actual_yield = (batch.actual_yield or 0.0) + total
    items_reset = 0
    if action == HarvestAction.DISPOSE:
        batch.status = BatchStatus.COMPLETED
        batch.end_date = harvest_date
    else:
        batch.current_flush = flush + 1
        items_reset = await batch_items.reset_for_next_flush(ctx, batch.id)
    await ctx.store.update(BATCHES, batch)

    order = await dispatch_on_harvest(ctx, batch.id, flush)

    logger.info(
        "Harvest %s flush %d: %.2f kg, %s", batch.id, flush, total, action.value
    )
    await log_activity(
        ctx,
        action="HARVEST",
        entity_type="batch",
        entity_id=batch.id,
        summary=(
            f"Recorded {total:g} kg for flush #{flush} "
            f"({'batch completed' if action == HarvestAction.DISPOSE else f'next flush #{flush + 1}'})"
        ),
    )
    await ctx.feed.publish(
        events.HARVEST_RECORDED, ctx.tenant_id,
        batch_id=batch.id, flush_number=flush, total_yield=total, action=action.value,
    )
    return HarvestOutcome(harvest, batch, items_reset, order)
