"""Batch item state machine.

Items are created once per inoculation save and then only move through the
operations here.  Two bulk operations exist with different guards:

  bulk_set_status        explicit selection; the operator picked the items,
                         so no exception guard applies
  batch_wide_transition  every READY_TO_FRUIT / FRUITING_* item in the
                         batch; FAILED, CONTAMINATED and DISPOSED items are
                         never touched
"""

import logging
from collections import Counter
from dataclasses import dataclass

from mycotrack.middleware.exceptions import InvalidStatusTransition, ResourceNotFoundError
from mycotrack.models.batch import Batch, BatchItem
from mycotrack.models.statuses import (
    BATCH_WIDE_STATUSES, EXCEPTION_STATUSES, FRUITING_STATUSES, ItemStatus, can_transition,
)
from mycotrack.store.base import BATCH_ITEMS, BATCHES
from mycotrack.tenancy import TenantContext
from mycotrack.utils.numbering import item_code
from mycotrack.utils.timeutil import utcnow

logger = logging.getLogger(__name__)

# Items counted as still producing for yield estimates
ACTIVE_FRUITING_STATUSES = frozenset({
    ItemStatus.READY_TO_FRUIT,
    ItemStatus.FRUITING_PINNING,
    ItemStatus.FRUITING_MATURING,
})


@dataclass
class TransitionResult:
    status: ItemStatus
    updated: int
    skipped: int


@dataclass
class FruitingStats:
    active: int
    ready: int
    failed: int
    total: int


async def get_batch(ctx: TenantContext, batch_id: str) -> Batch:
    batch = await ctx.store.get(BATCHES, ctx.tenant_id, batch_id)
    if batch is None:
        raise ResourceNotFoundError("Batch", batch_id)
    return batch


async def list_items(
    ctx: TenantContext, batch_id: str, status: ItemStatus | None = None
) -> list[BatchItem]:
    if status is None:
        return await ctx.store.get_all(BATCH_ITEMS, ctx.tenant_id, batch_id=batch_id)
    return await ctx.store.get_all(
        BATCH_ITEMS, ctx.tenant_id, batch_id=batch_id, status=status
    )


async def generate_items(ctx: TenantContext, batch_id: str, count: int) -> list[BatchItem]:
    """Create `count` INOCULATED items, continuing the batch's id sequence."""
    if count <= 0:
        return []

    existing = await list_items(ctx, batch_id)
    start = max((item.sequence for item in existing), default=0) + 1
    now = utcnow()
    items = [
        BatchItem(
            id=item_code(batch_id, seq),
            tenant_id=ctx.tenant_id,
            batch_id=batch_id,
            sequence=seq,
            status=ItemStatus.INOCULATED,
            created_at=now,
        )
        for seq in range(start, start + count)
    ]
    await ctx.store.add_all(BATCH_ITEMS, items)
    logger.info("Generated %d items for batch %s (from %03d)", count, batch_id, start)
    return items


async def _set_status(ctx: TenantContext, item: BatchItem, status: ItemStatus) -> None:
    item.status = status
    item.updated_at = utcnow()
    await ctx.store.update(BATCH_ITEMS, item)


async def bulk_set_status(
    ctx: TenantContext,
    batch_id: str,
    item_ids: list[str],
    status: ItemStatus,
) -> list[BatchItem]:
    """Set `status` on exactly the selected items of a batch.

    Ids that do not belong to the batch are ignored; the caller compares the
    returned count with its selection.
    """
    wanted = set(item_ids)
    updated = []
    for item in await list_items(ctx, batch_id):
        if item.id in wanted:
            await _set_status(ctx, item, status)
            updated.append(item)
    logger.info(
        "Bulk set %d/%d items of %s to %s",
        len(updated), len(wanted), batch_id, status.value,
    )
    return updated


async def batch_wide_transition(
    ctx: TenantContext, batch_id: str, status: ItemStatus
) -> TransitionResult:
    """Move every fruiting-phase item of the batch to `status`."""
    if status not in BATCH_WIDE_STATUSES:
        raise InvalidStatusTransition("Batch items", "fruiting phase", status.value)

    items = await list_items(ctx, batch_id)
    updated = 0
    for item in items:
        if item.status in EXCEPTION_STATUSES or item.status not in BATCH_WIDE_STATUSES:
            continue
        if not can_transition(item.status, status):
            continue
        await _set_status(ctx, item, status)
        updated += 1

    result = TransitionResult(status=status, updated=updated, skipped=len(items) - updated)
    logger.info(
        "Batch-wide %s on %s: %d updated, %d skipped",
        status.value, batch_id, result.updated, result.skipped,
    )
    return result


async def reset_for_next_flush(ctx: TenantContext, batch_id: str) -> int:
    """Return every FRUITING_* item to READY_TO_FRUIT."""
    reset = 0
    for item in await list_items(ctx, batch_id):
        if item.status in FRUITING_STATUSES:
            await _set_status(ctx, item, ItemStatus.READY_TO_FRUIT)
            reset += 1
    return reset


async def status_counts(ctx: TenantContext, batch_id: str) -> dict[ItemStatus, int]:
    counts = Counter(item.status for item in await list_items(ctx, batch_id))
    return {status: counts.get(status, 0) for status in ItemStatus}


async def fruiting_stats(ctx: TenantContext, batch_id: str) -> FruitingStats:
    items = await list_items(ctx, batch_id)
    return FruitingStats(
        active=sum(1 for i in items if i.status in ACTIVE_FRUITING_STATUSES),
        ready=sum(1 for i in items if i.status == ItemStatus.FRUITING_READY),
        failed=sum(1 for i in items if i.status in EXCEPTION_STATUSES),
        total=len(items),
    )
