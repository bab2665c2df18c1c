"""Delivery trigger and delivery order lifecycle.

A delivery order is raised automatically the first time a flush is marked
maturing or ready, and dispatched (IN_TRANSIT) when that flush is
harvested.  Only one PENDING/CONFIRMED order may exist per (batch, flush),
so repeated observations of a maturing batch create nothing new.
"""

import logging
from datetime import datetime, timedelta

from mycotrack import events
from mycotrack.config import settings
from mycotrack.middleware.exceptions import (
    BusinessLogicError, InvalidStatusTransition, ResourceNotFoundError,
)
from mycotrack.models.batch import Batch
from mycotrack.models.delivery_order import DeliveryOrder
from mycotrack.models.statuses import (
    ACTIVE_DELIVERY_STATUSES, DELIVERY_TRANSITIONS, AlertChannel, AlertLevel,
    AlertRecipient, DeliveryStatus, ItemStatus,
)
from mycotrack.services.alerts import enqueue_alert
from mycotrack.services.maturity import round_half_up
from mycotrack.store.base import BATCHES, DELIVERY_ORDERS
from mycotrack.tenancy import TenantContext
from mycotrack.utils.activity import log_activity
from mycotrack.utils.numbering import delivery_order_code
from mycotrack.utils.timeutil import as_utc, utcnow

logger = logging.getLogger(__name__)

# Item status reached by a batch-wide update → subject line of the notice
TRIGGER_SUBJECTS = {
    ItemStatus.FRUITING_MATURING: "Approaching Maturity",
    ItemStatus.FRUITING_READY: "Ready for Harvest",
}


# ── Notification bodies ──────────────────────────────────────

def render_order_email(batch: Batch, order: DeliveryOrder, subject: str) -> str:
    return (
        f"Subject: {subject} Alert - Batch {batch.id} (Flush #{order.flush_number})\n"
        f"\n"
        f"Dear {order.recipient},\n"
        f"\n"
        f"We are pleased to inform you that our mushroom batch {batch.species} "
        f"(ID: {batch.id}, Flush #{order.flush_number}) is {subject.lower()}.\n"
        f"\n"
        f"Estimated Yield: {order.estimated_yield:g} kg\n"
        f"Expected Delivery Date: {order.delivery_date:%Y-%m-%d}\n"
        f"\n"
        f"Please prepare your facility for receiving.\n"
        f"\n"
        f"Sincerely,\n"
        f"{settings.farm_name} Manager"
    )


def render_dispatch_email(order: DeliveryOrder, after_harvest: bool = False) -> str:
    trigger = " following harvest completion" if after_harvest else ""
    return (
        f"Subject: IN TRANSIT: Fresh Mushroom Delivery Dispatched\n"
        f"\n"
        f"Delivery Order #{order.id}\n"
        f"\n"
        f"Dear {order.recipient},\n"
        f"\n"
        f"This is an automated notification that your order is now ON THE WAY{trigger}.\n"
        f"\n"
        f"Items: Fresh Mushrooms ({order.estimated_yield:g} kg)\n"
        f"\n"
        f"Please ensure your receiving bay is clear.\n"
        f"\n"
        f"Thank you,\n"
        f"{settings.farm_name}"
    )


# ── Queries ──────────────────────────────────────────────────

async def list_deliveries(
    ctx: TenantContext,
    batch_id: str | None = None,
    status: DeliveryStatus | None = None,
) -> list[DeliveryOrder]:
    """Orders newest first."""
    filters = {}
    if batch_id is not None:
        filters["batch_id"] = batch_id
    if status is not None:
        filters["status"] = status
    orders = await ctx.store.get_all(DELIVERY_ORDERS, ctx.tenant_id, **filters)
    return sorted(orders, key=lambda o: as_utc(o.created_at), reverse=True)


async def active_order(
    ctx: TenantContext, batch_id: str, flush_number: int
) -> DeliveryOrder | None:
    for order in await ctx.store.get_all(
        DELIVERY_ORDERS, ctx.tenant_id, batch_id=batch_id, flush_number=flush_number
    ):
        if order.status in ACTIVE_DELIVERY_STATUSES:
            return order
    return None


async def _get_order(ctx: TenantContext, order_id: str) -> DeliveryOrder:
    order = await ctx.store.get(DELIVERY_ORDERS, ctx.tenant_id, order_id)
    if order is None:
        raise ResourceNotFoundError("Delivery order", order_id)
    return order


async def _sync_batch_flag(ctx: TenantContext, order: DeliveryOrder) -> None:
    batch = await ctx.store.get(BATCHES, ctx.tenant_id, order.batch_id)
    if batch is not None:
        batch.delivery_status = order.status
        await ctx.store.update(BATCHES, batch)


# ── Trigger ──────────────────────────────────────────────────

async def trigger_delivery(
    ctx: TenantContext,
    batch: Batch,
    status: ItemStatus,
    *,
    observation_date: datetime,
    active_count: int,
    ready_count: int,
) -> DeliveryOrder | None:
    """React to a batch-wide transition; returns the order it created, if any."""
    subject = TRIGGER_SUBJECTS.get(status)
    if subject is None:
        return None

    flush = batch.current_flush or 1
    existing = await active_order(ctx, batch.id, flush)
    if existing is not None:
        logger.info(
            "Delivery %s already open for %s flush %d", existing.id, batch.id, flush
        )
        return None

    weight_g = batch.est_avg_weight_per_block or 0.0
    now = utcnow()
    order = DeliveryOrder(
        id=delivery_order_code(),
        tenant_id=ctx.tenant_id,
        batch_id=batch.id,
        flush_number=flush,
        species=batch.species or "Unknown",
        estimated_yield=round_half_up(weight_g * (active_count + ready_count) / 1000, 1),
        delivery_date=as_utc(observation_date) + timedelta(days=1),
        recipient=settings.delivery_recipient,
        status=DeliveryStatus.PENDING,
        created_at=now,
    )
    order.email_content = render_order_email(batch, order, subject)
    await ctx.store.add(DELIVERY_ORDERS, order)
    await _sync_batch_flag(ctx, order)

    logger.info(
        "Created delivery %s for %s flush %d (%s kg)",
        order.id, batch.id, flush, order.estimated_yield,
    )
    await log_activity(
        ctx,
        action="CREATE_DELIVERY",
        entity_type="delivery_order",
        entity_id=order.id,
        summary=(
            f"Auto-Generated Delivery Order {order.id} for {order.recipient} "
            f"({subject}, Flush {flush})."
        ),
    )
    await enqueue_alert(
        ctx,
        "Delivery Alert Sent",
        f"Delivery order {order.id} raised for {order.recipient}. Flush: #{flush}. "
        f"Est. Yield: {order.estimated_yield:g}kg. "
        f"Delivery: {order.delivery_date:%Y-%m-%d}.",
        batch_id=batch.id,
        recipient=AlertRecipient.VILLAGE_C,
        channel=AlertChannel.EMAIL,
    )
    await ctx.feed.publish(
        events.DELIVERY_CREATED, ctx.tenant_id,
        order_id=order.id, batch_id=batch.id, flush_number=flush,
    )
    return order


# ── Lifecycle ────────────────────────────────────────────────

async def _move(
    ctx: TenantContext,
    order: DeliveryOrder,
    target: DeliveryStatus,
    *,
    after_harvest: bool = False,
) -> DeliveryOrder:
    if target not in DELIVERY_TRANSITIONS[order.status]:
        raise InvalidStatusTransition("Delivery order", order.status.value, target.value)

    order.status = target
    order.updated_at = utcnow()
    if target == DeliveryStatus.IN_TRANSIT:
        order.email_content = render_dispatch_email(order, after_harvest)
    await ctx.store.update(DELIVERY_ORDERS, order)
    await _sync_batch_flag(ctx, order)

    summary = (
        f"Auto-triggered In Transit for Order {order.id} upon Harvest Record."
        if after_harvest
        else f"Delivery Order {order.id} set to {target.value}."
    )
    await log_activity(
        ctx,
        action="UPDATE_DELIVERY",
        entity_type="delivery_order",
        entity_id=order.id,
        summary=summary,
    )
    await ctx.feed.publish(
        events.DELIVERY_UPDATED, ctx.tenant_id,
        order_id=order.id, batch_id=order.batch_id, status=target.value,
    )
    return order


async def update_delivery_status(
    ctx: TenantContext, order_id: str, status: DeliveryStatus
) -> DeliveryOrder:
    order = await _get_order(ctx, order_id)
    return await _move(ctx, order, status)


async def reschedule_delivery(
    ctx: TenantContext, order_id: str, delivery_date: datetime
) -> DeliveryOrder:
    order = await _get_order(ctx, order_id)
    if order.status not in ACTIVE_DELIVERY_STATUSES:
        raise BusinessLogicError(
            f"Delivery order {order.id} is {order.status.value} and can no longer be rescheduled",
            "DELIVERY_LOCKED",
        )
    previous = order.delivery_date
    order.delivery_date = as_utc(delivery_date)
    order.updated_at = utcnow()
    await ctx.store.update(DELIVERY_ORDERS, order)
    await log_activity(
        ctx,
        action="UPDATE_DELIVERY",
        entity_type="delivery_order",
        entity_id=order.id,
        summary=f"Rescheduled Delivery Order {order.id} to {order.delivery_date:%Y-%m-%d}.",
        details={"previous": previous.isoformat() if previous else None},
    )
    await ctx.feed.publish(
        events.DELIVERY_UPDATED, ctx.tenant_id,
        order_id=order.id, batch_id=order.batch_id, status=order.status.value,
    )
    return order


async def dispatch_on_harvest(
    ctx: TenantContext, batch_id: str, flush_number: int
) -> DeliveryOrder | None:
    """Send the flush's open order on its way once the flush is harvested."""
    order = await active_order(ctx, batch_id, flush_number)
    if order is None:
        return None

    await _move(ctx, order, DeliveryStatus.IN_TRANSIT, after_harvest=True)
    logger.info("Delivery %s in transit after harvest of %s", order.id, batch_id)
    await enqueue_alert(
        ctx,
        "Delivery In Transit",
        f"Delivery Order #{order.id} is now IN TRANSIT. "
        f"Notification sent to {order.recipient}.",
        level=AlertLevel.INFO,
        batch_id=batch_id,
        recipient=AlertRecipient.VILLAGE_C,
        channel=AlertChannel.EMAIL,
    )
    return order
