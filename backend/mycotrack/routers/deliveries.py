"""Delivery order and alert outbox router.

Endpoints:
    GET   /api/deliveries                      Orders, newest first
    PATCH /api/deliveries/{id}/status          Move an order through its lifecycle
    PATCH /api/deliveries/{id}/schedule        Change the delivery date
    GET   /api/alerts                          Unacknowledged alerts
    POST  /api/alerts/{id}/ack                 Acknowledge an alert
"""

from fastapi import APIRouter, Depends, Query

from mycotrack.deps import get_context
from mycotrack.models.statuses import DeliveryStatus
from mycotrack.schemas.delivery import (
    DeliveryOrderOut,
    DeliveryStatusRequest,
    PendingAlertOut,
    RescheduleRequest,
)
from mycotrack.services import alerts, delivery
from mycotrack.tenancy import TenantContext

router = APIRouter()
alerts_router = APIRouter()


@router.get("", response_model=list[DeliveryOrderOut])
async def list_deliveries(
    batch_id: str | None = Query(None),
    status: DeliveryStatus | None = Query(None),
    ctx: TenantContext = Depends(get_context),
):
    return await delivery.list_deliveries(ctx, batch_id, status)


@router.patch("/{order_id}/status", response_model=DeliveryOrderOut)
async def update_delivery_status(
    order_id: str,
    body: DeliveryStatusRequest,
    ctx: TenantContext = Depends(get_context),
):
    return await delivery.update_delivery_status(ctx, order_id, body.status)


@router.patch("/{order_id}/schedule", response_model=DeliveryOrderOut)
async def reschedule_delivery(
    order_id: str,
    body: RescheduleRequest,
    ctx: TenantContext = Depends(get_context),
):
    return await delivery.reschedule_delivery(ctx, order_id, body.delivery_date)


# ── Alerts ───────────────────────────────────────────────────

@alerts_router.get("", response_model=list[PendingAlertOut])
async def list_pending_alerts(ctx: TenantContext = Depends(get_context)):
    return await alerts.pending_alerts(ctx)


@alerts_router.post("/{alert_id}/ack", response_model=PendingAlertOut)
async def acknowledge_alert(alert_id: str, ctx: TenantContext = Depends(get_context)):
    return await alerts.acknowledge_alert(ctx, alert_id)
