"""Pending-alert outbox.

Operator notices that must survive a reload are written here instead of
being shown once and forgotten.  The UI fetches `pending_alerts` on start-up
and acknowledges each one it has displayed.
"""

import uuid

from mycotrack.middleware.exceptions import ResourceNotFoundError
from mycotrack.models.pending_alert import PendingAlert
from mycotrack.models.statuses import AlertChannel, AlertLevel, AlertRecipient
from mycotrack.store.base import PENDING_ALERTS
from mycotrack.tenancy import TenantContext
from mycotrack.utils.timeutil import utcnow


async def enqueue_alert(
    ctx: TenantContext,
    title: str,
    message: str,
    *,
    level: AlertLevel = AlertLevel.INFO,
    batch_id: str | None = None,
    recipient: AlertRecipient | None = None,
    channel: AlertChannel | None = None,
) -> PendingAlert:
    alert = PendingAlert(
        id=str(uuid.uuid4()),
        tenant_id=ctx.tenant_id,
        batch_id=batch_id,
        title=title,
        message=message,
        level=level,
        recipient=recipient,
        channel=channel,
        created_at=utcnow(),
    )
    await ctx.store.add(PENDING_ALERTS, alert)
    return alert


async def pending_alerts(ctx: TenantContext) -> list[PendingAlert]:
    """Unacknowledged alerts, oldest first."""
    return await ctx.store.get_all(PENDING_ALERTS, ctx.tenant_id, acknowledged_at=None)


async def acknowledge_alert(ctx: TenantContext, alert_id: str) -> PendingAlert:
    alert = await ctx.store.get(PENDING_ALERTS, ctx.tenant_id, alert_id)
    if alert is None:
        raise ResourceNotFoundError("Alert", alert_id)
    if alert.acknowledged_at is None:
        alert.acknowledged_at = utcnow()
        alert.acknowledged_by = ctx.actor
        await ctx.store.update(PENDING_ALERTS, alert)
    return alert
