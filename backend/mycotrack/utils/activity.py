"""Lightweight helper for recording activity log entries.

Usage:
    await log_activity(
        ctx, action="CREATE_DELIVERY", entity_type="delivery_order",
        entity_id=order.id, summary="Created delivery DO-... for batch BT-...",
    )

The row goes through the tenant's store, so with the SQL adapter it is
committed with the enclosing request transaction.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from mycotrack.models.activity_log import ActivityLog
from mycotrack.store.base import ACTIVITY_LOGS
from mycotrack.utils.timeutil import utcnow

if TYPE_CHECKING:
    from mycotrack.tenancy import TenantContext


async def log_activity(
    ctx: TenantContext,
    *,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    summary: str | None = None,
    details: dict | None = None,
) -> ActivityLog:
    """Append an activity log entry for the current actor."""
    entry = ActivityLog(
        id=str(uuid.uuid4()),
        tenant_id=ctx.tenant_id,
        actor=ctx.actor,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        summary=summary,
        details=details,
        created_at=utcnow(),
    )
    await ctx.store.add(ACTIVITY_LOGS, entry)
    return entry
