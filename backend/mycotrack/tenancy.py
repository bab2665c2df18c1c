"""Request-scoped tenant context.

Every service call runs against one TenantContext: the tenant whose
collections it touches, the operator recorded on audit rows, the store
adapter and the change feed.  Authentication is handled upstream; the
tenant id and actor name arrive as trusted headers.
"""

import re
from dataclasses import dataclass, field

from mycotrack.events import ChangeFeed, DeferredFeed, change_feed
from mycotrack.store.base import CollectionStore

_TENANT_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def validate_tenant_id(tenant_id: str) -> str:
    """Only allow short alphanumeric tenant ids (plus - and _)."""
    if not _TENANT_RE.match(tenant_id):
        raise ValueError(f"Invalid tenant id: {tenant_id!r}")
    return tenant_id


@dataclass
class TenantContext:
    tenant_id: str
    actor: str
    store: CollectionStore
    feed: ChangeFeed | DeferredFeed = field(default_factory=lambda: change_feed)
