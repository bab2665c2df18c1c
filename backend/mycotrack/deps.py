"""FastAPI dependencies: store adapter and tenant context per request."""

from typing import AsyncGenerator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from mycotrack.database import get_db
from mycotrack.events import DeferredFeed, change_feed
from mycotrack.store.base import CollectionStore
from mycotrack.store.sql import SqlAlchemyStore
from mycotrack.tenancy import TenantContext, validate_tenant_id


async def get_store(db: AsyncSession = Depends(get_db)) -> CollectionStore:
    return SqlAlchemyStore(db)


async def get_context(
    x_tenant_id: str = Header(...),
    x_actor: str = Header("system"),
    store: CollectionStore = Depends(get_store),
) -> AsyncGenerator[TenantContext, None]:
    """Tenant context whose change events go out only after commit."""
    try:
        tenant_id = validate_tenant_id(x_tenant_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    outbox = DeferredFeed(change_feed)
    try:
        yield TenantContext(tenant_id=tenant_id, actor=x_actor, store=store, feed=outbox)
    except Exception:
        outbox.discard()
        raise

    try:
        await store.commit()
    except Exception:
        outbox.discard()
        raise
    await outbox.flush()
