"""Pytest configuration and fixtures for MycoTrack tests.

Services run against a MemoryStore by default; the SQL adapter is exercised
against an in-memory SQLite database through aiosqlite.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from mycotrack.database import Base
from mycotrack.deps import get_store
from mycotrack.events import ChangeFeed
from mycotrack.main import app
from mycotrack.models import Batch, Material
from mycotrack.models.statuses import BatchStatus, ItemStatus, MaterialCategory, MovementType
from mycotrack.services import batch_items
from mycotrack.services.ledger import InventoryLedger, StockDelta
from mycotrack.store import MemoryStore, SqlAlchemyStore
from mycotrack.store.base import BATCHES, MATERIALS
from mycotrack.tenancy import TenantContext
from mycotrack.utils.timeutil import utcnow

TENANT_ID = "ent_001"
ACTOR = "Test Operator"
BATCH_ID = "BT-25-01-001"

# material id → (name, category, uom, standard cost, opening stock)
SEED_MATERIALS = {
    "mat_culture": ("Oyster Culture", MaterialCategory.SPECIES, "PCS", 12.0, 20),
    "mat_dish": ("Petri Dish 90mm", MaterialCategory.PETRI_DISH, "PCS", 0.5, 50),
    "mat_agar": ("Malt Agar", MaterialCategory.AGAR, "GRAM", 0.2, 10),
    "mat_grain": ("Rye Grain", MaterialCategory.GRAINS, "KG", 2.5, 100),
    "mat_bag": ("Grow Bag 2kg", MaterialCategory.PACKAGING, "PCS", 0.3, 500),
    "mat_sawdust": ("Hardwood Sawdust", MaterialCategory.SUBSTRATES, "KG", 0.8, 200),
    "mat_bran": ("Wheat Bran", MaterialCategory.SUBSTRATES, "KG", 1.1, 50),
}


async def seed_materials(ctx: TenantContext) -> None:
    ledger = InventoryLedger(ctx)
    for material_id, (name, category, uom, cost, opening) in SEED_MATERIALS.items():
        await ctx.store.add(MATERIALS, Material(
            id=material_id,
            tenant_id=ctx.tenant_id,
            name=name,
            category=category,
            uom=uom,
            standard_cost=cost,
            created_at=utcnow(),
        ))
        await ledger.apply_delta(StockDelta(
            material_id=material_id,
            quantity=opening,
            movement_type=MovementType.INITIAL,
            reason="Opening balance",
        ))


def make_batch(tenant_id: str = TENANT_ID, batch_id: str = BATCH_ID, **overrides) -> Batch:
    values = dict(
        id=batch_id,
        tenant_id=tenant_id,
        species="Grey Oyster",
        status=BatchStatus.FRUITING,
        location="Room A",
        incubation_location="Incubation 2",
        current_flush=1,
        actual_yield=0.0,
        baseline_cap_diameter=8.0,
        baseline_maturation_days=5,
        est_avg_weight_per_block=250.0,
        created_at=utcnow(),
    )
    values.update(overrides)
    return Batch(**values)


# ── Memory store ─────────────────────────────────────────────────

@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def feed() -> ChangeFeed:
    return ChangeFeed()


@pytest.fixture
def ctx(store: MemoryStore, feed: ChangeFeed) -> TenantContext:
    return TenantContext(tenant_id=TENANT_ID, actor=ACTOR, store=store, feed=feed)


@pytest_asyncio.fixture
async def materials(ctx: TenantContext) -> dict:
    await seed_materials(ctx)
    return SEED_MATERIALS


@pytest_asyncio.fixture
async def batch(ctx: TenantContext) -> Batch:
    return await ctx.store.add(BATCHES, make_batch())


@pytest_asyncio.fixture
async def fruiting_batch(ctx: TenantContext, batch: Batch) -> Batch:
    """Batch with 10 blocks: 8 READY_TO_FRUIT, 1 FAILED, 1 CONTAMINATED."""
    items = await batch_items.generate_items(ctx, batch.id, 10)
    ids = [item.id for item in items]
    await batch_items.bulk_set_status(ctx, batch.id, ids[:8], ItemStatus.READY_TO_FRUIT)
    await batch_items.bulk_set_status(ctx, batch.id, [ids[8]], ItemStatus.FAILED)
    await batch_items.bulk_set_status(ctx, batch.id, [ids[9]], ItemStatus.CONTAMINATED)
    return batch


# ── SQL store (aiosqlite) ────────────────────────────────────────

@pytest_asyncio.fixture
async def sql_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(sql_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        sql_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def sql_ctx(db_session: AsyncSession, feed: ChangeFeed) -> TenantContext:
    return TenantContext(
        tenant_id=TENANT_ID, actor=ACTOR, store=SqlAlchemyStore(db_session), feed=feed
    )


@pytest_asyncio.fixture
async def sql_materials(sql_ctx: TenantContext) -> dict:
    await seed_materials(sql_ctx)
    return SEED_MATERIALS


@pytest_asyncio.fixture
async def sql_batch(sql_ctx: TenantContext) -> Batch:
    return await sql_ctx.store.add(BATCHES, make_batch())


# ── API client ───────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(store: MemoryStore) -> AsyncGenerator[AsyncClient, None]:
    """Client whose requests run against the test's MemoryStore."""

    async def override_get_store():
        return store

    app.dependency_overrides[get_store] = override_get_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def headers() -> dict:
    return {"X-Tenant-ID": TENANT_ID, "X-Actor": ACTOR}


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Pure function tests")
    config.addinivalue_line("markers", "integration: Service tests over a store")
    config.addinivalue_line("markers", "sql: Tests against the SQLAlchemy store")
    config.addinivalue_line("markers", "api: HTTP endpoint tests")
