"""Database engine, session factory, and declarative base.

All production tables share one DeclarativeBase and carry a ``tenant_id``
column; tenant scoping happens in the store adapter, not in the schema.

Session dependency for FastAPI:
  - get_db()  → one AsyncSession per request, committed on success and
                rolled back on any exception
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from mycotrack.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    """Base for every MycoTrack table."""
    pass


async def get_db() -> AsyncSession:
    """Yield a session whose transaction spans the whole request."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
