"""Async SQLAlchemy engine, session factory and schema helpers."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tenantkit.db.base import Base, import_model_modules


def build_engine(database_url: str) -> AsyncEngine:
    """Build the async SQLAlchemy engine backing the shared connection pool."""
    return create_async_engine(database_url, pool_pre_ping=True)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build the async session factory bound to engine."""
    return async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create all mapped tables that do not exist yet."""
    import_model_modules()
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
