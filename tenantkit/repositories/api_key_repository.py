"""Persistence of API key records."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tenantkit.models.api_key import APIKey

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10


def clamp_pagination(
    page: int, page_size: int, default_page_size: int = DEFAULT_PAGE_SIZE
) -> tuple[int, int]:
    """Replace page or page size below 1 with their defaults."""
    return (
        page if page >= 1 else DEFAULT_PAGE,
        page_size if page_size >= 1 else default_page_size,
    )


class APIKeyStore(Protocol):
    """Storage operations the API key service depends on."""

    async def create(self, db_session: AsyncSession, key_row: APIKey) -> APIKey: ...

    async def find_by_id(
        self, db_session: AsyncSession, key_id: UUID, for_update: bool = False
    ) -> APIKey | None: ...

    async def find_by_prefix(self, db_session: AsyncSession, prefix: str) -> list[APIKey]: ...

    async def find_by_owner(
        self, db_session: AsyncSession, user_id: UUID, page: int, page_size: int
    ) -> tuple[list[APIKey], int]: ...

    async def update(self, db_session: AsyncSession, key_row: APIKey) -> APIKey: ...

    async def soft_delete(self, db_session: AsyncSession, key_row: APIKey) -> None: ...

    async def update_last_used(self, key_id: UUID) -> None: ...


class APIKeyRepository:
    """SQLAlchemy-backed API key store.

    Every lookup excludes soft-deleted rows. `update_last_used` runs in its own
    short session so a failed timestamp write never poisons the caller's
    request session.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(self, db_session: AsyncSession, key_row: APIKey) -> APIKey:
        try:
            db_session.add(key_row)
            await db_session.flush()
        except Exception:
            await db_session.rollback()
            raise
        await db_session.commit()
        await db_session.refresh(key_row)
        return key_row

    async def find_by_id(
        self, db_session: AsyncSession, key_id: UUID, for_update: bool = False
    ) -> APIKey | None:
        statement = select(APIKey).where(APIKey.id == key_id, APIKey.deleted_at.is_(None))
        if for_update:
            statement = statement.with_for_update()
        result = await db_session.execute(statement)
        return result.scalar_one_or_none()

    async def find_by_prefix(self, db_session: AsyncSession, prefix: str) -> list[APIKey]:
        """Return every live key sharing prefix, oldest first."""
        statement = (
            select(APIKey)
            .where(APIKey.key_prefix == prefix, APIKey.deleted_at.is_(None))
            .order_by(APIKey.created_at.asc())
        )
        result = await db_session.execute(statement)
        return list(result.scalars().all())

    async def find_by_owner(
        self, db_session: AsyncSession, user_id: UUID, page: int, page_size: int
    ) -> tuple[list[APIKey], int]:
        """Return one 1-indexed page of the owner's live keys and the total count."""
        page, page_size = clamp_pagination(page, page_size)
        filters = (APIKey.user_id == user_id, APIKey.deleted_at.is_(None))

        total = await db_session.scalar(select(func.count()).select_from(APIKey).where(*filters))
        statement = (
            select(APIKey)
            .where(*filters)
            .order_by(APIKey.created_at.desc(), APIKey.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await db_session.execute(statement)
        return list(result.scalars().all()), int(total or 0)

    async def update(self, db_session: AsyncSession, key_row: APIKey) -> APIKey:
        try:
            await db_session.flush()
        except Exception:
            await db_session.rollback()
            raise
        await db_session.commit()
        await db_session.refresh(key_row)
        return key_row

    async def soft_delete(self, db_session: AsyncSession, key_row: APIKey) -> None:
        key_row.deleted_at = datetime.now(UTC)
        try:
            await db_session.flush()
        except Exception:
            await db_session.rollback()
            raise
        await db_session.commit()

    async def update_last_used(self, key_id: UUID) -> None:
        statement = (
            update(APIKey)
            .where(APIKey.id == key_id)
            .values(last_used_at=datetime.now(UTC), updated_at=APIKey.updated_at)
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session:
            await session.execute(statement)
            await session.commit()
