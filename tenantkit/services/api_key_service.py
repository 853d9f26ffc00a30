"""API key issuance, validation and owner-scoped lifecycle service."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from tenantkit.core.api_keys import APIKeyCore
from tenantkit.core.hashing import CredentialHasher
from tenantkit.core.permissions import PermissionSet
from tenantkit.models.api_key import APIKey
from tenantkit.repositories.api_key_repository import (
    DEFAULT_PAGE_SIZE,
    APIKeyStore,
    clamp_pagination,
)

logger = structlog.get_logger(__name__)

NAME_MAX_LENGTH = 100


class _Unset(Enum):
    UNSET = "UNSET"


UNSET = _Unset.UNSET


class APIKeyServiceError(Exception):
    """Raised for API key service failures."""

    def __init__(self, detail: str, code: str, status_code: int) -> None:
        super().__init__(detail)
        self.detail = detail
        self.code = code
        self.status_code = status_code


class InvalidAPIKeyFormatError(APIKeyServiceError):
    """Presented secret is too short to carry a lookup prefix."""

    def __init__(self) -> None:
        super().__init__("Invalid API key format.", "invalid_api_key_format", 400)


class APIKeyNotFoundError(APIKeyServiceError):
    """No live key matches the requested id or prefix."""

    def __init__(self) -> None:
        super().__init__("API key not found.", "api_key_not_found", 404)


class APIKeyExpiredError(APIKeyServiceError):
    """Key expiry is at or before the validation time."""

    def __init__(self) -> None:
        super().__init__("API key expired.", "expired_api_key", 401)


class InvalidAPIKeyError(APIKeyServiceError):
    """Presented secret does not verify against any candidate hash."""

    def __init__(self) -> None:
        super().__init__("Invalid API key.", "invalid_api_key", 401)


class APIKeyOwnershipError(APIKeyServiceError):
    """Caller does not own the key it tried to modify."""

    def __init__(self) -> None:
        super().__init__(
            "You do not have permission to access this API key.", "unauthorized", 401
        )


@dataclass(frozen=True)
class IssuedAPIKey:
    """Issuance result carrying the plaintext secret exactly once."""

    api_key: str
    record: APIKey


@dataclass(frozen=True)
class APIKeyPage:
    """One page of an owner's API keys."""

    items: list[APIKey]
    total: int
    page: int
    page_size: int


def _as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class APIKeyService:
    """Service for API key issuance, validation and owner-scoped CRUD."""

    def __init__(
        self,
        store: APIKeyStore,
        core: APIKeyCore,
        hasher: CredentialHasher,
        default_ttl: timedelta = timedelta(days=365),
        default_page_size: int = DEFAULT_PAGE_SIZE,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._core = core
        self._hasher = hasher
        self._default_ttl = default_ttl
        self._default_page_size = default_page_size
        self._clock = clock

    def resolve_expiry(
        self, expires_at: datetime | None, never_expire: bool, now: datetime | None = None
    ) -> datetime | None:
        """Apply the issuance expiry policy: explicit, never, or default TTL."""
        if never_expire:
            return None
        if expires_at is not None:
            return _as_utc(expires_at)
        return (now or self._clock()) + self._default_ttl

    async def issue(
        self,
        db_session: AsyncSession,
        user_id: UUID,
        name: str,
        expires_at: datetime | None = None,
        never_expire: bool = False,
        permissions: Iterable[str] = (),
    ) -> IssuedAPIKey:
        """Create a key for user_id and return its plaintext secret exactly once."""
        label = self._validated_name(name)
        raw_key = self._core.generate_secret()
        hashed_key = await asyncio.to_thread(self._hasher.hash, raw_key)

        key_row = APIKey(
            name=label,
            hashed_key=hashed_key,
            key_prefix=self._core.key_prefix(raw_key),
            user_id=user_id,
            permissions=PermissionSet(permissions),
            expires_at=self.resolve_expiry(expires_at, never_expire),
        )
        key_row = await self._store.create(db_session, key_row)
        return IssuedAPIKey(api_key=raw_key, record=key_row)

    async def validate(self, db_session: AsyncSession, raw_key: str) -> APIKey:
        """Return the live key matching raw_key or raise the precise failure."""
        if not self._core.is_valid_format(raw_key):
            raise InvalidAPIKeyFormatError()

        candidates = await self._store.find_by_prefix(db_session, self._core.key_prefix(raw_key))
        if not candidates:
            await asyncio.to_thread(self._hasher.dummy_verify)
            raise APIKeyNotFoundError()

        now = self._clock()
        live = [candidate for candidate in candidates if not candidate.is_expired(now)]
        if not live:
            raise APIKeyExpiredError()

        match: APIKey | None = None
        for candidate in live:
            if await asyncio.to_thread(self._hasher.verify, candidate.hashed_key, raw_key):
                match = candidate
                break
        if match is None:
            raise InvalidAPIKeyError()

        await self._touch_last_used(match)
        return match

    async def get(self, db_session: AsyncSession, key_id: UUID) -> APIKey:
        """Fetch a live key by id without an ownership check."""
        key_row = await self._store.find_by_id(db_session, key_id)
        if key_row is None:
            raise APIKeyNotFoundError()
        return key_row

    async def list_keys(
        self, db_session: AsyncSession, user_id: UUID, page: int, page_size: int
    ) -> APIKeyPage:
        """List one page of user_id's live keys."""
        page, page_size = clamp_pagination(page, page_size, self._default_page_size)
        items, total = await self._store.find_by_owner(db_session, user_id, page, page_size)
        return APIKeyPage(items=items, total=total, page=page, page_size=page_size)

    async def update(
        self,
        db_session: AsyncSession,
        key_id: UUID,
        user_id: UUID,
        name: str | None = None,
        permissions: Iterable[str] | None = None,
        expires_at: datetime | None | _Unset = UNSET,
    ) -> APIKey:
        """Overwrite the provided fields of a key owned by user_id."""
        key_row = await self._owned_key_for_update(db_session, key_id, user_id)
        if name is not None:
            key_row.name = self._validated_name(name)
        if permissions is not None:
            key_row.permissions = PermissionSet(permissions)
        if expires_at is not UNSET:
            key_row.expires_at = _as_utc(expires_at)
        return await self._store.update(db_session, key_row)

    async def revoke(self, db_session: AsyncSession, key_id: UUID, user_id: UUID) -> APIKey:
        """Soft-delete a key owned by user_id."""
        key_row = await self._owned_key_for_update(db_session, key_id, user_id)
        await self._store.soft_delete(db_session, key_row)
        return key_row

    async def _owned_key_for_update(
        self, db_session: AsyncSession, key_id: UUID, user_id: UUID
    ) -> APIKey:
        """Load a key for mutation; missing keys and foreign keys fail identically."""
        key_row = await self._store.find_by_id(db_session, key_id, for_update=True)
        if key_row is None or key_row.user_id != user_id:
            raise APIKeyOwnershipError()
        return key_row

    async def _touch_last_used(self, key_row: APIKey) -> None:
        """Record key usage; failures are logged and never surface."""
        try:
            await self._store.update_last_used(key_row.id)
        except Exception as exc:
            logger.warning(
                "api_key_last_used_update_failed",
                key_id=str(key_row.id),
                key_prefix=key_row.key_prefix,
                error=str(exc),
            )

    @staticmethod
    def _validated_name(name: str) -> str:
        label = name.strip()
        if not label:
            raise APIKeyServiceError("Name is required.", "invalid_request", 400)
        if len(label) > NAME_MAX_LENGTH:
            raise APIKeyServiceError(
                f"Name must be at most {NAME_MAX_LENGTH} characters.", "invalid_request", 400
            )
        return label
