"""API key request/response schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from tenantkit.models.api_key import APIKey


def _reject_separator(permissions: list[str] | None) -> list[str] | None:
    """Reject entries that would split apart in the comma-joined storage form."""
    if permissions is not None and any("," in item for item in permissions):
        raise ValueError("Permission entries must not contain commas.")
    return permissions


class APIKeyCreateRequest(BaseModel):
    """Create API key request payload."""

    name: str = Field(min_length=1, max_length=100)
    permissions: list[str] = Field(default_factory=list)
    expires_at: datetime | None = None
    never_expire: bool = False

    @field_validator("permissions")
    @classmethod
    def validate_permissions(cls, value: list[str]) -> list[str]:
        return _reject_separator(value)


class APIKeyUpdateRequest(BaseModel):
    """Update API key request payload; omitted fields keep their stored value."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    permissions: list[str] | None = None
    expires_at: datetime | None = None
    never_expire: bool = False

    @field_validator("permissions")
    @classmethod
    def validate_permissions(cls, value: list[str] | None) -> list[str] | None:
        return _reject_separator(value)


class APIKeyResponse(BaseModel):
    """API key record without secret material."""

    id: UUID
    name: str
    prefix: str
    user_id: UUID
    expires_at: datetime | None
    last_used_at: datetime | None
    permissions: list[str]
    created_at: datetime

    @classmethod
    def from_record(cls, record: APIKey) -> APIKeyResponse:
        return cls(
            id=record.id,
            name=record.name,
            prefix=record.key_prefix,
            user_id=record.user_id,
            expires_at=record.expires_at,
            last_used_at=record.last_used_at,
            permissions=record.permissions.ordered(),
            created_at=record.created_at,
        )


class APIKeyCreateResponse(APIKeyResponse):
    """Create API key response carrying the plaintext key exactly once."""

    key: str

    @classmethod
    def from_issued(cls, record: APIKey, key: str) -> APIKeyCreateResponse:
        base = APIKeyResponse.from_record(record)
        return cls(**base.model_dump(), key=key)


class APIKeyListResponse(BaseModel):
    """Paginated API key listing."""

    total: int
    page: int
    per_page: int
    data: list[APIKeyResponse]
