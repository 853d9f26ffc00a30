"""User ORM model."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, Index, String
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenantkit.db.base import Base, TimestampTenantMixin

if TYPE_CHECKING:
    from tenantkit.models.api_key import APIKey
    from tenantkit.models.authorization import UserRole


class User(Base, TimestampTenantMixin):
    """Account that owns API keys and receives role bindings."""

    __tablename__ = "users"
    __table_args__ = (Index("ix_users_email_deleted_at", "email", "deleted_at"),)

    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True, default=uuid4)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    username: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    api_keys: Mapped[list[APIKey]] = relationship(back_populates="user")
    role_bindings: Mapped[list[UserRole]] = relationship(back_populates="user")
