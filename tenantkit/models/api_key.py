"""API key ORM model."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenantkit.core.permissions import PermissionSet
from tenantkit.db.base import Base, TimestampTenantMixin
from tenantkit.db.types import PermissionSetType

if TYPE_CHECKING:
    from tenantkit.models.user import User


class APIKey(Base, TimestampTenantMixin):
    """Hashed API key record located by its plaintext prefix."""

    __tablename__ = "api_keys"
    __table_args__ = (
        Index("ix_api_keys_key_prefix", "key_prefix"),
        Index("ix_api_keys_user_id_deleted_at", "user_id", "deleted_at"),
    )

    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    hashed_key: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    key_prefix: Mapped[str] = mapped_column(String(8), nullable=False)
    user_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    permissions: Mapped[PermissionSet] = mapped_column(
        PermissionSetType(), nullable=False, default=lambda: PermissionSet()
    )
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    user: Mapped[User] = relationship(back_populates="api_keys")

    def is_expired(self, now: datetime) -> bool:
        """Return True when expiry is set and not strictly after now."""
        return self.expires_at is not None and self.expires_at <= now
