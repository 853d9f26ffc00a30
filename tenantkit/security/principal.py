"""Authenticated identity bound to a request."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal
from uuid import UUID

from tenantkit.core.permissions import PermissionSet

AuthType = Literal["api_key", "jwt"]


@dataclass(frozen=True)
class Principal:
    """Caller identity resolved by an authentication scheme.

    `permissions` is the key's own grant for API-key callers and `None` for
    bearer-token callers, whose permissions come from the role directory.
    """

    user_id: UUID
    auth_type: AuthType
    key_id: UUID | None = None
    username: str | None = None
    permissions: PermissionSet | None = None

    def as_log_fields(self) -> dict[str, Any]:
        """Return non-sensitive identifiers for structured logs."""
        return {
            "user_id": str(self.user_id),
            "auth_type": self.auth_type,
            "key_id": str(self.key_id) if self.key_id else None,
        }
