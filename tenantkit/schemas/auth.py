"""Authenticated principal response schemas."""

from __future__ import annotations

from typing import Literal
from uuid import UUID

from pydantic import BaseModel


class PrincipalResponse(BaseModel):
    """Identity resolved for a protected request."""

    message: str
    auth_type: Literal["api_key", "jwt"]
    user_id: UUID
    key_id: UUID | None = None
