"""Example route accepting either an API key or a bearer token."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from tenantkit.schemas.auth import PrincipalResponse
from tenantkit.security.dependencies import require_any_auth
from tenantkit.security.principal import Principal

router = APIRouter(tags=["protected"])


@router.get("/protected", response_model=PrincipalResponse)
async def protected(
    principal: Annotated[Principal, Depends(require_any_auth)],
) -> PrincipalResponse:
    """Echo the resolved identity and the authentication method used."""
    return PrincipalResponse(
        message="Authenticated.",
        auth_type=principal.auth_type,
        user_id=principal.user_id,
        key_id=principal.key_id,
    )
