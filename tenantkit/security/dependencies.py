"""FastAPI dependencies binding an authenticated principal to the request."""

from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tenantkit.core.jwt import JWTService
from tenantkit.core.permissions import has_permissions
from tenantkit.dependencies import (
    get_api_key_service,
    get_container,
    get_database_session,
    get_jwt_service,
    get_permission_directory,
)
from tenantkit.security.authenticators import (
    APIKeyAuthenticator,
    AuthenticationError,
    BearerTokenAuthenticator,
    CombinedAuthenticator,
)
from tenantkit.security.principal import Principal
from tenantkit.services.api_key_service import APIKeyService
from tenantkit.services.role_service import PermissionDirectory

PrincipalDependency = Callable[..., Awaitable[Principal]]


def _api_key_authenticator(request: Request) -> APIKeyAuthenticator:
    return APIKeyAuthenticator.from_settings(get_container(request).settings.api_keys)


def _unauthorized(exc: AuthenticationError) -> HTTPException:
    return HTTPException(
        status_code=exc.status_code,
        detail={"detail": exc.detail, "code": exc.code},
        headers={"WWW-Authenticate": exc.scheme},
    )


def _bind(request: Request, principal: Principal) -> Principal:
    request.state.principal = principal
    return principal


async def require_api_key(
    request: Request,
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    api_key_service: Annotated[APIKeyService, Depends(get_api_key_service)],
) -> Principal:
    """Authenticate the request with an API key."""
    try:
        principal = await _api_key_authenticator(request).authenticate(
            request, db_session, api_key_service
        )
    except AuthenticationError as exc:
        raise _unauthorized(exc) from exc
    return _bind(request, principal)


async def require_jwt(
    request: Request,
    jwt_service: Annotated[JWTService, Depends(get_jwt_service)],
) -> Principal:
    """Authenticate the request with a bearer access token."""
    try:
        principal = BearerTokenAuthenticator().authenticate(request, jwt_service)
    except AuthenticationError as exc:
        raise _unauthorized(exc) from exc
    return _bind(request, principal)


async def require_any_auth(
    request: Request,
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    api_key_service: Annotated[APIKeyService, Depends(get_api_key_service)],
    jwt_service: Annotated[JWTService, Depends(get_jwt_service)],
) -> Principal:
    """Authenticate with an API key when one is presented, else a bearer token."""
    authenticator = CombinedAuthenticator(
        _api_key_authenticator(request), BearerTokenAuthenticator()
    )
    try:
        principal = await authenticator.authenticate(
            request, db_session, api_key_service, jwt_service
        )
    except AuthenticationError as exc:
        raise _unauthorized(exc) from exc
    return _bind(request, principal)


def get_current_principal(request: Request) -> Principal:
    """Return the principal bound by an authentication dependency."""
    principal = getattr(request.state, "principal", None)
    if not isinstance(principal, Principal):
        raise HTTPException(
            status_code=401, detail={"detail": "Not authenticated.", "code": "invalid_token"}
        )
    return principal


def require_permissions(
    *required: str,
    authenticate: PrincipalDependency = require_any_auth,
) -> Callable[..., Awaitable[Principal]]:
    """Require that the authenticated caller holds every permission in required."""

    async def checker(
        principal: Annotated[Principal, Depends(authenticate)],
        db_session: Annotated[AsyncSession, Depends(get_database_session)],
        directory: Annotated[PermissionDirectory, Depends(get_permission_directory)],
    ) -> Principal:
        if principal.permissions is not None:
            granted = principal.permissions
        else:
            granted = await directory.effective_permissions(db_session, principal.user_id)
        if not has_permissions(granted, required):
            raise HTTPException(
                status_code=403,
                detail={"detail": "Insufficient permissions.", "code": "forbidden"},
            )
        return principal

    return checker
