"""API key management routes for the authenticated owner."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from tenantkit.dependencies import get_api_key_service, get_audit_service, get_database_session
from tenantkit.error_handlers import error_response
from tenantkit.schemas.api_key import (
    APIKeyCreateRequest,
    APIKeyCreateResponse,
    APIKeyListResponse,
    APIKeyResponse,
    APIKeyUpdateRequest,
)
from tenantkit.security.dependencies import require_jwt
from tenantkit.security.principal import Principal
from tenantkit.services.api_key_service import UNSET, APIKeyService, APIKeyServiceError
from tenantkit.services.audit_service import AuditService

router = APIRouter(prefix="/apikeys", tags=["apikeys"])


def _service_error_response(exc: APIKeyServiceError) -> JSONResponse:
    return error_response(status_code=exc.status_code, message=exc.detail, reason=exc.code)


def _parse_key_id(raw_key_id: str) -> UUID | None:
    try:
        return UUID(raw_key_id)
    except ValueError:
        return None


def _invalid_key_id_response() -> JSONResponse:
    return error_response(status_code=400, message="Invalid API key ID.", reason="invalid_request")


def _lenient_int(raw_value: str | None, default: int) -> int:
    """Parse a pagination value, falling back to default when it is not an integer."""
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


@router.post("", status_code=201, response_model=APIKeyCreateResponse)
async def create_api_key(
    request: Request,
    payload: APIKeyCreateRequest,
    principal: Annotated[Principal, Depends(require_jwt)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    api_key_service: Annotated[APIKeyService, Depends(get_api_key_service)],
    audit_service: Annotated[AuditService, Depends(get_audit_service)],
) -> APIKeyCreateResponse | JSONResponse:
    """Issue an API key for the caller and return the plaintext key exactly once."""
    try:
        issued = await api_key_service.issue(
            db_session,
            user_id=principal.user_id,
            name=payload.name,
            expires_at=payload.expires_at,
            never_expire=payload.never_expire,
            permissions=payload.permissions,
        )
    except APIKeyServiceError as exc:
        audit_service.emit_auth_event(
            request,
            event_type="api_key_create",
            success=False,
            user_id=principal.user_id,
            error_code=exc.code,
        )
        return _service_error_response(exc)

    audit_service.emit_auth_event(
        request,
        event_type="api_key_create",
        success=True,
        user_id=principal.user_id,
        key_id=issued.record.id,
        key_prefix=issued.record.key_prefix,
        permissions=issued.record.permissions.ordered(),
    )
    return APIKeyCreateResponse.from_issued(issued.record, issued.api_key)


@router.get("", response_model=APIKeyListResponse)
async def list_api_keys(
    request: Request,
    principal: Annotated[Principal, Depends(require_jwt)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    api_key_service: Annotated[APIKeyService, Depends(get_api_key_service)],
    page: Annotated[str | None, Query()] = None,
    per_page: Annotated[str | None, Query()] = None,
) -> APIKeyListResponse:
    """List the caller's API keys without exposing key material."""
    default_page_size = request.app.state.container.settings.api_keys.default_page_size
    result = await api_key_service.list_keys(
        db_session,
        user_id=principal.user_id,
        page=_lenient_int(page, 1),
        page_size=_lenient_int(per_page, default_page_size),
    )
    return APIKeyListResponse(
        total=result.total,
        page=result.page,
        per_page=result.page_size,
        data=[APIKeyResponse.from_record(row) for row in result.items],
    )


@router.get("/{key_id}", response_model=APIKeyResponse)
async def get_api_key(
    key_id: str,
    principal: Annotated[Principal, Depends(require_jwt)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    api_key_service: Annotated[APIKeyService, Depends(get_api_key_service)],
) -> APIKeyResponse | JSONResponse:
    """Return one of the caller's API keys."""
    parsed_id = _parse_key_id(key_id)
    if parsed_id is None:
        return _invalid_key_id_response()

    try:
        record = await api_key_service.get(db_session, parsed_id)
    except APIKeyServiceError as exc:
        return _service_error_response(exc)

    if record.user_id != principal.user_id:
        return error_response(
            status_code=401,
            message="You do not have permission to access this API key.",
            reason="unauthorized",
        )
    return APIKeyResponse.from_record(record)


@router.put("/{key_id}", response_model=APIKeyResponse)
async def update_api_key(
    request: Request,
    key_id: str,
    payload: APIKeyUpdateRequest,
    principal: Annotated[Principal, Depends(require_jwt)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    api_key_service: Annotated[APIKeyService, Depends(get_api_key_service)],
    audit_service: Annotated[AuditService, Depends(get_audit_service)],
) -> APIKeyResponse | JSONResponse:
    """Update name, permissions or expiry of one of the caller's API keys."""
    parsed_id = _parse_key_id(key_id)
    if parsed_id is None:
        return _invalid_key_id_response()

    if payload.never_expire:
        expires_at = None
    elif payload.expires_at is not None:
        expires_at = payload.expires_at
    else:
        expires_at = UNSET

    try:
        record = await api_key_service.update(
            db_session,
            key_id=parsed_id,
            user_id=principal.user_id,
            name=payload.name,
            permissions=payload.permissions,
            expires_at=expires_at,
        )
    except APIKeyServiceError as exc:
        audit_service.emit_auth_event(
            request,
            event_type="api_key_update",
            success=False,
            user_id=principal.user_id,
            key_id=parsed_id,
            error_code=exc.code,
        )
        return _service_error_response(exc)

    audit_service.emit_auth_event(
        request,
        event_type="api_key_update",
        success=True,
        user_id=principal.user_id,
        key_id=record.id,
        key_prefix=record.key_prefix,
    )
    return APIKeyResponse.from_record(record)


@router.delete("/{key_id}", status_code=204, response_class=Response)
async def revoke_api_key(
    request: Request,
    key_id: str,
    principal: Annotated[Principal, Depends(require_jwt)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    api_key_service: Annotated[APIKeyService, Depends(get_api_key_service)],
    audit_service: Annotated[AuditService, Depends(get_audit_service)],
) -> Response:
    """Revoke (soft-delete) one of the caller's API keys."""
    parsed_id = _parse_key_id(key_id)
    if parsed_id is None:
        return _invalid_key_id_response()

    try:
        revoked = await api_key_service.revoke(db_session, key_id=parsed_id, user_id=principal.user_id)
    except APIKeyServiceError as exc:
        audit_service.emit_auth_event(
            request,
            event_type="api_key_revoke",
            success=False,
            user_id=principal.user_id,
            key_id=parsed_id,
            error_code=exc.code,
        )
        return _service_error_response(exc)

    audit_service.emit_auth_event(
        request,
        event_type="api_key_revoke",
        success=True,
        user_id=principal.user_id,
        key_id=revoked.id,
        key_prefix=revoked.key_prefix,
    )
    return Response(status_code=204)
