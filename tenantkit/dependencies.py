"""Shared FastAPI dependency helpers resolving services from the app container."""

from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from tenantkit.container import ServiceContainer
from tenantkit.core.jwt import JWTService
from tenantkit.services.api_key_service import APIKeyService
from tenantkit.services.audit_service import AuditService
from tenantkit.services.role_service import PermissionDirectory


def get_container(request: Request) -> ServiceContainer:
    """Return the service container bound at application start."""
    return request.app.state.container


async def get_database_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield a request-scoped async database session."""
    session_factory = get_container(request).session_factory
    if session_factory is None:
        raise RuntimeError("Database session factory is not configured.")
    async with session_factory() as session:
        yield session


def get_api_key_service(request: Request) -> APIKeyService:
    return get_container(request).api_key_service


def get_jwt_service(request: Request) -> JWTService:
    return get_container(request).jwt_service


def get_audit_service(request: Request) -> AuditService:
    return get_container(request).audit_service


def get_permission_directory(request: Request) -> PermissionDirectory:
    return get_container(request).permission_directory
