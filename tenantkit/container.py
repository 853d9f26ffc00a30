"""Explicit service wiring built once per application instance."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from tenantkit.config import Settings
from tenantkit.core.api_keys import APIKeyCore
from tenantkit.core.hashing import CredentialHasher
from tenantkit.core.jwt import JWTService
from tenantkit.db.session import build_engine, build_session_factory
from tenantkit.repositories.api_key_repository import APIKeyRepository
from tenantkit.services.api_key_service import APIKeyService
from tenantkit.services.audit_service import AuditService
from tenantkit.services.role_service import PermissionDirectory, RoleService


@dataclass
class ServiceContainer:
    """Process-wide services handed to routes and authentication dependencies."""

    settings: Settings
    session_factory: async_sessionmaker[AsyncSession] | None
    api_key_service: APIKeyService
    jwt_service: JWTService
    permission_directory: PermissionDirectory
    audit_service: AuditService
    engine: AsyncEngine | None = None

    async def aclose(self) -> None:
        """Dispose the engine and close pooled connections."""
        if self.engine is not None:
            await self.engine.dispose()


def build_container(settings: Settings) -> ServiceContainer:
    """Construct the engine, store, hasher and services from settings."""
    engine = build_engine(settings.database.url)
    session_factory = build_session_factory(engine)
    api_key_service = APIKeyService(
        store=APIKeyRepository(session_factory),
        core=APIKeyCore(),
        hasher=CredentialHasher(rounds=settings.api_keys.hash_rounds),
        default_ttl=timedelta(days=settings.api_keys.default_ttl_days),
        default_page_size=settings.api_keys.default_page_size,
    )
    jwt_service = JWTService(
        private_key_pem=settings.jwt.private_key_pem.get_secret_value(),
        public_key_pem=settings.jwt.public_key_pem.get_secret_value(),
    )
    return ServiceContainer(
        settings=settings,
        session_factory=session_factory,
        api_key_service=api_key_service,
        jwt_service=jwt_service,
        permission_directory=RoleService(),
        audit_service=AuditService(),
        engine=engine,
    )
