"""FastAPI application factory."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tenantkit.config import Settings, configure_structlog, get_settings
from tenantkit.container import ServiceContainer, build_container
from tenantkit.db.session import create_schema
from tenantkit.error_handlers import register_exception_handlers
from tenantkit.middleware.correlation_id import CorrelationIdMiddleware
from tenantkit.middleware.logging import LoggingMiddleware
from tenantkit.routers import apikeys, health, protected


def create_app(
    settings: Settings | None = None,
    container: ServiceContainer | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    A prebuilt container may be passed in to swap the store or services;
    otherwise one is built from settings.
    """
    if container is not None:
        settings = container.settings
    settings = settings or get_settings()
    configure_structlog(settings)
    container = container or build_container(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if container.engine is not None:
            await create_schema(container.engine)
        try:
            yield
        finally:
            await container.aclose()

    app = FastAPI(title=settings.app.service, lifespan=lifespan)
    app.state.container = container
    register_exception_handlers(app, settings.app.environment)

    app.add_middleware(LoggingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(apikeys.router, prefix=settings.app.api_prefix)
    app.include_router(protected.router, prefix=settings.app.api_prefix)
    app.include_router(health.router)
    return app
