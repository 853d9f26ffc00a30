"""Health check router endpoints."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

router = APIRouter(prefix="/health", tags=["health"])

logger = structlog.get_logger(__name__)


async def check_database_ready(request: Request) -> bool:
    """Return True when the database accepts a lightweight query."""
    engine = request.app.state.container.engine
    if engine is None:
        return False
    try:
        async with engine.connect() as connection:
            await connection.execute(select(1))
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("database_not_ready", error=str(exc))
        return False
    return True


@router.get("/live")
async def live() -> dict[str, str]:
    """Liveness probe endpoint."""
    return {"status": "live"}


@router.get("/ready")
async def ready(
    database_ready: Annotated[bool, Depends(check_database_ready)],
) -> dict[str, str]:
    """Readiness probe requiring a reachable database."""
    if not database_ready:
        raise HTTPException(
            status_code=503,
            detail={"detail": "Service not ready.", "code": "service_unavailable"},
        )
    return {"status": "ready"}
