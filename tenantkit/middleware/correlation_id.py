"""Correlation ID middleware."""

from __future__ import annotations

import re
from uuid import uuid4

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

CORRELATION_ID_HEADER = "X-Correlation-ID"
_CONTEXT_KEY = "correlation_id"
_ACCEPTED_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def resolve_correlation_id(inbound: str) -> str:
    """Reuse a well-formed inbound ID, otherwise mint a new UUID4."""
    candidate = inbound.strip()
    if candidate and _ACCEPTED_ID.match(candidate):
        return candidate
    return str(uuid4())


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Attach a request correlation ID and bind it to structlog context."""

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = resolve_correlation_id(request.headers.get(CORRELATION_ID_HEADER, ""))
        request.state.correlation_id = correlation_id
        structlog.contextvars.bind_contextvars(**{_CONTEXT_KEY: correlation_id})

        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars(_CONTEXT_KEY)

        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response
