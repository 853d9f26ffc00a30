"""Structured request logging middleware with credential redaction."""

from __future__ import annotations

from time import perf_counter
from typing import Any

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from tenantkit.security.principal import Principal
from tenantkit.services.audit_service import extract_client_ip

SENSITIVE_KEYS = {
    "api_key",
    "apikey",
    "authorization",
    "cookie",
    "key",
    "password",
    "secret",
    "token",
    "x_api_key",
}
REDACTED = "***REDACTED***"

logger = structlog.get_logger(__name__)


def _is_sensitive_key(key: str) -> bool:
    """Return True when key likely carries credential material."""
    normalized = key.lower().replace("-", "_")
    if normalized in SENSITIVE_KEYS:
        return True
    return any(part in normalized for part in ("token", "password", "secret", "api_key"))


def redact_mapping(values: dict[str, Any]) -> dict[str, Any]:
    """Redact sensitive values from a flat or nested dictionary."""
    redacted: dict[str, Any] = {}
    for key, value in values.items():
        if _is_sensitive_key(key):
            redacted[key] = REDACTED
        elif isinstance(value, dict):
            redacted[key] = redact_mapping(value)
        else:
            redacted[key] = value
    return redacted


def _principal_fields(request: Request) -> dict[str, Any]:
    principal = getattr(request.state, "principal", None)
    if isinstance(principal, Principal):
        return principal.as_log_fields()
    return {"auth_type": None}


class LoggingMiddleware(BaseHTTPMiddleware):
    """Emit one structured log per request with redacted metadata."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = perf_counter()
        query_params = redact_mapping(dict(request.query_params.items()))
        base_fields = {
            "method": request.method,
            "path": request.url.path,
            "query_params": query_params,
            "client_ip": extract_client_ip(request),
            "user_agent": request.headers.get("user-agent", ""),
        }

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request_completed",
                status_code=500,
                duration_ms=round((perf_counter() - start) * 1000, 2),
                **base_fields,
                **_principal_fields(request),
            )
            raise

        event_logger = logger.warning if response.status_code >= 400 else logger.info
        event_logger(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round((perf_counter() - start) * 1000, 2),
            **base_fields,
            **_principal_fields(request),
        )
        return response
