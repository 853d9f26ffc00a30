"""Structured audit events for API key lifecycle operations."""

from __future__ import annotations

from typing import Any
from uuid import UUID

import structlog
from fastapi import Request

logger = structlog.get_logger(__name__)

_REDACTED = "***REDACTED***"
_SENSITIVE_KEY_PARTS = (
    "api_key",
    "apikey",
    "authorization",
    "hash",
    "password",
    "secret",
    "token",
)


def _is_sensitive_key(key: str) -> bool:
    """Return True when metadata key likely carries credential material."""
    normalized = key.strip().lower().replace("-", "_")
    return any(part in normalized for part in _SENSITIVE_KEY_PARTS)


def _sanitize_value(value: Any) -> Any:
    """Coerce metadata values to JSON-safe primitives."""
    if value is None or isinstance(value, bool | int | float | str):
        return value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, dict):
        return sanitize_metadata(value)
    if isinstance(value, list | tuple | set | frozenset):
        return [_sanitize_value(item) for item in value]
    return str(value)


def sanitize_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """Redact credential-bearing keys from event metadata."""
    return {
        key: _REDACTED if _is_sensitive_key(key) else _sanitize_value(value)
        for key, value in metadata.items()
    }


def extract_client_ip(request: Request) -> str:
    """Extract client IP using forwarding headers when present."""
    forwarded_for = request.headers.get("x-forwarded-for", "").strip()
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    client = request.client
    return client.host if client else "unknown"


def extract_correlation_id(request: Request) -> str:
    """Return the request correlation ID bound by middleware."""
    return getattr(
        request.state,
        "correlation_id",
        request.headers.get("x-correlation-id", "unknown"),
    )


class AuditService:
    """Emit audit events as structured logs without affecting request outcomes."""

    def emit_auth_event(
        self,
        request: Request,
        event_type: str,
        success: bool,
        **metadata: Any,
    ) -> None:
        """Log one audit event with request context and redacted metadata."""
        event_logger = logger.info if success else logger.warning
        event_logger(
            "auth_event",
            event_type=event_type,
            success=success,
            ip_address=extract_client_ip(request),
            correlation_id=extract_correlation_id(request),
            **sanitize_metadata(metadata),
        )
