"""Global exception handlers enforcing the API error response contract."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tenantkit.security.principal import Principal
from tenantkit.services.audit_service import extract_client_ip, extract_correlation_id

_DEFAULT_REASON_BY_STATUS: dict[int, str] = {
    400: "invalid_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    429: "rate_limited",
    500: "internal_error",
    503: "service_unavailable",
}

logger = structlog.get_logger(__name__)


def error_response(
    status_code: int,
    message: str,
    reason: str,
    error: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build the standard error payload: numeric code, message and machine reason."""
    content: dict[str, Any] = {"code": status_code, "message": message, "reason": reason}
    if error:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _default_reason(status_code: int) -> str:
    if status_code in _DEFAULT_REASON_BY_STATUS:
        return _DEFAULT_REASON_BY_STATUS[status_code]
    return "internal_error" if status_code >= 500 else "invalid_request"


def _extract_message_and_reason(detail: Any) -> tuple[str, str | None]:
    """Normalize exception detail payload into message and optional reason."""
    if isinstance(detail, dict):
        raw_message = detail.get("detail", "Request failed.")
        raw_reason = detail.get("code")
        return str(raw_message), str(raw_reason) if raw_reason is not None else None
    if isinstance(detail, str):
        return detail, None
    return "Request failed.", None


def _log_auth_failure(request: Request, status_code: int, message: str, reason: str) -> None:
    """Emit a WARNING log for rejected credentials and denied permissions."""
    if status_code not in (401, 403):
        return

    principal = getattr(request.state, "principal", None)
    logger.warning(
        "auth_failure",
        correlation_id=extract_correlation_id(request),
        event_type="auth_failure",
        user_id=str(principal.user_id) if isinstance(principal, Principal) else None,
        ip_address=extract_client_ip(request),
        status_code=status_code,
        reason=reason,
        message=message,
        path=request.url.path,
        method=request.method,
    )


def register_exception_handlers(app: FastAPI, environment: str) -> None:
    """Register global exception handlers enforcing error shape contract."""

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Normalize framework HTTP exceptions to contract payload."""
        message, raw_reason = _extract_message_and_reason(exc.detail)
        reason = raw_reason or _default_reason(exc.status_code)
        _log_auth_failure(request, exc.status_code, message, reason)
        return error_response(
            status_code=exc.status_code,
            message=message,
            reason=reason,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_exception(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Map request validation errors to a 400 payload."""
        error = None
        if environment == "development":
            errors = exc.errors()
            if errors:
                error = str(errors[0].get("msg", "validation error"))
        return error_response(
            status_code=400,
            message="Invalid request parameters.",
            reason="invalid_request",
            error=error,
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
        """Mask internal errors outside development."""
        logger.error(
            "unhandled_exception",
            correlation_id=extract_correlation_id(request),
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )
        return error_response(
            status_code=500,
            message="Internal server error.",
            reason="internal_error",
            error=str(exc) if environment == "development" else None,
        )
