"""Middleware package exports."""

from tenantkit.middleware.correlation_id import CorrelationIdMiddleware
from tenantkit.middleware.logging import LoggingMiddleware

__all__ = ["CorrelationIdMiddleware", "LoggingMiddleware"]
