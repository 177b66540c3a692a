"""Logging, request correlation, metrics and health checks for AgencyHub."""

from .health import ComponentHealth, HealthStatus
from .logging_config import configure_logging, get_logger
from .middleware import RequestIDMiddleware
from .request_context import get_request_id, get_tenant_context, set_tenant_context

__all__ = [
    "ComponentHealth",
    "HealthStatus",
    "RequestIDMiddleware",
    "configure_logging",
    "get_logger",
    "get_request_id",
    "get_tenant_context",
    "set_tenant_context",
]
