"""Request-scoped logging context.

Holds the request ID and the tenant (org/user) of the request currently
being served in context variables, so every log record emitted while
serving the request can be correlated. Nothing here outlives a request.
"""

import uuid
from contextvars import ContextVar
from typing import Optional
from uuid import UUID

# Context variables (async-safe)
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
org_id_var: ContextVar[Optional[UUID]] = ContextVar("org_id", default=None)
user_id_var: ContextVar[Optional[UUID]] = ContextVar("user_id", default=None)


def generate_request_id() -> str:
    """Generate a new unique request ID.

    Returns:
        str: UUID v4 request ID
    """
    return str(uuid.uuid4())


def get_request_id() -> str:
    """Get current request ID from context.

    Returns:
        str: Current request ID or "no-request-id" if not set
    """
    return request_id_var.get() or "no-request-id"


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def set_tenant_context(org_id: Optional[UUID], user_id: Optional[UUID]) -> None:
    """Attach the resolved organization and user to the logging context."""
    org_id_var.set(org_id)
    user_id_var.set(user_id)


def clear_tenant_context() -> None:
    org_id_var.set(None)
    user_id_var.set(None)


def get_tenant_context() -> tuple[Optional[UUID], Optional[UUID]]:
    return org_id_var.get(), user_id_var.get()
