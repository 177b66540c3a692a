"""Middleware for per-request tenant context.

The OrgContext itself is resolved lazily by the get_org_context dependency.
This middleware only guarantees that nothing tenant-related leaks from one
request into the next: request.state starts without a context and the
logging context vars are cleared before and after every request.
"""

from typing import Callable, Optional
from uuid import UUID

import jwt
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from auth.jwt import decode_token
from observability.request_context import clear_tenant_context, set_tenant_context


class TenantContextMiddleware(BaseHTTPMiddleware):
    """Reset tenant context per request.

    This middleware:
    1. Initializes request.state.org_context to None
    2. Clears the org/user logging context
    3. Tags logs with the token's user id when a Bearer token decodes
       (authentication itself is enforced by get_principal)
    4. Clears the logging context again once the response is produced

    Usage:
        app.add_middleware(TenantContextMiddleware)
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.org_context = None
        clear_tenant_context()

        user_id = _user_id_from_header(request.headers.get("Authorization"))
        if user_id is not None:
            set_tenant_context(None, user_id)

        try:
            return await call_next(request)
        finally:
            clear_tenant_context()


def _user_id_from_header(auth_header: Optional[str]) -> Optional[UUID]:
    if not auth_header:
        return None

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None

    try:
        return UUID(decode_token(parts[1]).get("sub", ""))
    except (jwt.InvalidTokenError, ValueError):
        # Invalid token - get_principal rejects it later
        return None
