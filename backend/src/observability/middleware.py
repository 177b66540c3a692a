"""Request correlation middleware.

Assigns every request an id (reusing a well-formed inbound X-Request-ID),
resets the tenant logging context, and logs one completion line that carries
the org the request was resolved to.
"""

import re
import time
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .logging_config import get_logger
from .request_context import clear_tenant_context, generate_request_id, set_request_id

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def accept_request_id(value: Optional[str]) -> str:
    """Return the inbound id if it is safe to echo and log, else a fresh one."""
    if value and _REQUEST_ID_PATTERN.match(value):
        return value
    return generate_request_id()


def _resolved_tenant(request: Request) -> dict:
    context = getattr(request.state, "org_context", None)
    if context is None:
        return {}
    return {"org_id": str(context.org_id), "user_id": str(context.user_id)}


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = accept_request_id(request.headers.get(REQUEST_ID_HEADER))
        set_request_id(request_id)
        clear_tenant_context()

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "%s %s failed: %s",
                request.method,
                request.url.path,
                type(exc).__name__,
                extra={
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    **_resolved_tenant(request),
                },
                exc_info=True,
            )
            raise

        logger.info(
            "%s %s -> %s",
            request.method,
            request.url.path,
            response.status_code,
            extra={
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                **_resolved_tenant(request),
            },
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
