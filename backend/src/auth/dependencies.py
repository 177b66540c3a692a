"""FastAPI dependencies for authentication.

Authentication only establishes WHO the caller is (a Principal). Which
organization the request acts on is resolved separately, per request, by
the tenancy layer (see dependencies.get_org_context).

Usage:
    @app.get("/protected")
    async def protected_endpoint(principal: Principal = Depends(get_principal)):
        return {"user_id": str(principal.user_id)}
"""

import logging
from typing import Optional
from uuid import UUID

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tenancy.context import Principal
from tenancy.errors import NoAuth
from .jwt import decode_token

logger = logging.getLogger(__name__)

# HTTP Bearer token security scheme. auto_error is off so a missing token
# surfaces as NoAuth instead of FastAPI's own 403.
security = HTTPBearer(auto_error=False)


def principal_from_token(token: str) -> Principal:
    """Validate a bearer token and return its Principal.

    Raises:
        NoAuth: If the token is invalid, expired or lacks a user id
    """
    try:
        payload = decode_token(token)
        user_id_str = payload.get("sub")
        if not user_id_str:
            raise NoAuth("Invalid token: missing user ID claim")
        return Principal(user_id=UUID(user_id_str))
    except jwt.ExpiredSignatureError:
        raise NoAuth("Token has expired")
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected bearer token: {e}")
        raise NoAuth("Invalid token")
    except ValueError:
        raise NoAuth("Invalid token claims")


async def get_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Principal:
    """Extract and validate the Bearer token, returning the Principal.

    Raises:
        NoAuth: If the token is missing, invalid or expired
    """
    if credentials is None or not credentials.credentials:
        raise NoAuth("Authentication required")

    principal = principal_from_token(credentials.credentials)
    request.state.principal = principal
    return principal
