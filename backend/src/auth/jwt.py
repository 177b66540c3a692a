"""Access tokens (HS256 JWT).

A token names a user and nothing else: sub (user id), email, iat, exp.
There is no org or role claim. The active organization is resolved on every
request from the user's memberships, so a token can never pin a tenant.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import UUID

import jwt

from config import Settings, get_settings

REQUIRED_CLAIMS = ["sub", "iat", "exp"]


def create_access_token(
    user_id: UUID,
    email: str,
    settings: Optional[Settings] = None,
) -> str:
    """Sign a token for `user_id`, valid for JWT_EXPIRY_MINUTES."""
    settings = settings or get_settings()
    issued_at = datetime.now(timezone.utc)

    claims = {
        "sub": str(user_id),
        "email": email,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + timedelta(minutes=settings.JWT_EXPIRY_MINUTES)).timestamp()),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str, settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Verify signature, algorithm and expiry, and return the claims.

    Only the configured algorithm is accepted, which rules out `alg: none`.

    Raises:
        jwt.ExpiredSignatureError: If the token has expired
        jwt.InvalidTokenError: If the token is malformed, re-signed or lacks a required claim
    """
    settings = settings or get_settings()
    return jwt.decode(
        token,
        settings.JWT_SECRET,
        algorithms=[settings.JWT_ALGORITHM],
        options={"require": REQUIRED_CLAIMS},
    )
