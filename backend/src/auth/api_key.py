"""Machine authentication with organization API keys.

Integrations send the plaintext key in the `x-api-key` header. The key alone
identifies the organization; there is no user and no selector involved.
"""

import logging
from typing import Optional

from fastapi import Depends, Request, Security
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession

from api_keys.hashing import is_well_formed
from api_keys.service import ApiKeyIdentity, ApiKeyService
from database import get_db
from observability.request_context import set_tenant_context
from tenancy.errors import NoAuth

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"

api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


async def get_api_key_identity(
    request: Request,
    api_key: Optional[str] = Security(api_key_header),
    db: AsyncSession = Depends(get_db),
) -> ApiKeyIdentity:
    """Resolve the `x-api-key` header to the organization that owns the key.

    Raises:
        NoAuth: Header missing, malformed, unknown or revoked key
    """
    if not api_key:
        raise NoAuth(f"API key required. Use the {API_KEY_HEADER} header.")
    if not is_well_formed(api_key):
        raise NoAuth("Invalid API key format")

    identity = await ApiKeyService(db).verify_api_key(api_key)
    if identity is None:
        logger.info("Rejected unknown or revoked API key")
        raise NoAuth("Invalid or revoked API key")

    request.state.api_key_identity = identity
    set_tenant_context(identity.org_id, None)
    return identity
