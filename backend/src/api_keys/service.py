"""Organization API key service.

Create, list and revoke are scoped to the caller's OrgContext and audited
through the tenant path. verify_api_key is the machine-authentication
entry point: the key itself identifies the organization.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from audit.events import ApiKeyCreated, ApiKeyRevoked, AuditAction
from audit.service import AuditRecorder, RequestMetadata
from models.api_key import ApiKey
from models.base import utcnow
from tenancy.context import OrgContext
from .hashing import display_prefix, generate_api_key, hash_api_key, is_well_formed, verify_api_key_hash

logger = logging.getLogger(__name__)

AUDIT_RESOURCE = "api_key"


class ApiKeyNotFound(LookupError):
    """No API key with this id in the active organization."""


@dataclass(frozen=True)
class ApiKeyIdentity:
    """The organization an API key authenticates as."""
    org_id: UUID
    api_key_id: UUID
    name: str


class ApiKeyService:
    def __init__(self, db: AsyncSession, recorder: Optional[AuditRecorder] = None, live: bool = False):
        """recorder may be omitted when only verifying keys."""
        self.db = db
        self.recorder = recorder
        self.live = live

    async def create_api_key(
        self,
        context: OrgContext,
        name: str,
        request_meta: Optional[RequestMetadata] = None,
    ) -> Tuple[ApiKey, str]:
        """Create a key for the active organization.

        Returns:
            (api_key, plaintext). The plaintext is not stored anywhere.
        """
        plaintext = generate_api_key(live=self.live)
        api_key = ApiKey(
            org_id=context.org_id,
            name=name,
            key_prefix=display_prefix(plaintext),
            key_hash=hash_api_key(plaintext),
            created_by_user_id=context.user_id,
        )
        self.db.add(api_key)
        await self.db.commit()
        await self.db.refresh(api_key)

        logger.info(f"API key created: {api_key.key_prefix}...", extra={"api_key_id": str(api_key.id)})
        await self.recorder.record_for_tenant(
            context,
            AuditAction.API_KEY_CREATED,
            AUDIT_RESOURCE,
            resource_id=str(api_key.id),
            new_values=ApiKeyCreated(name=api_key.name, key_prefix=api_key.key_prefix),
            request_meta=request_meta,
        )
        return api_key, plaintext

    async def list_api_keys(self, context: OrgContext, include_revoked: bool = False) -> List[ApiKey]:
        query = select(ApiKey).where(ApiKey.org_id == context.org_id)
        if not include_revoked:
            query = query.where(ApiKey.revoked_at.is_(None))
        result = await self.db.execute(query.order_by(ApiKey.created_at.desc()))
        return list(result.scalars().all())

    async def revoke_api_key(
        self,
        context: OrgContext,
        api_key_id: UUID,
        request_meta: Optional[RequestMetadata] = None,
    ) -> ApiKey:
        """Revoke a key of the active organization.

        Revoking an already revoked key is a no-op and is not audited again.

        Raises:
            ApiKeyNotFound: Unknown id, or a key of another organization
        """
        result = await self.db.execute(
            select(ApiKey).where(ApiKey.id == api_key_id, ApiKey.org_id == context.org_id)
        )
        api_key = result.scalar_one_or_none()
        if api_key is None:
            raise ApiKeyNotFound(f"API key {api_key_id} not found")

        if api_key.is_revoked:
            return api_key

        api_key.revoked_at = utcnow()
        await self.db.commit()
        await self.db.refresh(api_key)

        await self.recorder.record_for_tenant(
            context,
            AuditAction.API_KEY_REVOKED,
            AUDIT_RESOURCE,
            resource_id=str(api_key.id),
            old_values=ApiKeyRevoked(name=api_key.name, key_prefix=api_key.key_prefix),
            request_meta=request_meta,
        )
        return api_key

    async def verify_api_key(self, plaintext: str) -> Optional[ApiKeyIdentity]:
        """Resolve a plaintext key to its organization.

        Returns None for malformed, unknown and revoked keys. A successful
        verification updates last_used_at.
        """
        if not is_well_formed(plaintext):
            return None

        result = await self.db.execute(
            select(ApiKey).where(
                ApiKey.key_prefix == display_prefix(plaintext),
                ApiKey.revoked_at.is_(None),
            )
        )
        for candidate in result.scalars().all():
            if verify_api_key_hash(plaintext, candidate.key_hash):
                candidate.last_used_at = utcnow()
                await self.db.commit()
                return ApiKeyIdentity(
                    org_id=candidate.org_id,
                    api_key_id=candidate.id,
                    name=candidate.name,
                )
        return None
