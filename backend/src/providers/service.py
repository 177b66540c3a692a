"""Provider credential service.

Stores each organization's provider credential bundle as ONE ciphertext
bound to the owning organization (associated data
"provider_credential:<org_id>"), so a bundle copied into another
organization's row fails to decrypt.

Every successful mutation writes exactly one tenant-scoped audit record.
Audit payloads describe the change but never contain secret values.
"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from audit.events import (
    AuditAction,
    ProviderCredentialCreated,
    ProviderCredentialDeleted,
    ProviderCredentialUpdated,
)
from audit.service import AuditRecorder, RequestMetadata
from infrastructure.encryption import EncryptedSecret, SecretCipher
from models.provider_credential import ProviderCredential
from tenancy.context import OrgContext
from .schemas import ProviderCredentialCreate, ProviderCredentialUpdate, ProviderKind

logger = logging.getLogger(__name__)

AUDIT_RESOURCE = "provider_credential"


class ProviderCredentialNotFound(LookupError):
    """No credential with this id in the active organization."""


class ProviderCredentialConflict(ValueError):
    """A credential with the same kind and name already exists in the organization."""


def cipher_context(org_id: UUID) -> str:
    """Associated data binding a ciphertext to its owning organization."""
    return f"provider_credential:{org_id}"


class ProviderCredentialService:
    """Tenant-scoped CRUD for provider credentials.

    Example:
        service = ProviderCredentialService(db, cipher, recorder)
        credential = await service.create_credential(context, data)
        config = await service.get_credential_config(context, credential.id)
    """

    def __init__(self, db: AsyncSession, cipher: SecretCipher, recorder: AuditRecorder):
        self.db = db
        self.cipher = cipher
        self.recorder = recorder

    async def create_credential(
        self,
        context: OrgContext,
        data: ProviderCredentialCreate,
        request_meta: Optional[RequestMetadata] = None,
    ) -> ProviderCredential:
        """Create a credential; the config bundle is encrypted before storage.

        Raises:
            ProviderCredentialConflict: Same kind and name already exist in the org
        """
        await self._ensure_name_available(context.org_id, data.kind.value, data.name)

        if data.is_default:
            await self._clear_default(context.org_id, data.kind.value)

        encrypted = self.cipher.encrypt_object(data.config, context=cipher_context(context.org_id))
        credential = ProviderCredential(
            org_id=context.org_id,
            kind=data.kind.value,
            provider=data.provider,
            name=data.name,
            config_encrypted=encrypted.to_dict(),
            is_active=data.is_active,
            is_default=data.is_default,
        )
        self.db.add(credential)
        await self._commit(data.name)
        await self.db.refresh(credential)

        logger.info(
            f"Provider credential created: {credential.provider} ({credential.kind})",
            extra={"credential_id": str(credential.id)},
        )
        await self.recorder.record_for_tenant(
            context,
            AuditAction.PROVIDER_CREDENTIAL_CREATED,
            AUDIT_RESOURCE,
            resource_id=str(credential.id),
            new_values=ProviderCredentialCreated(
                provider_kind=credential.kind,
                provider=credential.provider,
                name=credential.name,
                is_active=credential.is_active,
                is_default=credential.is_default,
            ),
            request_meta=request_meta,
        )
        return credential

    async def list_credentials(
        self,
        context: OrgContext,
        kind: Optional[ProviderKind] = None,
    ) -> List[ProviderCredential]:
        """Credential metadata for the active organization. Secrets are never decrypted here."""
        query = select(ProviderCredential).where(ProviderCredential.org_id == context.org_id)
        if kind is not None:
            query = query.where(ProviderCredential.kind == kind.value)
        query = query.order_by(ProviderCredential.kind, ProviderCredential.name)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_credential(self, context: OrgContext, credential_id: UUID) -> ProviderCredential:
        """Raises ProviderCredentialNotFound for missing ids and other orgs' ids alike."""
        result = await self.db.execute(
            select(ProviderCredential).where(
                ProviderCredential.id == credential_id,
                ProviderCredential.org_id == context.org_id,
            )
        )
        credential = result.scalar_one_or_none()
        if credential is None:
            raise ProviderCredentialNotFound(f"Provider credential {credential_id} not found")
        return credential

    async def get_credential_config(self, context: OrgContext, credential_id: UUID) -> dict:
        """Decrypt a credential bundle.

        Raises:
            ProviderCredentialNotFound: Unknown id in the active organization
            AuthenticationFailed: Ciphertext tampered, wrong key or foreign owner
            MalformedSecret: Stored value cannot be decoded
        """
        credential = await self.get_credential(context, credential_id)
        secret = EncryptedSecret.from_dict(credential.config_encrypted)
        return self.cipher.decrypt_object(secret, context=cipher_context(credential.org_id))

    async def update_credential(
        self,
        context: OrgContext,
        credential_id: UUID,
        data: ProviderCredentialUpdate,
        request_meta: Optional[RequestMetadata] = None,
    ) -> ProviderCredential:
        credential = await self.get_credential(context, credential_id)

        if data.name is not None and data.name != credential.name:
            await self._ensure_name_available(context.org_id, credential.kind, data.name)
            credential.name = data.name

        config_changed = data.config is not None
        if config_changed:
            encrypted = self.cipher.encrypt_object(data.config, context=cipher_context(context.org_id))
            credential.config_encrypted = encrypted.to_dict()

        if data.is_active is not None:
            credential.is_active = data.is_active

        if data.is_default is not None:
            if data.is_default and not credential.is_default:
                await self._clear_default(context.org_id, credential.kind, exclude_id=credential.id)
            credential.is_default = data.is_default

        await self._commit(credential.name)
        await self.db.refresh(credential)

        await self.recorder.record_for_tenant(
            context,
            AuditAction.PROVIDER_CREDENTIAL_UPDATED,
            AUDIT_RESOURCE,
            resource_id=str(credential.id),
            new_values=ProviderCredentialUpdated(
                provider_kind=credential.kind,
                provider=credential.provider,
                name=credential.name,
                is_active=credential.is_active,
                is_default=credential.is_default,
                config_changed=config_changed,
            ),
            request_meta=request_meta,
        )
        return credential

    async def delete_credential(
        self,
        context: OrgContext,
        credential_id: UUID,
        request_meta: Optional[RequestMetadata] = None,
    ) -> None:
        credential = await self.get_credential(context, credential_id)
        snapshot = ProviderCredentialDeleted(
            provider_kind=credential.kind,
            provider=credential.provider,
            name=credential.name,
        )

        await self.db.delete(credential)
        await self.db.commit()

        await self.recorder.record_for_tenant(
            context,
            AuditAction.PROVIDER_CREDENTIAL_DELETED,
            AUDIT_RESOURCE,
            resource_id=str(credential_id),
            old_values=snapshot,
            request_meta=request_meta,
        )

    async def _ensure_name_available(self, org_id: UUID, kind: str, name: str) -> None:
        result = await self.db.execute(
            select(ProviderCredential.id).where(
                ProviderCredential.org_id == org_id,
                ProviderCredential.kind == kind,
                ProviderCredential.name == name,
            )
        )
        if result.scalar_one_or_none() is not None:
            raise ProviderCredentialConflict(f"{kind} credential '{name}' already exists")

    async def _clear_default(self, org_id: UUID, kind: str, exclude_id: Optional[UUID] = None) -> None:
        query = update(ProviderCredential).where(
            ProviderCredential.org_id == org_id,
            ProviderCredential.kind == kind,
            ProviderCredential.is_default.is_(True),
        )
        if exclude_id is not None:
            query = query.where(ProviderCredential.id != exclude_id)
        await self.db.execute(query.values(is_default=False))

    async def _commit(self, name: str) -> None:
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ProviderCredentialConflict(f"Credential '{name}' already exists")
