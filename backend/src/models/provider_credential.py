"""Provider credential model - org-owned provider configuration.

The whole credential bundle (API keys, SMTP passwords, bucket secrets) is
stored as a single EncryptedSecret in config_encrypted.
"""

import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Index, Text, Uuid
from sqlalchemy.orm import relationship

from .base import Base, OrgScopedMixin, PortableJSONB, utcnow


class ProviderCredential(OrgScopedMixin, Base):
    """Configuration for an external provider (email, AI, storage) of an organization.

    Attributes:
        id: Primary key UUID
        org_id: Organization this credential belongs to
        kind: Provider category ('EMAIL', 'AI', 'STORAGE')
        provider: Provider identifier (e.g., 'smtp', 'openai', 's3')
        name: Display name, unique per org and kind
        config_encrypted: EncryptedSecret serialized as {ciphertext, iv, auth_tag}
        is_active: Whether this credential may be used
        is_default: Whether this is the default credential for its kind
    """

    __tablename__ = "provider_credential"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    kind = Column(Text, nullable=False)
    provider = Column(Text, nullable=False)
    name = Column(Text, nullable=False)
    config_encrypted = Column(PortableJSONB, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    org = relationship("Org")

    __table_args__ = (
        CheckConstraint("kind IN ('EMAIL', 'AI', 'STORAGE')", name='ck_provider_credential_kind'),
        Index("uq_provider_credential_org_kind_name", "org_id", "kind", "name", unique=True),
    )

    def __repr__(self):
        return f"<ProviderCredential(id={self.id}, org_id={self.org_id}, provider={self.provider})>"
