"""ApiKey model - organization-scoped API keys"""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, Text, Uuid
from sqlalchemy.orm import relationship

from .base import Base, OrgScopedMixin, utcnow


class ApiKey(OrgScopedMixin, Base):
    """Organization API key.

    Only an Argon2id hash of the key is stored. key_prefix is the first
    12 characters of the plaintext key and is used to narrow verification
    candidates and for display.
    """
    __tablename__ = "api_key"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    key_prefix = Column(Text, nullable=False)
    key_hash = Column(Text, nullable=False)
    created_by_user_id = Column(Uuid, ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    org = relationship("Org")

    __table_args__ = (
        Index("ix_api_key_org_id", "org_id"),
        Index("ix_api_key_key_prefix", "key_prefix"),
    )

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None
