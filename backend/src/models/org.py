"""Org model - the tenant"""

import re
import uuid

from sqlalchemy import Boolean, Column, DateTime, Text, Uuid
from sqlalchemy.orm import relationship, validates

from .base import Base, utcnow

SLUG_PATTERN = re.compile(r"^[a-z0-9-]{2,100}$")
MAX_NAME_LENGTH = 200


class Org(Base):
    """An agency tenant.

    Users reach an org only through a Membership. Org-scoped rows
    (credentials, API keys) cascade with it; audit entries keep it alive.
    """
    __tablename__ = "org"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    slug = Column(Text, nullable=False, unique=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    memberships = relationship("Membership", back_populates="org")

    @validates("slug")
    def validate_slug(self, key, value):
        # lowercase letters, digits and hyphens, 2-100 chars
        if not SLUG_PATTERN.match(value):
            raise ValueError("Slug must be 2-100 lowercase letters, digits or hyphens")
        return value

    @validates("name")
    def validate_name(self, key, value):
        name = (value or "").strip()
        if not name:
            raise ValueError("Organization name cannot be empty")
        if len(value) > MAX_NAME_LENGTH:
            raise ValueError(f"Organization name cannot exceed {MAX_NAME_LENGTH} characters")
        return name

    def __repr__(self):
        return f"<Org(id={self.id}, slug='{self.slug}')>"
