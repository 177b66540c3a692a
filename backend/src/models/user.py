"""User SQLAlchemy model"""

import re
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Text, Uuid, CheckConstraint
from sqlalchemy.orm import relationship, validates

from .base import Base, utcnow


class User(Base):
    """User profile for an authenticated principal.

    A user can belong to any number of organizations through Membership rows.
    `active_org_id` is the durable organization preference: the last
    organization the user explicitly selected. It is written only by the
    active-organization switch (tenancy.switch) and read-only elsewhere.
    """
    __tablename__ = "user"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(Text, nullable=False, unique=True)
    name = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="ACTIVE")
    active_org_id = Column(Uuid, ForeignKey("org.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Relationships
    memberships = relationship("Membership", back_populates="user")

    __table_args__ = (
        CheckConstraint(
            "status IN ('ACTIVE', 'DISABLED')",
            name='ck_user_status'
        ),
    )

    @validates('email')
    def validate_email(self, key, value):
        """Basic email format validation"""
        if not re.match(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$', value):
            raise ValueError("Invalid email format")
        return value.lower()

