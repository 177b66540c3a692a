"""Membership model - binds a user to an organization with one role"""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Text, Uuid, CheckConstraint, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import Base, utcnow


class Membership(Base):
    """Membership of a user in an organization.

    A (user_id, org_id) pair has at most one row. `joined_at` orders a
    user's memberships; the oldest one is the default active organization.
    Rows are created and removed by invitation flows outside this service.
    """
    __tablename__ = "org_membership"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id = Column(Uuid, ForeignKey("org.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    role = Column(Text, nullable=False)
    joined_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Relationships
    org = relationship("Org", back_populates="memberships")
    user = relationship("User", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint('org_id', 'user_id', name='uq_org_membership_org_user'),
        CheckConstraint(
            "role IN ('OWNER', 'ADMIN', 'MEMBER', 'VIEWER')",
            name='ck_org_membership_role'
        ),
        Index('ix_org_membership_user_joined', 'user_id', 'joined_at'),
    )

    def __repr__(self):
        return f"<Membership(user_id={self.user_id}, org_id={self.org_id}, role='{self.role}')>"
