"""AuditLog SQLAlchemy model"""

import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Text, Uuid

from .base import Base, PortableJSONB, utcnow


class AuditLog(Base):
    """AuditLog model for append-only security and administrative events.

    Tenant records always carry organization_id. A null organization_id is
    only produced by the system-event path, which also sets is_system.
    Entries are never updated or deleted.
    """
    __tablename__ = "audit_log"
    __table_args__ = (
        CheckConstraint("is_system OR organization_id IS NOT NULL", name="ck_audit_log_tenant_or_system"),
        Index("ix_audit_log_organization_id", "organization_id"),
        Index("ix_audit_log_organization_id_timestamp", "organization_id", "timestamp"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    action = Column(Text, nullable=False)
    resource = Column(Text, nullable=False)
    resource_id = Column(Text, nullable=True)
    old_values = Column(PortableJSONB, nullable=True)
    new_values = Column(PortableJSONB, nullable=True)
    user_id = Column(Uuid, ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    organization_id = Column(Uuid, ForeignKey("org.id", ondelete="RESTRICT"), nullable=True)
    ip_address = Column(Text, nullable=True)
    user_agent = Column(Text, nullable=True)
    severity = Column(Text, nullable=False, default="INFO")
    category = Column(Text, nullable=True)
    is_system = Column(Boolean, nullable=False, default=False)

    def to_dict(self):
        """Convert audit log entry to dictionary representation"""
        return {
            "id": str(self.id),
            "timestamp": self.timestamp.isoformat(),
            "action": self.action,
            "resource": self.resource,
            "resource_id": self.resource_id,
            "old_values": self.old_values,
            "new_values": self.new_values,
            "user_id": str(self.user_id) if self.user_id else None,
            "organization_id": str(self.organization_id) if self.organization_id else None,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "severity": self.severity,
            "category": self.category,
            "is_system": self.is_system,
        }
