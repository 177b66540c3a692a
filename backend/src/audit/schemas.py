"""Pydantic schemas for audit log endpoints.

Audit logs are read-only through the API (no create/update/delete).
The organization is never a filter: it always comes from the caller's
OrgContext, and AuditLogFilters rejects unknown fields such as
organization_id.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class AuditLogFilters(BaseModel):
    """Filters for audit queries within the current organization."""
    model_config = ConfigDict(extra="forbid")

    action: Optional[str] = None
    resource: Optional[str] = None
    user_id: Optional[UUID] = None
    severity: Optional[str] = None
    category: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class AuditLogResponse(BaseModel):
    """Response schema for audit log entries."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(..., description="Audit log entry unique identifier")
    timestamp: datetime = Field(..., description="Event timestamp")
    action: str = Field(..., description="Event action (ORG_SWITCHED, API_KEY_CREATED, etc.)")
    resource: str = Field(..., description="Type of resource affected")
    resource_id: Optional[str] = Field(None, description="ID of affected resource")
    old_values: Optional[Dict[str, Any]] = Field(None, description="Tagged payload before the change")
    new_values: Optional[Dict[str, Any]] = Field(None, description="Tagged payload after the change")
    user_id: Optional[UUID] = Field(None, description="User who performed the action")
    organization_id: Optional[UUID] = Field(None, description="Organization ID")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client User-Agent header")
    severity: str = Field(..., description="INFO, WARNING or ERROR")
    category: Optional[str] = None
    is_system: bool = False


class AuditLogListResponse(BaseModel):
    """Audit log page with pagination metadata."""
    entries: list[AuditLogResponse] = Field(..., description="List of audit log entries")
    total: int = Field(..., description="Total number of entries matching filters")
    limit: int
    offset: int


class AuditLogStats(BaseModel):
    total: int = 0
    errors: int = 0
    warnings: int = 0
    by_severity: Dict[str, int] = Field(default_factory=dict)
    by_category: Dict[str, int] = Field(default_factory=dict)
