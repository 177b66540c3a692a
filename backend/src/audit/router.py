"""Audit log query endpoints (ADMIN or higher).

All endpoints in this router are read-only. Audit logs are immutable and
cannot be created, updated, or deleted through the API.

The organization is always the caller's active organization. An
organization_id query parameter is not a declared filter and is ignored.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from auth.roles import OrgRole
from database import get_db
from dependencies import require_org_role
from tenancy.context import OrgContext
from .schemas import AuditLogFilters, AuditLogListResponse, AuditLogResponse, AuditLogStats
from .service import get_audit_logs, get_log_stats


router = APIRouter(prefix="/audit", tags=["Audit Logs"])


@router.get(
    "",
    response_model=AuditLogListResponse,
    summary="Query audit logs (ADMIN or higher)",
    description="Query the active organization's audit trail with filtering and pagination, newest first."
)
async def query_audit_logs(
    db: AsyncSession = Depends(get_db),
    context: OrgContext = Depends(require_org_role(OrgRole.ADMIN)),
    action: Optional[str] = Query(
        None,
        description="Filter by action (e.g., ORG_SWITCHED, API_KEY_CREATED)",
        examples=["API_KEY_CREATED"],
    ),
    resource: Optional[str] = Query(None, description="Filter by resource type (e.g., api_key)"),
    user_id: Optional[UUID] = Query(None, description="Filter by acting user"),
    severity: Optional[str] = Query(None, description="Filter by severity (INFO, WARNING, ERROR, DEBUG)"),
    category: Optional[str] = Query(None, description="Filter by category"),
    start_date: Optional[datetime] = Query(None, description="Minimum timestamp (ISO 8601)"),
    end_date: Optional[datetime] = Query(None, description="Maximum timestamp (ISO 8601)"),
    limit: int = Query(50, ge=1, le=100, description="Entries per page (max 100)"),
    offset: int = Query(0, ge=0, description="Entries to skip"),
) -> AuditLogListResponse:
    """Query audit logs with filtering and pagination.

    Example:
        GET /audit?action=API_KEY_CREATED&limit=20&offset=0
    """
    filters = AuditLogFilters(
        action=action,
        resource=resource,
        user_id=user_id,
        severity=severity,
        category=category,
        start_date=start_date,
        end_date=end_date,
    )
    entries, total = await get_audit_logs(db, context, filters, limit=limit, offset=offset)

    return AuditLogListResponse(
        entries=[AuditLogResponse.model_validate(entry) for entry in entries],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/stats", response_model=AuditLogStats)
async def audit_log_stats(
    db: AsyncSession = Depends(get_db),
    context: OrgContext = Depends(require_org_role(OrgRole.ADMIN)),
    since: Optional[datetime] = Query(None, description="Only count entries at or after this time"),
) -> AuditLogStats:
    """Entry counts per severity and category for the active organization."""
    return await get_log_stats(db, context, since=since)
