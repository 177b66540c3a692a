"""Audit recording and querying.

AuditRecorder writes append-only audit entries. Writes are best-effort: a
failure to persist is logged and counted, but never propagates to the
caller, so the audited operation's own result is unaffected.

Every write runs in its own session. Callers commit their own transaction
before recording, so an audit entry is only written for a change that
actually happened.

Two write paths exist on top of the generic record():
- Tenant path (record_for_tenant, log_*): organization_id and user_id always come from
  the request's OrgContext. Calling it without a context is a programming
  error and raises MissingTenantContext.
- System path (record_system_event): no tenant; organization_id is null and
  is_system is set.

Example:
    recorder = AuditRecorder(get_session_factory())
    await recorder.record_for_tenant(
        context,
        AuditAction.API_KEY_REVOKED,
        "api_key",
        resource_id=str(key.id),
        old_values=ApiKeyRevoked(name=key.name, key_prefix=key.key_prefix),
        request_meta=request_metadata(request),
    )
"""

import logging
import traceback
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union
from uuid import UUID

from fastapi import Request
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.audit_log import AuditLog
from models.base import utcnow
from observability.metrics import audit_writes_total
from observability.request_context import get_request_id
from tenancy.context import OrgContext
from .events import AuditAction, LogMessage, to_stored_payload
from .schemas import AuditLogFilters, AuditLogStats

logger = logging.getLogger(__name__)

Payload = Union[BaseModel, Dict[str, Any], None]


class MissingTenantContext(RuntimeError):
    """A tenant-scoped audit write was attempted without an OrgContext."""


@dataclass(frozen=True)
class RequestMetadata:
    """Client details attached to audit entries."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def request_metadata(request: Optional[Request]) -> RequestMetadata:
    """Extract client IP and User-Agent from a request.

    Precedence: first X-Forwarded-For entry, X-Real-IP, socket peer address.
    """
    if request is None:
        return RequestMetadata()

    ip_address = request.client.host if request.client else None
    forwarded_for = request.headers.get("X-Forwarded-For")
    real_ip = request.headers.get("X-Real-IP")
    if forwarded_for:
        # Use first IP in chain (original client)
        ip_address = forwarded_for.split(",")[0].strip()
    elif real_ip:
        ip_address = real_ip.strip()

    return RequestMetadata(
        ip_address=ip_address,
        user_agent=request.headers.get("User-Agent"),
    )


class AuditRecorder:
    """Best-effort, append-only audit writer."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def record_for_tenant(
        self,
        context: Optional[OrgContext],
        action: Union[AuditAction, str],
        resource: str,
        *,
        resource_id: Optional[str] = None,
        old_values: Payload = None,
        new_values: Payload = None,
        user_id: Optional[UUID] = None,
        request_meta: Optional[RequestMetadata] = None,
        severity: str = "INFO",
        category: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """Record a tenant-scoped audit entry.

        organization_id is always taken from the context; user_id defaults to
        the context's user.

        Returns:
            The persisted entry, or None if the write failed

        Raises:
            MissingTenantContext: If context is None
        """
        if context is None:
            raise MissingTenantContext(
                f"Tenant audit record for {action} requires an organization context"
            )

        return await self.record(
            path="tenant",
            action=action,
            resource=resource,
            resource_id=resource_id,
            old_values=old_values,
            new_values=new_values,
            user_id=user_id or context.user_id,
            organization_id=context.org_id,
            request_meta=request_meta,
            severity=severity,
            category=category,
            is_system=False,
        )

    async def record_system_event(
        self,
        action: Union[AuditAction, str],
        resource: str,
        *,
        resource_id: Optional[str] = None,
        old_values: Payload = None,
        new_values: Payload = None,
        user_id: Optional[UUID] = None,
        request_meta: Optional[RequestMetadata] = None,
        severity: str = "INFO",
        category: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """Record an event that belongs to no tenant (organization_id is null)."""
        return await self.record(
            path="system",
            action=action,
            resource=resource,
            resource_id=resource_id,
            old_values=old_values,
            new_values=new_values,
            user_id=user_id,
            organization_id=None,
            request_meta=request_meta,
            severity=severity,
            category=category,
            is_system=True,
        )

    async def log_error(
        self,
        context: Optional[OrgContext],
        message: str,
        error: Optional[BaseException] = None,
        category: str = "System",
        metadata: Optional[Dict[str, Any]] = None,
        request_meta: Optional[RequestMetadata] = None,
    ) -> Optional[AuditLog]:
        stack_trace = None
        if error is not None:
            stack_trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        return await self._log(context, "ERROR", category, message, metadata, request_meta, stack_trace)

    async def log_warning(
        self,
        context: Optional[OrgContext],
        message: str,
        category: str = "System",
        metadata: Optional[Dict[str, Any]] = None,
        request_meta: Optional[RequestMetadata] = None,
    ) -> Optional[AuditLog]:
        return await self._log(context, "WARNING", category, message, metadata, request_meta)

    async def log_info(
        self,
        context: Optional[OrgContext],
        message: str,
        category: str = "System",
        metadata: Optional[Dict[str, Any]] = None,
        request_meta: Optional[RequestMetadata] = None,
    ) -> Optional[AuditLog]:
        return await self._log(context, "INFO", category, message, metadata, request_meta)

    async def log_security(
        self,
        context: Optional[OrgContext],
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        request_meta: Optional[RequestMetadata] = None,
    ) -> Optional[AuditLog]:
        """Security events are always recorded with WARNING severity."""
        return await self._log(context, "WARNING", "Security", message, metadata, request_meta)

    async def _log(self, context, severity, category, message, metadata, request_meta, stack_trace=None):
        payload = LogMessage(
            message=message,
            metadata=metadata or {},
            stack_trace=stack_trace,
            request_id=get_request_id(),
        )
        return await self.record_for_tenant(
            context,
            AuditAction.LOG,
            category,
            new_values=payload,
            request_meta=request_meta,
            severity=severity,
            category=category,
        )

    async def record(
        self,
        action: Union[AuditAction, str],
        resource: str,
        *,
        resource_id: Optional[str] = None,
        old_values: Payload = None,
        new_values: Payload = None,
        user_id: Optional[UUID] = None,
        organization_id: Optional[UUID] = None,
        request_meta: Optional[RequestMetadata] = None,
        severity: str = "INFO",
        category: Optional[str] = None,
        is_system: bool = False,
        path: str = "generic",
    ) -> Optional[AuditLog]:
        """Persist one audit entry. Never raises; returns None on failure."""
        action_name = action.value if isinstance(action, AuditAction) else str(action)
        meta = request_meta or RequestMetadata()
        try:
            entry = AuditLog(
                timestamp=utcnow(),
                action=action_name,
                resource=resource,
                resource_id=resource_id,
                old_values=to_stored_payload(old_values),
                new_values=to_stored_payload(new_values),
                user_id=user_id,
                organization_id=organization_id,
                ip_address=meta.ip_address,
                user_agent=meta.user_agent,
                severity=severity,
                category=category,
                is_system=is_system,
            )
            async with self.session_factory() as session:
                session.add(entry)
                await session.commit()
        except Exception:
            audit_writes_total.labels(path=path, status="error").inc()
            logger.exception(
                f"Failed to write audit record {action_name} on {resource}",
                extra={"audit_action": action_name, "organization_id": str(organization_id)},
            )
            return None

        audit_writes_total.labels(path=path, status="success").inc()
        return entry


def _apply_filters(query, context: OrgContext, filters: AuditLogFilters):
    # Tenant scope always comes from the context, never from the filters
    query = query.where(AuditLog.organization_id == context.org_id)

    if filters.action:
        query = query.where(AuditLog.action == filters.action)
    if filters.resource:
        query = query.where(AuditLog.resource == filters.resource)
    if filters.user_id:
        query = query.where(AuditLog.user_id == filters.user_id)
    if filters.severity:
        query = query.where(AuditLog.severity == filters.severity)
    if filters.category:
        query = query.where(AuditLog.category == filters.category)
    if filters.start_date:
        query = query.where(AuditLog.timestamp >= filters.start_date)
    if filters.end_date:
        query = query.where(AuditLog.timestamp <= filters.end_date)
    return query


async def get_audit_logs(
    db: AsyncSession,
    context: OrgContext,
    filters: Optional[AuditLogFilters] = None,
    limit: int = 50,
    offset: int = 0,
) -> Tuple[List[AuditLog], int]:
    """Query the audit trail of the context's organization, newest first.

    Returns:
        (entries, total) where total counts all entries matching the filters
    """
    filters = filters or AuditLogFilters()

    count_query = _apply_filters(select(func.count(AuditLog.id)), context, filters)
    total = (await db.execute(count_query)).scalar_one()

    query = (
        _apply_filters(select(AuditLog), context, filters)
        .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
        .offset(offset)
        .limit(limit)
    )
    entries = list((await db.execute(query)).scalars().all())
    return entries, total


async def get_log_stats(
    db: AsyncSession,
    context: OrgContext,
    since: Optional[datetime] = None,
) -> AuditLogStats:
    """Count the organization's audit entries by severity and by category."""
    filters = AuditLogFilters(start_date=since)

    by_severity_query = _apply_filters(
        select(AuditLog.severity, func.count(AuditLog.id)), context, filters
    ).group_by(AuditLog.severity)
    by_category_query = _apply_filters(
        select(AuditLog.category, func.count(AuditLog.id)), context, filters
    ).where(AuditLog.category.is_not(None)).group_by(AuditLog.category)

    by_severity = {severity: count for severity, count in (await db.execute(by_severity_query)).all()}
    by_category = {category: count for category, count in (await db.execute(by_category_query)).all()}

    return AuditLogStats(
        total=sum(by_severity.values()),
        errors=by_severity.get("ERROR", 0),
        warnings=by_severity.get("WARNING", 0),
        by_severity=by_severity,
        by_category=by_category,
    )
