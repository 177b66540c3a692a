"""Global FastAPI dependencies for tenant isolation and shared services.

This module provides:
- get_org_context: The request's OrgContext, resolved once per request
- require_org_role: Role-based access control against that OrgContext
- get_cipher / get_audit_recorder / get_membership_repository: injected services

Every tenant-scoped endpoint must depend on get_org_context (directly or via
require_org_role). The organization id is never taken from request bodies
or query parameters.
"""

from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from audit.service import AuditRecorder, request_metadata
from auth.dependencies import get_principal
from auth.roles import OrgRole, has_permission
from config import Settings, get_settings
from database import get_db, get_session_factory
from infrastructure.encryption import SecretCipher
from observability.request_context import set_tenant_context
from tenancy.context import OrgContext, Principal
from tenancy.repository import MembershipRepository
from tenancy.resolver import OrgContextResolver
from tenancy.selector import CookieOrgSelector


def get_cipher(request: Request) -> SecretCipher:
    """The process-wide SecretCipher built at startup (app.state.cipher)."""
    cipher = getattr(request.app.state, "cipher", None)
    if cipher is None:
        raise RuntimeError("Secret cipher is not initialized")
    return cipher


def get_audit_recorder(request: Request) -> AuditRecorder:
    """AuditRecorder from app.state, or one bound to the default session factory."""
    recorder = getattr(request.app.state, "audit_recorder", None)
    if recorder is None:
        recorder = AuditRecorder(get_session_factory())
    return recorder


def get_membership_repository(db: AsyncSession = Depends(get_db)) -> MembershipRepository:
    return MembershipRepository(db)


def get_org_selector(settings: Settings = Depends(get_settings)) -> CookieOrgSelector:
    return CookieOrgSelector(settings)


async def get_org_context(
    request: Request,
    principal: Principal = Depends(get_principal),
    repository: MembershipRepository = Depends(get_membership_repository),
    selector: CookieOrgSelector = Depends(get_org_selector),
    recorder: AuditRecorder = Depends(get_audit_recorder),
    settings: Settings = Depends(get_settings),
) -> OrgContext:
    """Resolve the OrgContext for this request.

    Resolved at most once per request: FastAPI caches the dependency within a
    request and the result is also kept on request.state.org_context, so the
    same context is used for the whole request even if an organization
    switch happens concurrently elsewhere.

    Raises:
        NoAuth, NoOrg, InvalidOrg, InternalError (see OrgContextResolver)

    Example:
        @router.get("/providers")
        async def list_providers(context: OrgContext = Depends(get_org_context)):
            ...
    """
    cached: Optional[OrgContext] = getattr(request.state, "org_context", None)
    if cached is not None and cached.user_id == principal.user_id:
        return cached

    resolver = OrgContextResolver(
        repository, timeout=settings.TENANT_LOOKUP_TIMEOUT_SECONDS, recorder=recorder
    )
    context = await resolver.resolve(
        principal,
        selector_org_id=selector.read(request),
        request_meta=request_metadata(request),
    )

    request.state.org_context = context
    set_tenant_context(context.org_id, context.user_id)
    return context


def require_org_role(required_role: OrgRole) -> Callable:
    """Create a dependency that enforces a minimum role in the active organization.

    Higher roles inherit permissions from lower roles
    (OWNER > ADMIN > MEMBER > VIEWER).

    Raises:
        HTTPException 403: If the role held in the active organization is insufficient

    Example:
        @router.post("/api-keys")
        async def create_key(context: OrgContext = Depends(require_org_role(OrgRole.ADMIN))):
            ...
    """

    async def role_dependency(context: OrgContext = Depends(get_org_context)) -> OrgContext:
        if not has_permission(context.org_role, required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required role: {required_role.value}",
            )
        return context

    return role_dependency
