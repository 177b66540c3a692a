"""FastAPI router for the caller's organizations.

This module provides endpoints for:
- GET /me/orgs - List memberships and show which organization is active
- GET /me/org - The resolved OrgContext for this request
- POST /me/org/switch - Switch the active organization
"""

from fastapi import APIRouter, Depends, Request, Response

from audit.service import AuditRecorder, request_metadata
from auth.dependencies import get_principal
from config import Settings, get_settings
from dependencies import (
    get_audit_recorder,
    get_membership_repository,
    get_org_context,
    get_org_selector,
)
from .context import OrgContext, Principal
from .errors import InternalError
from .repository import MembershipRepository
from .resolver import parse_org_id
from .schemas import (
    CurrentOrgResponse,
    MembershipResponse,
    MyOrgsResponse,
    OrgSummary,
    SwitchOrgRequest,
    SwitchOrgResponse,
)
from .selector import CookieOrgSelector
from .switch import ActiveOrgSwitch


router = APIRouter(prefix="/me", tags=["Organizations"])


@router.get("/orgs", response_model=MyOrgsResponse)
async def list_my_orgs(
    context: OrgContext = Depends(get_org_context),
    repository: MembershipRepository = Depends(get_membership_repository),
) -> MyOrgsResponse:
    """List the caller's memberships, oldest first.

    is_current marks the organization this request resolved to.
    """
    rows = await repository.list_for_user_with_orgs(context.user_id)
    preferred_org_id = await repository.get_active_org_id(context.user_id)

    return MyOrgsResponse(
        memberships=[
            MembershipResponse(
                org=OrgSummary.model_validate(org),
                role=membership.role,
                joined_at=membership.joined_at,
                is_current=org.id == context.org_id,
            )
            for membership, org in rows
        ],
        current_org_id=context.org_id,
        preferred_org_id=preferred_org_id,
    )


@router.get("/org", response_model=CurrentOrgResponse)
async def get_current_org(
    context: OrgContext = Depends(get_org_context),
    repository: MembershipRepository = Depends(get_membership_repository),
) -> CurrentOrgResponse:
    org = await repository.get_org(context.org_id)
    if org is None:
        # Membership exists but its organization row is gone
        raise InternalError("Active organization not found")

    return CurrentOrgResponse(
        user_id=context.user_id,
        org_id=context.org_id,
        org_role=context.org_role,
        org=OrgSummary.model_validate(org),
    )


@router.post("/org/switch", response_model=SwitchOrgResponse)
async def switch_org(
    body: SwitchOrgRequest,
    request: Request,
    response: Response,
    principal: Principal = Depends(get_principal),
    context: OrgContext = Depends(get_org_context),
    repository: MembershipRepository = Depends(get_membership_repository),
    selector: CookieOrgSelector = Depends(get_org_selector),
    recorder: AuditRecorder = Depends(get_audit_recorder),
    settings: Settings = Depends(get_settings),
) -> SwitchOrgResponse:
    """Switch the active organization.

    On success the durable preference is updated and the selector cookie is
    set. ORG_SWITCHED is recorded under the organization this request
    started in.

    Raises:
        NotMember (403): Caller is not a member of the requested organization;
            the message names the organization
    """
    switch = ActiveOrgSwitch(repository, recorder, timeout=settings.TENANT_LOOKUP_TIMEOUT_SECONDS)
    result = await switch.switch(
        principal,
        body.org_id,
        selector_sink=lambda org_id: selector.write(response, org_id),
        audit_context=context,
        request_meta=request_metadata(request),
    )

    if not result.success:
        error = result.error
        requested = parse_org_id(body.org_id)
        org = await repository.get_org(requested) if requested else None
        label = org.name if org is not None else body.org_id
        error.message = f"You are not a member of organization '{label}'"
        error.details = {"org": label}
        raise error

    org = await repository.get_org(result.org_id)
    if org is None:
        raise InternalError("Active organization not found")

    return SwitchOrgResponse(org=OrgSummary.model_validate(org), role=result.role)
