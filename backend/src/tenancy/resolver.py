"""Organization context resolution.

Given an authenticated principal, picks the single active organization for
the current request and proves membership in it.

Precedence (first match wins):
1. Per-session selector (cookie), if it names one of the user's memberships
2. Durable preference User.active_org_id, if it names one of the memberships
3. The membership with the earliest joined_at

The role is taken from the membership set loaded in step 0; it is never
fetched by a second query, so there is no window between selecting an
organization and authorizing against it.
"""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar, Union
from uuid import UUID

from audit.service import AuditRecorder, RequestMetadata
from auth.roles import OrgRole
from observability.metrics import org_context_resolutions_total
from .context import OrgContext, Principal
from .errors import InternalError, InvalidOrg, NoAuth, NoOrg, TenantError
from .repository import MembershipRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")


def parse_org_id(value: Union[str, UUID, None]) -> Optional[UUID]:
    """Parse an organization id coming from an untrusted source.

    Returns None for missing or malformed values.
    """
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value).strip())
    except ValueError:
        return None


async def with_deadline(awaitable: Awaitable[T], timeout: Optional[float], operation: str = "lookup") -> T:
    """Await a tenant store call under the caller's deadline.

    Timeouts and store failures surface as InternalError, never as an empty
    result. `operation` names the call in logs and error messages.
    """
    try:
        if timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except TenantError:
        raise
    except asyncio.TimeoutError:
        logger.error("Tenant store %s timed out after %ss", operation, timeout)
        raise InternalError(f"Tenant store {operation} timed out")
    except Exception as e:
        logger.exception("Tenant store %s failed", operation)
        raise InternalError(f"Tenant store {operation} failed") from e


class OrgContextResolver:
    """Resolves the OrgContext for one request.

    A selector naming an organization the user does not belong to is ignored
    and, when a recorder is supplied, recorded as a security event under the
    organization the request did resolve to.

    Example:
        resolver = OrgContextResolver(MembershipRepository(db), timeout=5.0, recorder=recorder)
        context = await resolver.resolve(principal, selector_org_id=request.cookies.get("kz_org"))
    """

    def __init__(
        self,
        repository: MembershipRepository,
        timeout: Optional[float] = None,
        recorder: Optional[AuditRecorder] = None,
    ):
        self.repository = repository
        self.timeout = timeout
        self.recorder = recorder

    async def resolve(
        self,
        principal: Optional[Principal],
        selector_org_id: Union[str, UUID, None] = None,
        request_meta: Optional[RequestMetadata] = None,
    ) -> OrgContext:
        """Resolve the active organization for a principal.

        Args:
            principal: Authenticated principal (None if authentication failed)
            selector_org_id: Raw per-session selector value, untrusted
            request_meta: Client IP / User-Agent for security records

        Returns:
            OrgContext: user, selected org and the role held there

        Raises:
            NoAuth: No principal
            NoOrg: The user has no memberships
            InvalidOrg: Selected org missing from the loaded memberships
            InternalError: Store failure, timeout or unknown role value
        """
        try:
            context, outcome, ignored_selector = await self._resolve(principal, selector_org_id)
        except TenantError as e:
            org_context_resolutions_total.labels(outcome=e.code.lower()).inc()
            raise
        org_context_resolutions_total.labels(outcome=outcome).inc()

        if ignored_selector is not None and self.recorder is not None:
            await self.recorder.log_security(
                context,
                "Ignored organization selector without membership",
                metadata={"selector_org_id": str(ignored_selector)},
                request_meta=request_meta,
            )
        return context

    async def _resolve(self, principal, selector_org_id):
        if principal is None or principal.user_id is None:
            raise NoAuth("Authentication required")

        user_id = principal.user_id
        memberships = await with_deadline(self.repository.list_for_user(user_id), self.timeout)
        if not memberships:
            raise NoOrg("User does not belong to any organization")

        by_org = {m.org_id: m for m in memberships}
        active_org_id = None
        outcome = None
        ignored_selector = None

        selected = parse_org_id(selector_org_id)
        if selected is not None and selected in by_org:
            active_org_id, outcome = selected, "selector"
        elif selected is not None:
            ignored_selector = selected
            logger.info("Ignoring organization selector without membership", extra={"user_id": user_id})

        if active_org_id is None:
            preferred = await with_deadline(self.repository.get_active_org_id(user_id), self.timeout)
            if preferred is not None and preferred in by_org:
                active_org_id, outcome = preferred, "preference"

        if active_org_id is None:
            active_org_id, outcome = memberships[0].org_id, "default"

        membership = by_org.get(active_org_id)
        if membership is None:
            raise InvalidOrg("Selected organization is not among the user's memberships")

        try:
            role = OrgRole(membership.role)
        except ValueError:
            logger.error(f"Unknown membership role {membership.role!r}")
            raise InternalError("Membership has an unknown role")

        context = OrgContext(user_id=user_id, org_id=active_org_id, org_role=role)
        return context, outcome, ignored_selector
