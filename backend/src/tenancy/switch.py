"""Active-organization switch.

Changes which organization subsequent requests resolve to, after proving
the caller is a member of the target. Order of effects on success:

1. Durable preference (User.active_org_id) is written and committed
2. The per-session selector is set through the caller-supplied sink
3. ORG_SWITCHED is recorded (best-effort)

If step 1 fails, neither the selector nor the audit trail is touched, so a
later request never resolves to an organization whose preference write was
lost. If step 2 fails the switch is not complete: InternalError is raised
and nothing is audited. The repository rolls back its own failed write;
the switch never rolls back the caller's session. Not being a member is an
expected outcome and is returned as a SwitchResult rather than raised.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union
from uuid import UUID

from audit.events import AuditAction, OrgSwitched
from audit.service import AuditRecorder, RequestMetadata
from auth.roles import OrgRole
from observability.metrics import org_switches_total
from .context import OrgContext, Principal
from .errors import InternalError, NoAuth, NotMember, TenantError
from .repository import MembershipRepository
from .resolver import parse_org_id, with_deadline

logger = logging.getLogger(__name__)

SelectorSink = Callable[[UUID], None]


@dataclass(frozen=True)
class SwitchResult:
    """Outcome of an ActiveOrgSwitch.switch call.

    success=True carries org_id and role; success=False carries a NotMember
    error naming the requested organization.
    """
    success: bool
    org_id: Optional[UUID] = None
    role: Optional[OrgRole] = None
    error: Optional[NotMember] = None


class ActiveOrgSwitch:
    """Validates and applies a change of active organization.

    Example:
        switch = ActiveOrgSwitch(MembershipRepository(db), recorder, timeout=5.0)
        result = await switch.switch(
            principal,
            body.org_id,
            selector_sink=lambda org_id: selector.write(response, org_id),
            audit_context=context,
        )
    """

    def __init__(
        self,
        repository: MembershipRepository,
        recorder: Optional[AuditRecorder] = None,
        timeout: Optional[float] = None,
    ):
        self.repository = repository
        self.recorder = recorder
        self.timeout = timeout

    async def switch(
        self,
        principal: Optional[Principal],
        requested_org_id: Union[str, UUID, None],
        selector_sink: SelectorSink,
        audit_context: Optional[OrgContext] = None,
        request_meta: Optional[RequestMetadata] = None,
    ) -> SwitchResult:
        """Switch the principal's active organization.

        Args:
            principal: Authenticated principal (None if authentication failed)
            requested_org_id: Target organization id, untrusted
            selector_sink: Sets the per-session selector; called only after
                the preference write committed
            audit_context: The request's resolved OrgContext, under which
                ORG_SWITCHED is recorded (no audit record if None)
            request_meta: Client IP / User-Agent for the audit record

        Returns:
            SwitchResult

        Raises:
            NoAuth: No principal
            InternalError: Membership lookup, preference write or selector sink failed
        """
        if principal is None or principal.user_id is None:
            raise NoAuth("Authentication required")

        org_id = parse_org_id(requested_org_id)
        if org_id is None:
            org_switches_total.labels(outcome="not_member").inc()
            return SwitchResult(
                success=False,
                error=NotMember(f"Not a member of organization {requested_org_id}"),
            )

        try:
            membership = await with_deadline(
                self.repository.get(org_id, principal.user_id), self.timeout
            )
        except TenantError:
            org_switches_total.labels(outcome="internal_error").inc()
            raise

        if membership is None:
            org_switches_total.labels(outcome="not_member").inc()
            logger.info(
                "Rejected switch to organization without membership",
                extra={"requested_org_id": str(org_id)},
            )
            return SwitchResult(
                success=False,
                error=NotMember(f"Not a member of organization {org_id}"),
            )

        try:
            role = OrgRole(membership.role)
        except ValueError:
            org_switches_total.labels(outcome="internal_error").inc()
            logger.error(f"Unknown membership role {membership.role!r}")
            raise InternalError("Membership has an unknown role")

        previous_org_id = audit_context.org_id if audit_context else None

        try:
            await with_deadline(
                self.repository.set_active_org(principal.user_id, org_id),
                self.timeout,
                operation="preference write",
            )
        except TenantError:
            org_switches_total.labels(outcome="internal_error").inc()
            raise

        try:
            selector_sink(org_id)
        except Exception as e:
            org_switches_total.labels(outcome="internal_error").inc()
            logger.exception(
                "Selector could not be set after preference write",
                extra={"to_org_id": str(org_id)},
            )
            raise InternalError("Organization selector could not be set") from e

        org_switches_total.labels(outcome="success").inc()
        logger.info(
            "Active organization switched",
            extra={"from_org_id": str(previous_org_id), "to_org_id": str(org_id)},
        )

        if self.recorder is not None and audit_context is not None:
            await self.recorder.record_for_tenant(
                audit_context,
                AuditAction.ORG_SWITCHED,
                "user",
                resource_id=str(principal.user_id),
                new_values=OrgSwitched(from_org_id=previous_org_id, to_org_id=org_id),
                request_meta=request_meta,
            )

        return SwitchResult(success=True, org_id=org_id, role=role)

