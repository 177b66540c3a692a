"""Organization roles and permission hierarchy for AgencyHub.

Role Hierarchy (descending permissions):
- OWNER: Everything, including organization-level administration
- ADMIN: Member management, provider credentials, API keys, audit logs
- MEMBER: Day-to-day work on clients, projects and tasks
- VIEWER: Read-only access

A role is held per membership, so the same user can be OWNER of one
organization and VIEWER of another.
"""

from enum import Enum
from typing import Set


class OrgRole(str, Enum):
    """Membership roles.

    Values are stored as TEXT in the database and must match exactly.
    """
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"
    VIEWER = "VIEWER"


# Role hierarchy: Each role includes permissions of all roles below it
ROLE_HIERARCHY = {
    OrgRole.OWNER: {OrgRole.OWNER, OrgRole.ADMIN, OrgRole.MEMBER, OrgRole.VIEWER},
    OrgRole.ADMIN: {OrgRole.ADMIN, OrgRole.MEMBER, OrgRole.VIEWER},
    OrgRole.MEMBER: {OrgRole.MEMBER, OrgRole.VIEWER},
    OrgRole.VIEWER: {OrgRole.VIEWER},
}


def has_permission(user_role: OrgRole, required_role: OrgRole) -> bool:
    """Check if a role satisfies the minimum required role.

    Examples:
        >>> has_permission(OrgRole.OWNER, OrgRole.MEMBER)
        True
        >>> has_permission(OrgRole.VIEWER, OrgRole.MEMBER)
        False
    """
    return required_role in ROLE_HIERARCHY.get(user_role, set())


def get_allowed_roles(required_role: OrgRole) -> Set[OrgRole]:
    """Get all roles that satisfy the requirement.

    Example:
        >>> get_allowed_roles(OrgRole.ADMIN)
        {OrgRole.OWNER, OrgRole.ADMIN}
    """
    return {role for role, permissions in ROLE_HIERARCHY.items() if required_role in permissions}
