"""Request-scoped tenant types."""

from dataclasses import dataclass
from uuid import UUID

from auth.roles import OrgRole


@dataclass(frozen=True)
class Principal:
    """An authenticated identity, independent of any organization."""
    user_id: UUID


@dataclass(frozen=True)
class OrgContext:
    """The organization a single request acts on behalf of.

    Built fresh for every request by OrgContextResolver and never persisted
    or cached across requests, because membership and role can change
    between requests.
    """
    user_id: UUID
    org_id: UUID
    org_role: OrgRole
