"""Tenancy module - organization context resolution and switching.

This module provides:
- OrgContextResolver: picks the active organization for each request
- ActiveOrgSwitch: the only write path to User.active_org_id
- CookieOrgSelector: per-session organization selector
- The tenant error taxonomy (NoAuth, NoOrg, NotMember, InvalidOrg, InternalError)

Routers and switch are imported from their modules directly.
"""

from .context import OrgContext, Principal
from .errors import InternalError, InvalidOrg, NoAuth, NoOrg, NotMember, TenantError

__all__ = [
    "OrgContext",
    "Principal",
    "TenantError",
    "NoAuth",
    "NoOrg",
    "NotMember",
    "InvalidOrg",
    "InternalError",
]
