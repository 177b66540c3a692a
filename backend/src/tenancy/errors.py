"""Tenant resolution error taxonomy.

NoAuth, NoOrg and NotMember are expected, user-facing conditions.
InternalError covers everything unexpected (store unavailable, timeout,
decode failure) and must never be read as "no organization".
"""

from typing import Any, Dict, Optional


class TenantError(Exception):
    """Base class for tenant resolution failures.

    Attributes:
        code: Stable machine-readable error code
        status_code: HTTP status used when the error reaches the API layer
        details: Extra fields merged into the JSON error body
    """
    code = "TENANT_ERROR"
    status_code = 500

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message, **self.details}


class NoAuth(TenantError):
    """No usable principal on the request."""
    code = "NO_AUTH"
    status_code = 401


class NoOrg(TenantError):
    """Authenticated, but the user has zero memberships.

    The body tells the UI to route to organization creation or invitation.
    """
    code = "NO_ORG"
    status_code = 404

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, {"next": "onboarding", **(details or {})})


class NotMember(TenantError):
    """The requested organization is not in the caller's membership set."""
    code = "NOT_MEMBER"
    status_code = 403


class InvalidOrg(TenantError):
    """Selected organization not found among the loaded memberships."""
    code = "INVALID_ORG"
    status_code = 400


class InternalError(TenantError):
    """Unexpected failure while resolving or switching the organization."""
    code = "INTERNAL_ERROR"
    status_code = 500
