"""Per-session organization selector transported as an HTTP cookie.

The cookie value is only a hint: OrgContextResolver revalidates it against
the caller's memberships on every request, so a forged or stale value can
never grant access.
"""

from typing import Optional
from uuid import UUID

from fastapi import Request, Response

from config import Settings


class CookieOrgSelector:
    """Reads and writes the organization selector cookie.

    Cookie attributes: HttpOnly, SameSite=Lax, path "/", Secure in
    production, max-age ORG_COOKIE_MAX_AGE_SECONDS (30 days by default).
    """

    def __init__(self, settings: Settings):
        self.cookie_name = settings.ORG_COOKIE_NAME
        self.max_age = settings.ORG_COOKIE_MAX_AGE_SECONDS
        self.secure = settings.is_production

    def read(self, request: Request) -> Optional[str]:
        """Raw selector value, untrusted."""
        return request.cookies.get(self.cookie_name)

    def write(self, response: Response, org_id: UUID) -> None:
        response.set_cookie(
            key=self.cookie_name,
            value=str(org_id),
            max_age=self.max_age,
            path="/",
            httponly=True,
            secure=self.secure,
            samesite="lax",
        )
