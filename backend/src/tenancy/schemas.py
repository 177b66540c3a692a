"""Pydantic schemas for the /me organization endpoints."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from auth.roles import OrgRole


class OrgSummary(BaseModel):
    """Organization details shown to its members."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    is_active: bool


class MembershipResponse(BaseModel):
    """One of the caller's memberships."""
    org: OrgSummary
    role: OrgRole
    joined_at: datetime
    is_current: bool = Field(..., description="True for the organization this request resolved to")


class MyOrgsResponse(BaseModel):
    memberships: List[MembershipResponse]
    current_org_id: UUID = Field(..., description="Organization resolved for this request")
    preferred_org_id: Optional[UUID] = Field(None, description="Stored durable preference")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "memberships": [
                    {
                        "org": {
                            "id": "7c9e6679-7425-40de-944b-e07fc1f90ae7",
                            "name": "Acme Agency",
                            "slug": "acme",
                            "is_active": True,
                        },
                        "role": "OWNER",
                        "joined_at": "2025-01-04T12:00:00Z",
                        "is_current": True,
                    }
                ],
                "current_org_id": "7c9e6679-7425-40de-944b-e07fc1f90ae7",
                "preferred_org_id": None,
            }
        }
    )


class CurrentOrgResponse(BaseModel):
    """The resolved OrgContext plus organization details."""
    user_id: UUID
    org_id: UUID
    org_role: OrgRole
    org: OrgSummary


class SwitchOrgRequest(BaseModel):
    """Switch target.

    org_id is accepted as a plain string: a malformed id is reported as
    NOT_MEMBER like any other organization the caller cannot switch to.
    """
    org_id: str = Field(..., min_length=1, max_length=100)


class SwitchOrgResponse(BaseModel):
    org: OrgSummary
    role: OrgRole
