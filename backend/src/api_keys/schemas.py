"""API key schemas."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ApiKeyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class ApiKeyResponse(BaseModel):
    """API key metadata. The plaintext key is never part of this response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    key_prefix: str
    created_by_user_id: Optional[UUID] = None
    last_used_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    created_at: datetime


class ApiKeyCreatedResponse(ApiKeyResponse):
    """Returned once, on creation."""
    key: str = Field(..., description="Plaintext API key. Store it now, it cannot be retrieved again.")


class ApiKeyListResponse(BaseModel):
    items: List[ApiKeyResponse]
    total: int


class ApiKeyIdentityResponse(BaseModel):
    """The organization a request authenticated with an API key acts as."""
    org_id: UUID
    api_key_id: UUID
    name: str
