"""Provider credential schemas.

Responses carry metadata only. The decrypted bundle is returned solely by
the dedicated config endpoint.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ProviderKind(str, Enum):
    EMAIL = "EMAIL"
    AI = "AI"
    STORAGE = "STORAGE"


class ProviderCredentialCreate(BaseModel):
    kind: ProviderKind
    provider: str = Field(..., min_length=1, max_length=50, description="e.g. smtp, openai, s3")
    name: str = Field(..., min_length=1, max_length=200)
    config: Dict[str, Any] = Field(..., description="Credential bundle, stored encrypted as one ciphertext")
    is_active: bool = True
    is_default: bool = False

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "kind": "AI",
                "provider": "openai",
                "name": "Production OpenAI",
                "config": {"api_key": "sk-...", "organization": "org-..."},
                "is_default": True,
            }
        }
    )


class ProviderCredentialUpdate(BaseModel):
    """Partial update. A provided config replaces the whole bundle."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    config: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None
    is_default: Optional[bool] = None


class ProviderCredentialResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    kind: ProviderKind
    provider: str
    name: str
    is_active: bool
    is_default: bool
    created_at: datetime
    updated_at: datetime


class ProviderCredentialListResponse(BaseModel):
    items: List[ProviderCredentialResponse]
    total: int


class ProviderCredentialConfigResponse(BaseModel):
    id: UUID
    config: Dict[str, Any]
