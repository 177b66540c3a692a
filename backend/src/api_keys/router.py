"""Organization API key endpoints.

Management requires ADMIN or higher in the active organization. /whoami is
authenticated by the key itself (x-api-key header).
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from audit.service import AuditRecorder, request_metadata
from auth.api_key import get_api_key_identity
from auth.roles import OrgRole
from config import Settings, get_settings
from database import get_db
from dependencies import get_audit_recorder, require_org_role
from tenancy.context import OrgContext
from .schemas import (
    ApiKeyCreate,
    ApiKeyCreatedResponse,
    ApiKeyIdentityResponse,
    ApiKeyListResponse,
    ApiKeyResponse,
)
from .service import ApiKeyIdentity, ApiKeyNotFound, ApiKeyService

router = APIRouter(prefix="/api-keys", tags=["API Keys"])


def get_api_key_service(
    db: AsyncSession = Depends(get_db),
    recorder: AuditRecorder = Depends(get_audit_recorder),
    settings: Settings = Depends(get_settings),
) -> ApiKeyService:
    return ApiKeyService(db, recorder, live=settings.is_production)


@router.post("", response_model=ApiKeyCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_api_key(
    data: ApiKeyCreate,
    request: Request,
    context: OrgContext = Depends(require_org_role(OrgRole.ADMIN)),
    service: ApiKeyService = Depends(get_api_key_service),
):
    """Create an API key. The plaintext key is returned only in this response."""
    api_key, plaintext = await service.create_api_key(context, data.name, request_metadata(request))
    return ApiKeyCreatedResponse(
        **ApiKeyResponse.model_validate(api_key).model_dump(),
        key=plaintext,
    )


@router.get("", response_model=ApiKeyListResponse)
async def list_api_keys(
    include_revoked: bool = Query(False),
    context: OrgContext = Depends(require_org_role(OrgRole.ADMIN)),
    service: ApiKeyService = Depends(get_api_key_service),
):
    api_keys = await service.list_api_keys(context, include_revoked=include_revoked)
    return ApiKeyListResponse(
        items=[ApiKeyResponse.model_validate(k) for k in api_keys],
        total=len(api_keys),
    )


@router.get("/whoami", response_model=ApiKeyIdentityResponse)
async def whoami(identity: ApiKeyIdentity = Depends(get_api_key_identity)):
    """Organization the presented x-api-key authenticates as. Updates last_used_at."""
    return ApiKeyIdentityResponse(org_id=identity.org_id, api_key_id=identity.api_key_id, name=identity.name)


@router.delete("/{api_key_id}", response_model=ApiKeyResponse)
async def revoke_api_key(
    api_key_id: UUID,
    request: Request,
    context: OrgContext = Depends(require_org_role(OrgRole.ADMIN)),
    service: ApiKeyService = Depends(get_api_key_service),
):
    try:
        api_key = await service.revoke_api_key(context, api_key_id, request_metadata(request))
    except ApiKeyNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="API key not found")
    return ApiKeyResponse.model_validate(api_key)
