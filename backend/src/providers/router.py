"""Provider credential API endpoints.

MEMBER or higher can list credential metadata. Creating, updating,
deleting and reading a decrypted bundle require ADMIN or higher.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from audit.service import AuditRecorder, request_metadata
from auth.roles import OrgRole
from database import get_db
from dependencies import get_audit_recorder, get_cipher, require_org_role
from infrastructure.encryption import SecretCipher
from tenancy.context import OrgContext
from .schemas import (
    ProviderCredentialConfigResponse,
    ProviderCredentialCreate,
    ProviderCredentialListResponse,
    ProviderCredentialResponse,
    ProviderCredentialUpdate,
    ProviderKind,
)
from .service import (
    ProviderCredentialConflict,
    ProviderCredentialNotFound,
    ProviderCredentialService,
)

router = APIRouter(prefix="/providers", tags=["Provider Credentials"])


def get_provider_service(
    db: AsyncSession = Depends(get_db),
    cipher: SecretCipher = Depends(get_cipher),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> ProviderCredentialService:
    return ProviderCredentialService(db, cipher, recorder)


@router.post("", response_model=ProviderCredentialResponse, status_code=status.HTTP_201_CREATED)
async def create_provider_credential(
    data: ProviderCredentialCreate,
    request: Request,
    context: OrgContext = Depends(require_org_role(OrgRole.ADMIN)),
    service: ProviderCredentialService = Depends(get_provider_service),
):
    """Create a provider credential (ADMIN or higher).

    Raises:
        HTTPException 409: Same kind and name already exist in the organization
    """
    try:
        credential = await service.create_credential(context, data, request_metadata(request))
    except ProviderCredentialConflict as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return ProviderCredentialResponse.model_validate(credential)


@router.get("", response_model=ProviderCredentialListResponse)
async def list_provider_credentials(
    kind: Optional[ProviderKind] = Query(None, description="Filter by provider kind"),
    context: OrgContext = Depends(require_org_role(OrgRole.MEMBER)),
    service: ProviderCredentialService = Depends(get_provider_service),
):
    credentials = await service.list_credentials(context, kind=kind)
    return ProviderCredentialListResponse(
        items=[ProviderCredentialResponse.model_validate(c) for c in credentials],
        total=len(credentials),
    )


@router.get("/{credential_id}/config", response_model=ProviderCredentialConfigResponse)
async def get_provider_credential_config(
    credential_id: UUID,
    context: OrgContext = Depends(require_org_role(OrgRole.ADMIN)),
    service: ProviderCredentialService = Depends(get_provider_service),
):
    """Decrypted credential bundle (ADMIN or higher).

    A bundle that fails authentication aborts the request with 500; no
    partial or empty config is ever returned.
    """
    try:
        config = await service.get_credential_config(context, credential_id)
    except ProviderCredentialNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Provider credential not found")
    return ProviderCredentialConfigResponse(id=credential_id, config=config)


@router.patch("/{credential_id}", response_model=ProviderCredentialResponse)
async def update_provider_credential(
    credential_id: UUID,
    data: ProviderCredentialUpdate,
    request: Request,
    context: OrgContext = Depends(require_org_role(OrgRole.ADMIN)),
    service: ProviderCredentialService = Depends(get_provider_service),
):
    try:
        credential = await service.update_credential(context, credential_id, data, request_metadata(request))
    except ProviderCredentialNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Provider credential not found")
    except ProviderCredentialConflict as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return ProviderCredentialResponse.model_validate(credential)


@router.delete("/{credential_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_provider_credential(
    credential_id: UUID,
    request: Request,
    context: OrgContext = Depends(require_org_role(OrgRole.ADMIN)),
    service: ProviderCredentialService = Depends(get_provider_service),
):
    try:
        await service.delete_credential(context, credential_id, request_metadata(request))
    except ProviderCredentialNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Provider credential not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
