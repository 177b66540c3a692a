"""Tagged audit payloads.

old_values/new_values of an audit record are one of a closed set of
payload models, discriminated by `kind`, so the audit trail can be
validated by machines. GenericPayload keeps free-form events possible.
Secret values never appear in any payload.
"""

from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, TypeAdapter


class AuditAction(str, Enum):
    """Audit actions written by this service."""
    ORG_SWITCHED = "ORG_SWITCHED"
    PROVIDER_CREDENTIAL_CREATED = "PROVIDER_CREDENTIAL_CREATED"
    PROVIDER_CREDENTIAL_UPDATED = "PROVIDER_CREDENTIAL_UPDATED"
    PROVIDER_CREDENTIAL_DELETED = "PROVIDER_CREDENTIAL_DELETED"
    API_KEY_CREATED = "API_KEY_CREATED"
    API_KEY_REVOKED = "API_KEY_REVOKED"
    LOG = "LOG"


class OrgSwitched(BaseModel):
    kind: Literal["org_switched"] = "org_switched"
    from_org_id: Optional[UUID] = None
    to_org_id: UUID


class ProviderCredentialCreated(BaseModel):
    kind: Literal["provider_credential_created"] = "provider_credential_created"
    provider_kind: str
    provider: str
    name: str
    is_active: bool
    is_default: bool


class ProviderCredentialUpdated(BaseModel):
    kind: Literal["provider_credential_updated"] = "provider_credential_updated"
    provider_kind: str
    provider: str
    name: str
    is_active: bool
    is_default: bool
    config_changed: bool = False


class ProviderCredentialDeleted(BaseModel):
    kind: Literal["provider_credential_deleted"] = "provider_credential_deleted"
    provider_kind: str
    provider: str
    name: str


class ApiKeyCreated(BaseModel):
    kind: Literal["api_key_created"] = "api_key_created"
    name: str
    key_prefix: str


class ApiKeyRevoked(BaseModel):
    kind: Literal["api_key_revoked"] = "api_key_revoked"
    name: str
    key_prefix: str


class LogMessage(BaseModel):
    kind: Literal["log_message"] = "log_message"
    message: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    stack_trace: Optional[str] = None
    request_id: Optional[str] = None


class GenericPayload(BaseModel):
    kind: Literal["generic"] = "generic"
    data: Dict[str, Any] = Field(default_factory=dict)


AuditPayload = Annotated[
    Union[
        OrgSwitched,
        ProviderCredentialCreated,
        ProviderCredentialUpdated,
        ProviderCredentialDeleted,
        ApiKeyCreated,
        ApiKeyRevoked,
        LogMessage,
        GenericPayload,
    ],
    Field(discriminator="kind"),
]

_payload_adapter = TypeAdapter(AuditPayload)


def to_stored_payload(value: Union[BaseModel, Dict[str, Any], None]) -> Optional[Dict[str, Any]]:
    """Convert a payload into its JSON column form.

    Plain dicts are wrapped as GenericPayload.
    """
    if value is None:
        return None
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return GenericPayload(data=dict(value)).model_dump(mode="json")


def parse_payload(data: Optional[Dict[str, Any]]):
    """Validate a stored payload back into its tagged model."""
    if data is None:
        return None
    return _payload_adapter.validate_python(data)
