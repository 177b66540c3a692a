"""SQLAlchemy Models for AgencyHub"""

from .base import Base
from .org import Org
from .user import User
from .membership import Membership
from .audit_log import AuditLog
from .provider_credential import ProviderCredential
from .api_key import ApiKey

__all__ = [
    "Base",
    "Org",
    "User",
    "Membership",
    "AuditLog",
    "ProviderCredential",
    "ApiKey",
]
