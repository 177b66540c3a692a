"""API key generation and hashing using Argon2id

Plaintext keys are shown to the user exactly once. Only an Argon2id hash
and a short display prefix are stored.

Key format: kz_live_<64 hex chars> (production) or kz_test_<64 hex chars>
"""

import re
import secrets

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

KEY_PREFIX_LIVE = "kz_live_"
KEY_PREFIX_TEST = "kz_test_"
KEY_RANDOM_BYTES = 32  # 64 hex chars
DISPLAY_PREFIX_LENGTH = 12

_KEY_PATTERN = re.compile(r"^kz_(live|test)_[0-9a-f]{64}$")

# OWASP recommended parameters for Argon2id
# Memory cost: 64 MB, Time cost: 3, Parallelism: 4
_hasher = PasswordHasher(
    memory_cost=65536,  # 64 MB
    time_cost=3,
    parallelism=4,
    hash_len=32,
    salt_len=16,
    type=Type.ID  # Argon2id variant
)


def generate_api_key(live: bool) -> str:
    """Generate a new plaintext API key.

    Example:
        >>> generate_api_key(live=False)[:8]
        'kz_test_'
    """
    prefix = KEY_PREFIX_LIVE if live else KEY_PREFIX_TEST
    return prefix + secrets.token_hex(KEY_RANDOM_BYTES)


def is_well_formed(key: str) -> bool:
    return bool(key) and _KEY_PATTERN.match(key) is not None


def display_prefix(key: str) -> str:
    """First characters of a key, stored for lookup and display."""
    return key[:DISPLAY_PREFIX_LENGTH]


def hash_api_key(key: str) -> str:
    """Hash an API key using Argon2id.

    Returns:
        str: Argon2id hash string (format: $argon2id$v=19$m=65536,t=3,p=4$...$...)

    Raises:
        ValueError: If key is empty
    """
    if not key:
        raise ValueError("API key cannot be empty")
    return _hasher.hash(key)


def verify_api_key_hash(key: str, hash: str) -> bool:
    """Verify an API key against an Argon2id hash."""
    if not key or not hash:
        return False

    try:
        _hasher.verify(hash, key)
        return True
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False
