"""Infrastructure encryption utilities."""

from .secret_cipher import (
    AuthenticationFailed,
    EncryptedSecret,
    MalformedSecret,
    MasterKeyMissing,
    SecretCipher,
    SecretCipherError,
    build_cipher,
    derive_master_key,
    generate_master_key,
)

__all__ = [
    "AuthenticationFailed",
    "EncryptedSecret",
    "MalformedSecret",
    "MasterKeyMissing",
    "SecretCipher",
    "SecretCipherError",
    "build_cipher",
    "derive_master_key",
    "generate_master_key",
]
