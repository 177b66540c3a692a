"""AES-256-GCM encryption for organization-owned secrets.

Provides authenticated encryption for provider API keys, SMTP passwords,
storage credentials and other secrets persisted by configuration screens.

Security considerations:
- AES-256-GCM with a 128-bit random IV generated for every encrypt call
- 128-bit authentication tag, verified on every decrypt
- Master key derived once at startup from MASTER_KEY (hex/base64 raw key,
  or a passphrase stretched with scrypt)
- Optional associated data binds a ciphertext to its owner
"""

import base64
import binascii
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from observability.metrics import secret_decrypt_failures_total

logger = logging.getLogger(__name__)

KEY_LENGTH = 32  # 256 bits
IV_LENGTH = 16  # 128 bits
TAG_LENGTH = 16  # 128 bits

# Fixed salt so the same passphrase always yields the same key across restarts
SCRYPT_SALT = b"agencyhub-secret-cipher-v1"
SCRYPT_N = 2 ** 14
SCRYPT_R = 8
SCRYPT_P = 1


class SecretCipherError(Exception):
    """Base class for secret cipher failures."""
    pass


class MasterKeyMissing(SecretCipherError):
    """Raised at startup when no master key is configured."""
    pass


class AuthenticationFailed(SecretCipherError):
    """Raised when the authentication tag does not verify.

    Covers tampered or corrupted ciphertext, a wrong master key and
    mismatching associated data. Never recoverable.
    """
    pass


class MalformedSecret(SecretCipherError):
    """Raised when a stored secret cannot be decoded into its parts."""
    pass


@dataclass(frozen=True)
class EncryptedSecret:
    """Encrypted secret container.

    Opaque to every caller except SecretCipher.

    Attributes:
        ciphertext: Hex-encoded ciphertext
        iv: Hex-encoded 16-byte initialization vector
        auth_tag: Hex-encoded 16-byte GCM authentication tag
    """
    ciphertext: str
    iv: str
    auth_tag: str

    def to_dict(self) -> Dict[str, str]:
        return {"ciphertext": self.ciphertext, "iv": self.iv, "auth_tag": self.auth_tag}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EncryptedSecret":
        try:
            return cls(
                ciphertext=data["ciphertext"],
                iv=data["iv"],
                auth_tag=data["auth_tag"],
            )
        except (KeyError, TypeError) as e:
            raise MalformedSecret(f"Encrypted secret is missing fields: {e}")

    def to_json(self) -> str:
        """Serialize to JSON string for database storage."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, data: str) -> "EncryptedSecret":
        """Deserialize from JSON string."""
        try:
            parsed = json.loads(data)
        except json.JSONDecodeError as e:
            raise MalformedSecret(f"Encrypted secret is not valid JSON: {e}")
        return cls.from_dict(parsed)


def derive_master_key(secret: str) -> bytes:
    """Turn the externally supplied MASTER_KEY value into a 256-bit key.

    64 hex characters or 44 base64 characters that decode to 32 bytes are
    used directly. Anything else is treated as a passphrase and stretched
    with scrypt using a fixed salt, so derivation is deterministic.

    Raises:
        MasterKeyMissing: If secret is empty
    """
    if not secret:
        raise MasterKeyMissing(
            "MASTER_KEY environment variable is required. "
            "Generate one with: python -c 'import os; print(os.urandom(32).hex())'"
        )

    if len(secret) == 64:
        try:
            return bytes.fromhex(secret)
        except ValueError:
            pass

    if len(secret) == 44:
        try:
            raw = base64.b64decode(secret, validate=True)
            if len(raw) == KEY_LENGTH:
                return raw
        except (binascii.Error, ValueError):
            pass

    kdf = Scrypt(salt=SCRYPT_SALT, length=KEY_LENGTH, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(secret.encode("utf-8"))


def generate_master_key() -> str:
    """Generate a new random master key as 64 hex characters."""
    return os.urandom(KEY_LENGTH).hex()


class SecretCipher:
    """AES-256-GCM cipher bound to one master key.

    Construct once at process start (see build_cipher) and hand the instance
    to callers. The key is derived in __init__ and never changes afterwards,
    so one instance is safe to share between concurrent requests.

    Example:
        cipher = SecretCipher.from_secret(settings.MASTER_KEY)

        encrypted = cipher.encrypt_object(
            {"api_key": "sk-..."},
            context="provider_credential:7c9e6679-...",
        )
        # Store encrypted.to_dict() in the database

        config = cipher.decrypt_object(encrypted, context="provider_credential:7c9e6679-...")
    """

    def __init__(self, key: bytes):
        if len(key) != KEY_LENGTH:
            raise SecretCipherError(f"Master key must be {KEY_LENGTH} bytes, got {len(key)}")
        self._aesgcm = AESGCM(key)

    @classmethod
    def from_secret(cls, secret: Optional[str]) -> "SecretCipher":
        return cls(derive_master_key(secret or ""))

    def encrypt(self, plaintext: str, context: Optional[str] = None) -> EncryptedSecret:
        """Encrypt a string.

        Args:
            plaintext: Text to encrypt
            context: Optional associated data - must match during decryption

        Returns:
            EncryptedSecret with a freshly generated IV
        """
        iv = os.urandom(IV_LENGTH)
        associated_data = context.encode("utf-8") if context else None

        sealed = self._aesgcm.encrypt(iv, plaintext.encode("utf-8"), associated_data)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]

        return EncryptedSecret(
            ciphertext=ciphertext.hex(),
            iv=iv.hex(),
            auth_tag=tag.hex(),
        )

    def decrypt(self, secret: EncryptedSecret, context: Optional[str] = None) -> str:
        """Decrypt a string.

        Raises:
            AuthenticationFailed: If the tag does not verify
            MalformedSecret: If the stored fields cannot be decoded
        """
        try:
            ciphertext = bytes.fromhex(secret.ciphertext)
            iv = bytes.fromhex(secret.iv)
            tag = bytes.fromhex(secret.auth_tag)
        except (ValueError, TypeError) as e:
            secret_decrypt_failures_total.labels(reason="malformed").inc()
            raise MalformedSecret(f"Encrypted secret is not valid hex: {e}")

        if len(iv) != IV_LENGTH or len(tag) != TAG_LENGTH:
            secret_decrypt_failures_total.labels(reason="malformed").inc()
            raise MalformedSecret("Encrypted secret has an invalid IV or tag length")

        associated_data = context.encode("utf-8") if context else None

        try:
            plaintext = self._aesgcm.decrypt(iv, ciphertext + tag, associated_data)
        except InvalidTag:
            secret_decrypt_failures_total.labels(reason="authentication_failed").inc()
            logger.error("Secret decryption failed: authentication tag verification failed")
            raise AuthenticationFailed(
                "Decryption failed: data has been tampered with or wrong encryption key"
            )

        return plaintext.decode("utf-8")

    def encrypt_object(self, obj: Any, context: Optional[str] = None) -> EncryptedSecret:
        """Encrypt a JSON-serializable bundle as one ciphertext."""
        return self.encrypt(json.dumps(obj, sort_keys=True), context=context)

    def decrypt_object(self, secret: EncryptedSecret, context: Optional[str] = None) -> Any:
        """Decrypt and parse a bundle produced by encrypt_object."""
        plaintext = self.decrypt(secret, context=context)
        try:
            return json.loads(plaintext)
        except json.JSONDecodeError as e:
            secret_decrypt_failures_total.labels(reason="malformed").inc()
            raise MalformedSecret(f"Decrypted secret is not valid JSON: {e}")

    def reencrypt(
        self,
        secret: EncryptedSecret,
        target: "SecretCipher",
        context: Optional[str] = None,
    ) -> EncryptedSecret:
        """Re-encrypt a secret under another cipher (master-key rotation)."""
        return target.encrypt(self.decrypt(secret, context=context), context=context)


def build_cipher(settings) -> SecretCipher:
    """Build the process-wide cipher from settings.

    Raises:
        MasterKeyMissing: If MASTER_KEY is not configured (fatal at startup)
    """
    cipher = SecretCipher.from_secret(settings.MASTER_KEY)
    logger.info("Secret cipher initialized with AES-256-GCM")
    return cipher
