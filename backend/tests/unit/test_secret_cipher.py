"""Unit tests for the AES-256-GCM secret cipher

Tests cover:
- Round trip for strings and objects
- Tamper detection on ciphertext, IV and tag
- Fresh IV on every encryption
- Associated data (owner binding)
- Master key derivation (hex, base64, passphrase, missing)
- Re-encryption under a new master key
"""

import base64
import os

import pytest

from infrastructure.encryption import (
    AuthenticationFailed,
    EncryptedSecret,
    MalformedSecret,
    MasterKeyMissing,
    SecretCipher,
    build_cipher,
    derive_master_key,
    generate_master_key,
)
from infrastructure.encryption.secret_cipher import IV_LENGTH, TAG_LENGTH
from config import Settings


@pytest.fixture
def cipher():
    return SecretCipher.from_secret(generate_master_key())


def flip_bit(hex_value: str, byte_index: int = 0, bit: int = 0) -> str:
    raw = bytearray(bytes.fromhex(hex_value))
    raw[byte_index] ^= 1 << bit
    return raw.hex()


class TestRoundTrip:

    @pytest.mark.parametrize("plaintext", [
        "sk-live-1234567890",
        "",
        "päßwörd with ünïcödé ✓",
        "x" * 10_000,
    ])
    def test_decrypt_returns_original_plaintext(self, cipher, plaintext):
        assert cipher.decrypt(cipher.encrypt(plaintext)) == plaintext

    def test_object_round_trip(self, cipher):
        bundle = {"api_key": "sk-test", "organization": "org-1", "retries": 3, "tls": True}

        encrypted = cipher.encrypt_object(bundle)

        assert cipher.decrypt_object(encrypted) == bundle

    def test_object_is_one_ciphertext(self, cipher):
        encrypted = cipher.encrypt_object({"user": "smtp-user", "password": "hunter2"})

        stored = encrypted.to_dict()
        assert set(stored) == {"ciphertext", "iv", "auth_tag"}
        assert "hunter2" not in stored["ciphertext"]

    def test_stored_form_survives_json(self, cipher):
        encrypted = cipher.encrypt("secret")

        restored = EncryptedSecret.from_json(encrypted.to_json())

        assert cipher.decrypt(restored) == "secret"

    def test_field_sizes(self, cipher):
        encrypted = cipher.encrypt("secret")

        assert len(bytes.fromhex(encrypted.iv)) == IV_LENGTH
        assert len(bytes.fromhex(encrypted.auth_tag)) == TAG_LENGTH


class TestTamperDetection:

    @pytest.mark.parametrize("field", ["ciphertext", "iv", "auth_tag"])
    @pytest.mark.parametrize("bit", [0, 7])
    def test_flipped_bit_fails_authentication(self, cipher, field, bit):
        encrypted = cipher.encrypt("provider secret value").to_dict()
        encrypted[field] = flip_bit(encrypted[field], byte_index=1, bit=bit)

        with pytest.raises(AuthenticationFailed):
            cipher.decrypt(EncryptedSecret.from_dict(encrypted))

    def test_wrong_key_fails_authentication(self, cipher):
        encrypted = cipher.encrypt("secret")
        other = SecretCipher.from_secret(generate_master_key())

        with pytest.raises(AuthenticationFailed):
            other.decrypt(encrypted)

    def test_truncated_tag_is_malformed(self, cipher):
        encrypted = cipher.encrypt("secret").to_dict()
        encrypted["auth_tag"] = encrypted["auth_tag"][:-2]

        with pytest.raises(MalformedSecret):
            cipher.decrypt(EncryptedSecret.from_dict(encrypted))

    def test_non_hex_field_is_malformed(self, cipher):
        encrypted = cipher.encrypt("secret").to_dict()
        encrypted["ciphertext"] = "zz" + encrypted["ciphertext"]

        with pytest.raises(MalformedSecret):
            cipher.decrypt(EncryptedSecret.from_dict(encrypted))

    def test_missing_field_is_malformed(self):
        with pytest.raises(MalformedSecret):
            EncryptedSecret.from_dict({"ciphertext": "00", "iv": "00"})

    def test_invalid_json_is_malformed(self):
        with pytest.raises(MalformedSecret):
            EncryptedSecret.from_json("{not json")


class TestNonceUniqueness:

    def test_same_plaintext_encrypts_differently(self, cipher):
        first = cipher.encrypt("same plaintext")
        second = cipher.encrypt("same plaintext")

        assert first.iv != second.iv
        assert first.ciphertext != second.ciphertext

    def test_ivs_unique_across_many_encryptions(self, cipher):
        ivs = {cipher.encrypt("x").iv for _ in range(200)}
        assert len(ivs) == 200


class TestAssociatedData:

    def test_matching_context_decrypts(self, cipher):
        encrypted = cipher.encrypt("secret", context="provider_credential:org-a")
        assert cipher.decrypt(encrypted, context="provider_credential:org-a") == "secret"

    def test_other_context_fails(self, cipher):
        encrypted = cipher.encrypt("secret", context="provider_credential:org-a")

        with pytest.raises(AuthenticationFailed):
            cipher.decrypt(encrypted, context="provider_credential:org-b")

    def test_missing_context_fails(self, cipher):
        encrypted = cipher.encrypt("secret", context="provider_credential:org-a")

        with pytest.raises(AuthenticationFailed):
            cipher.decrypt(encrypted)


class TestMasterKeyDerivation:

    def test_hex_key_used_directly(self):
        raw = os.urandom(32)
        assert derive_master_key(raw.hex()) == raw

    def test_base64_key_used_directly(self):
        raw = os.urandom(32)
        assert derive_master_key(base64.b64encode(raw).decode()) == raw

    def test_passphrase_is_stretched_deterministically(self):
        first = derive_master_key("correct horse battery staple")
        second = derive_master_key("correct horse battery staple")

        assert len(first) == 32
        assert first == second
        assert first != derive_master_key("correct horse battery stapler")

    def test_passphrase_ciphers_interoperate(self):
        encrypted = SecretCipher.from_secret("my passphrase").encrypt("secret")
        assert SecretCipher.from_secret("my passphrase").decrypt(encrypted) == "secret"

    @pytest.mark.parametrize("value", [None, ""])
    def test_missing_master_key(self, value):
        with pytest.raises(MasterKeyMissing):
            SecretCipher.from_secret(value)

    def test_generated_key_is_64_hex_chars(self):
        key = generate_master_key()
        assert len(key) == 64
        assert len(bytes.fromhex(key)) == 32

    def test_build_cipher_requires_master_key(self):
        with pytest.raises(MasterKeyMissing):
            build_cipher(Settings(MASTER_KEY=None))


class TestReencrypt:

    def test_reencrypt_moves_secret_to_new_key(self, cipher):
        new_cipher = SecretCipher.from_secret(generate_master_key())
        encrypted = cipher.encrypt("rotate me", context="ctx")

        rotated = cipher.reencrypt(encrypted, new_cipher, context="ctx")

        assert new_cipher.decrypt(rotated, context="ctx") == "rotate me"
        with pytest.raises(AuthenticationFailed):
            cipher.decrypt(rotated, context="ctx")
