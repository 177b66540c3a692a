"""Unit tests for JWT token generation and validation

Tests cover:
- Token creation with valid claims
- Tokens carry no organization claim
- Token expiration handling
- Invalid token handling
- Principal extraction
"""

import time
from uuid import uuid4

import jwt
import pytest

from auth.dependencies import principal_from_token
from auth.jwt import create_access_token, decode_token
from config import Settings, get_settings
from tenancy.errors import NoAuth

SECRET = "test-secret-key-256-bits-minimum-length-required-for-security"


@pytest.fixture
def settings():
    return Settings(JWT_SECRET=SECRET, JWT_EXPIRY_MINUTES=60)


class TestCreateAccessToken:
    """Test JWT token creation"""

    def test_create_token_with_valid_claims(self, settings):
        token = create_access_token(uuid4(), "admin@test.com", settings=settings)

        # Token should have 3 parts (header.payload.signature)
        assert isinstance(token, str)
        assert len(token.split('.')) == 3

    def test_token_contains_correct_claims(self, settings):
        user_id = uuid4()
        token = create_access_token(user_id, "ops@test.com", settings=settings)

        payload = jwt.decode(token, SECRET, algorithms=['HS256'])
        assert payload['sub'] == str(user_id)
        assert payload['email'] == "ops@test.com"
        assert payload['exp'] - payload['iat'] == 60 * 60

    def test_token_has_no_organization_claim(self, settings):
        token = create_access_token(uuid4(), "ops@test.com", settings=settings)

        payload = jwt.decode(token, SECRET, algorithms=['HS256'])
        assert 'org_id' not in payload
        assert 'role' not in payload


class TestDecodeToken:
    """Test JWT token decoding and validation"""

    def test_decode_valid_token(self, settings):
        user_id = uuid4()
        token = create_access_token(user_id, "viewer@test.com", settings=settings)

        assert decode_token(token, settings=settings)['sub'] == str(user_id)

    def test_decode_expired_token(self, settings):
        now = int(time.time())
        token = jwt.encode(
            {'sub': str(uuid4()), 'email': 'x@test.com', 'iat': now - 7200, 'exp': now - 3600},
            SECRET,
            algorithm='HS256',
        )

        with pytest.raises(jwt.ExpiredSignatureError):
            decode_token(token, settings=settings)

    def test_decode_token_with_wrong_secret(self, settings):
        token = create_access_token(
            uuid4(), "x@test.com", settings=Settings(JWT_SECRET="another-secret-entirely-different-value")
        )

        with pytest.raises(jwt.InvalidTokenError):
            decode_token(token, settings=settings)

    def test_decode_tampered_token(self, settings):
        token = create_access_token(uuid4(), "x@test.com", settings=settings)
        header, payload, signature = token.split('.')
        tampered = f"{header}.{payload}x.{signature}"

        with pytest.raises(jwt.InvalidTokenError):
            decode_token(tampered, settings=settings)


class TestPrincipalFromToken:
    """Bearer token -> Principal, failures -> NoAuth"""

    def test_valid_token_yields_principal(self):
        user_id = uuid4()
        principal = principal_from_token(create_access_token(user_id, "p@test.com"))
        assert principal.user_id == user_id

    def test_garbage_token_is_no_auth(self):
        with pytest.raises(NoAuth):
            principal_from_token("not-a-jwt")

    def test_missing_subject_is_no_auth(self):
        token = jwt.encode({'email': 'x@test.com'}, get_settings().JWT_SECRET, algorithm='HS256')

        with pytest.raises(NoAuth):
            principal_from_token(token)

    def test_non_uuid_subject_is_no_auth(self):
        token = jwt.encode({'sub': 'not-a-uuid'}, get_settings().JWT_SECRET, algorithm='HS256')

        with pytest.raises(NoAuth):
            principal_from_token(token)

    def test_token_without_expiry_is_no_auth(self):
        token = jwt.encode({'sub': str(uuid4()), 'iat': int(time.time())}, get_settings().JWT_SECRET, algorithm='HS256')

        with pytest.raises(NoAuth):
            principal_from_token(token)
