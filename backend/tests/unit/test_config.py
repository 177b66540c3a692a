"""Unit tests for Settings validation"""

import pytest
from pydantic import ValidationError

from config import DEV_JWT_SECRET, Settings


class TestSettings:

    def test_defaults(self):
        settings = Settings(MASTER_KEY=None, JWT_SECRET=DEV_JWT_SECRET, ENVIRONMENT="development")

        assert settings.ORG_COOKIE_NAME == "kz_org"
        assert settings.is_production is False

    def test_log_level_is_normalized(self):
        assert Settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            Settings(LOG_LEVEL="chatty")

    @pytest.mark.parametrize("timeout", [0, -1.5])
    def test_lookup_timeout_must_be_positive(self, timeout):
        with pytest.raises(ValidationError):
            Settings(TENANT_LOOKUP_TIMEOUT_SECONDS=timeout)

    def test_production_rejects_dev_jwt_secret(self):
        with pytest.raises(ValidationError):
            Settings(ENVIRONMENT="production", JWT_SECRET=DEV_JWT_SECRET)

    def test_production_with_real_secret(self):
        settings = Settings(ENVIRONMENT="production", JWT_SECRET="a-real-secret-of-sufficient-length-0123456789")

        assert settings.is_production is True

    def test_cors_origins_are_split(self):
        settings = Settings(CORS_ORIGINS="https://a.example, https://b.example,")

        assert settings.cors_origins == ["https://a.example", "https://b.example"]
