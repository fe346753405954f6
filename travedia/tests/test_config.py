"""
Tests for environment-driven settings.
"""
import pytest

from travedia.config import Settings


class TestSettings:

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in ("MIDTRANS_VERIFY_SIGNATURE", "ENVIRONMENT", "BACKEND_URL", "FRONTEND_URL"):
            monkeypatch.delenv(name, raising=False)

    def test_signature_check_follows_environment(self):
        assert Settings(environment="production").verify_webhook_signature is True
        assert Settings(environment="development").verify_webhook_signature is False

    def test_explicit_signature_switch(self, monkeypatch):
        monkeypatch.setenv("MIDTRANS_VERIFY_SIGNATURE", "true")
        assert Settings(environment="development").verify_webhook_signature is True

        monkeypatch.setenv("MIDTRANS_VERIFY_SIGNATURE", "false")
        assert Settings(environment="production").verify_webhook_signature is False

    def test_webhook_url_strips_trailing_slash(self, monkeypatch):
        monkeypatch.setenv("BACKEND_URL", "https://api.travedia.com/")
        settings = Settings()
        assert settings.webhook_url == "https://api.travedia.com/api/payment/notification"

    def test_environment_flags(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "Production")
        settings = Settings()
        assert settings.is_production
        assert not settings.is_development

    def test_comma_separated_origins(self, monkeypatch):
        monkeypatch.setenv("CORS_ORIGINS", "https://travedia.com, https://admin.travedia.com,")
        assert Settings().cors_origins == ["https://travedia.com", "https://admin.travedia.com"]

    def test_unknown_override_rejected(self):
        with pytest.raises(AttributeError):
            Settings(midtrans_secret="nope")
