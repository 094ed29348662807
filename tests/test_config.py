"""Tests for required environment variables."""

import pytest

from regpay.config import Config

REQUIRED = {
    "DATABASE_URL": "postgresql://localhost/regpay",
    "STRIPE_SECRET_KEY": "sk_test_123",
    "STRIPE_WEBHOOK_SECRET": "whsec_123",
    "STRIPE_CONNECT_WEBHOOK_SECRET": "whsec_connect_123",
}


class TestConfigValidate:
    def test_complete_environment_passes_without_secret_key(self, monkeypatch):
        """The service keeps no sessions, so SECRET_KEY is not required."""
        monkeypatch.delenv("SECRET_KEY", raising=False)
        for name, value in REQUIRED.items():
            monkeypatch.setenv(name, value)

        Config.validate()

    def test_missing_webhook_secret_reported(self, monkeypatch):
        for name, value in REQUIRED.items():
            monkeypatch.setenv(name, value)
        monkeypatch.delenv("STRIPE_CONNECT_WEBHOOK_SECRET")

        with pytest.raises(RuntimeError, match="STRIPE_CONNECT_WEBHOOK_SECRET"):
            Config.validate()
