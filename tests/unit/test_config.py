"""Unit tests for configuration module."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from src.core.config import Settings, get_settings


class TestSettings:
    """Tests for Settings class."""

    def test_settings_loads_from_environment(self) -> None:
        env_vars = {
            "APP_NAME": "test-app",
            "APP_ENV": "staging",
            "PORT": "9000",
            "ORDER_STORE_BACKEND": "supabase",
            "PAYMENT_PROVIDER": "stripe",
            "PAYMENT_TIMEOUT_SECONDS": "2.5",
            "STORE_CURRENCY": "USD",
        }

        with patch.dict(os.environ, env_vars, clear=False):
            settings = Settings()

        assert settings.app_name == "test-app"
        assert settings.port == 9000
        assert settings.order_store_backend == "supabase"
        assert settings.payment_provider == "stripe"
        assert settings.payment_timeout_seconds == 2.5
        assert settings.store_currency == "USD"

    def test_settings_cors_origins_list(self) -> None:
        with patch.dict(os.environ, {"CORS_ORIGINS": "http://localhost:3000, http://example.com , "}, clear=False):
            settings = Settings()

        assert settings.cors_origins_list == ["http://localhost:3000", "http://example.com"]

    def test_unknown_payment_provider_is_rejected(self) -> None:
        with patch.dict(os.environ, {"PAYMENT_PROVIDER": "paypal"}, clear=False):
            with pytest.raises(ValidationError):
                Settings()

    def test_non_positive_timeout_is_rejected(self) -> None:
        with patch.dict(os.environ, {"PAYMENT_TIMEOUT_SECONDS": "0"}, clear=False):
            with pytest.raises(ValidationError):
                Settings()

    def test_skip_webhook_signature_refused_in_production(self) -> None:
        env_vars = {"APP_ENV": "production", "SKIP_WEBHOOK_SIGNATURE": "true"}

        with patch.dict(os.environ, env_vars, clear=False):
            with pytest.raises(ValidationError):
                Settings()

    def test_skip_webhook_signature_allowed_in_development(self) -> None:
        env_vars = {"APP_ENV": "development", "SKIP_WEBHOOK_SIGNATURE": "true"}

        with patch.dict(os.environ, env_vars, clear=False):
            settings = Settings()

        assert settings.skip_webhook_signature is True
        assert settings.is_production is False

    def test_notification_url(self) -> None:
        with patch.dict(os.environ, {"WEBHOOK_BASE_URL": "https://api.tienda.example/"}, clear=False):
            settings = Settings()

        assert settings.notification_url == "https://api.tienda.example/api/v1/webhooks/payment"

    def test_notification_url_absent(self) -> None:
        with patch.dict(os.environ, {"WEBHOOK_BASE_URL": ""}, clear=False):
            assert Settings().notification_url is None


class TestGetSettings:
    """Tests for get_settings function."""

    def test_get_settings_returns_cached_instance(self) -> None:
        get_settings.cache_clear()

        assert get_settings() is get_settings()

        get_settings.cache_clear()
