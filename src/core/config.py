"""Application configuration management using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Components never read the environment directly; they receive
    config objects built from these settings at construction time.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="storefront-backend", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")
    max_request_body_size: int = Field(default=1_048_576, description="Maximum request body size in bytes")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins",
    )

    # Supabase (document store and identity provider)
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_secret_key: str = Field(default="", description="Supabase secret key for backend operations")
    supabase_signing_key_jwk: str = Field(default="", description="Supabase signing key JWK (JSON string) for JWT verification")
    order_store_backend: Literal["supabase", "memory"] = Field(
        default="supabase",
        description="Document store backing orders and catalog stock",
    )

    # Payment provider
    payment_provider: Literal["mercadopago", "stripe"] = Field(
        default="mercadopago",
        description="Payment provider used for checkout sessions and payment lookups",
    )
    mercadopago_access_token: str = Field(default="", description="Mercado Pago access token")
    stripe_secret_key: str = Field(default="", description="Stripe secret API key")
    payment_timeout_seconds: float = Field(default=5.0, gt=0, description="Timeout for payment provider calls")
    store_currency: str = Field(default="ARS", description="ISO currency code for orders")

    # Webhooks
    payment_webhook_secret: str = Field(default="", description="Shared secret for payment webhook signatures")
    skip_webhook_signature: bool = Field(
        default=False,
        description="Disable webhook signature verification (local development only)",
    )
    webhook_tolerance_seconds: int = Field(
        default=300,
        ge=0,
        description="Accepted age of webhook signature timestamps (0 disables the check)",
    )

    # Email (Resend)
    resend_api_key: str = Field(default="", description="Resend API key for sending emails")
    email_from_address: str = Field(
        default="Tienda <pedidos@example.com>",
        description="From address for transactional emails",
    )

    # URLs
    frontend_url: str = Field(
        default="http://localhost:3000",
        description="Storefront URL used for payment redirects",
    )
    webhook_base_url: str = Field(
        default="",
        description="Public base URL of this API, used as the provider notification URL",
    )

    @model_validator(mode="after")
    def reject_unsigned_webhooks_in_production(self) -> "Settings":
        """Refuse to start a production process with webhook verification disabled."""
        if self.skip_webhook_signature and self.is_production:
            raise ValueError("SKIP_WEBHOOK_SIGNATURE cannot be enabled when APP_ENV=production")
        return self

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def notification_url(self) -> str | None:
        """Webhook URL handed to the payment provider, if publicly reachable."""
        if not self.webhook_base_url:
            return None
        return f"{self.webhook_base_url.rstrip('/')}/api/v1/webhooks/payment"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
