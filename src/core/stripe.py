"""Stripe SDK configuration."""

import logging

import stripe

from src.core.config import get_settings

logger = logging.getLogger(__name__)


def configure_stripe() -> None:
    """Configure the Stripe SDK with the API key and request timeout.

    This should be called once at application startup when Stripe is the
    configured payment provider.
    """
    settings = get_settings()
    if not settings.stripe_secret_key:
        logger.warning("Stripe secret key not configured. Stripe checkout will not work.")
        return

    stripe.api_key = settings.stripe_secret_key
    # Bounded calls: a hung provider must fail the checkout, not stall it
    stripe.max_network_retries = 0
    stripe.default_http_client = stripe.RequestsClient(timeout=settings.payment_timeout_seconds)


def get_stripe() -> stripe:
    """Get the configured Stripe module.

    Returns:
        stripe: The Stripe module with API key configured.

    Note:
        Stripe SDK uses module-level configuration, so this returns
        the stripe module itself.
    """
    return stripe
