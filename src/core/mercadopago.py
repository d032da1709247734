"""Mercado Pago SDK client singleton."""

import logging
from functools import lru_cache

import mercadopago
from mercadopago.config import RequestOptions

from src.core.config import get_settings

logger = logging.getLogger(__name__)


@lru_cache
def get_mercadopago_sdk() -> mercadopago.SDK:
    """Get cached Mercado Pago SDK instance.

    Requests are bounded by PAYMENT_TIMEOUT_SECONDS. Retrying session
    creation is left to the caller.

    Returns:
        mercadopago.SDK: Configured SDK instance.
    """
    settings = get_settings()
    if not settings.mercadopago_access_token:
        logger.warning("Mercado Pago access token not configured. Checkout will not work.")

    options = RequestOptions(connection_timeout=settings.payment_timeout_seconds)
    return mercadopago.SDK(settings.mercadopago_access_token, request_options=options)
