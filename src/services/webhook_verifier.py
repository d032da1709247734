"""Authentication of inbound payment provider webhooks."""

import hashlib
import hmac
import json
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

import stripe

from src.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

PAYMENT_NOTIFICATION_TYPE = "payment"

# Larger `ts` values are milliseconds since the epoch
MILLISECOND_TS_THRESHOLD = 10**11


class WebhookAuthErrorCode(str, Enum):
    """Webhook authentication error codes."""

    MISSING_SIGNATURE = "MISSING_SIGNATURE"
    MALFORMED_SIGNATURE = "MALFORMED_SIGNATURE"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    MALFORMED_PAYLOAD = "MALFORMED_PAYLOAD"
    NOT_CONFIGURED = "NOT_CONFIGURED"


class WebhookAuthError(Exception):
    """Webhook could not be authenticated. Nothing may be mutated."""

    def __init__(self, message: str, code: WebhookAuthErrorCode) -> None:
        self.message = message
        self.code = code
        super().__init__(message)


@dataclass(frozen=True)
class WebhookVerificationConfig:
    secret: str
    skip_verification: bool = False
    tolerance_seconds: int = 300

    @classmethod
    def from_settings(cls, settings: Settings) -> "WebhookVerificationConfig":
        """Create config from application settings."""
        return cls(
            secret=settings.payment_webhook_secret,
            skip_verification=settings.skip_webhook_signature,
            tolerance_seconds=settings.webhook_tolerance_seconds,
        )


@dataclass(frozen=True)
class VerifiedNotification:
    """Authenticated webhook reduced to what settlement needs."""

    type: str
    payment_id: str | None
    request_id: str | None = None
    signature_checked: bool = True

    @property
    def is_payment(self) -> bool:
        return self.type == PAYMENT_NOTIFICATION_TYPE


def parse_signature_header(value: str) -> dict[str, str]:
    """Split `ts=...,v1=...` into a dict. Parts without `=` are ignored."""
    parts: dict[str, str] = {}
    for part in value.split(","):
        key, sep, val = part.partition("=")
        if sep:
            parts[key.strip()] = val.strip()
    return parts


def build_manifest(data_id: str | None, request_id: str | None, ts: str) -> str:
    """Build the signed manifest, omitting segments whose value is absent."""
    manifest = ""
    if data_id:
        manifest += f"id:{data_id.lower() if data_id.isalnum() else data_id};"
    if request_id:
        manifest += f"request-id:{request_id};"
    manifest += f"ts:{ts};"
    return manifest


def compute_signature(secret: str, manifest: str) -> str:
    return hmac.new(secret.encode("utf-8"), manifest.encode("utf-8"), hashlib.sha256).hexdigest()


class WebhookVerifier:
    """Verifies `x-signature: ts=<ts>,v1=<hex>` HMAC-SHA256 webhooks.

    A configured secret is always enforced. With no secret, notifications
    are only accepted when verification was explicitly disabled.
    """

    signature_header = "x-signature"
    request_id_header = "x-request-id"

    def __init__(self, config: WebhookVerificationConfig) -> None:
        self.config = config

    def verify(self, headers: Mapping[str, str], body: bytes) -> VerifiedNotification:
        """Authenticate a webhook request and extract its notification.

        Args:
            headers: Raw request headers (any key case).
            body: Raw request body.

        Returns:
            VerifiedNotification: Notification type and provider payment id.

        Raises:
            WebhookAuthError: If the request is not authentic or is malformed.
        """
        normalized = {key.lower(): value for key, value in headers.items()}
        request_id = normalized.get(self.request_id_header)
        notification_type, payment_id = self._extract(self._load(body))

        if not self.config.secret:
            if not self.config.skip_verification:
                logger.error("Webhook received but no webhook secret is configured; rejecting")
                raise WebhookAuthError("Webhook secret not configured", WebhookAuthErrorCode.NOT_CONFIGURED)
            logger.warning(
                "Webhook signature verification is DISABLED (SKIP_WEBHOOK_SIGNATURE); accepting %s notification unverified",
                notification_type,
            )
            return VerifiedNotification(notification_type, payment_id, request_id, signature_checked=False)

        signature = normalized.get(self.signature_header)
        if not signature:
            raise WebhookAuthError("Missing signature", WebhookAuthErrorCode.MISSING_SIGNATURE)

        self._check_signature(signature, body, payment_id, request_id)
        return VerifiedNotification(notification_type, payment_id, request_id)

    def _check_signature(
        self,
        signature: str,
        body: bytes,
        payment_id: str | None,
        request_id: str | None,
    ) -> None:
        parts = parse_signature_header(signature)
        ts = parts.get("ts")
        received = parts.get("v1")
        if not ts or not received:
            raise WebhookAuthError("Invalid signature format", WebhookAuthErrorCode.MALFORMED_SIGNATURE)

        expected = compute_signature(self.config.secret, build_manifest(payment_id, request_id, ts))
        if not hmac.compare_digest(expected, received.lower()):
            raise WebhookAuthError("Invalid signature", WebhookAuthErrorCode.INVALID_SIGNATURE)

        self._check_freshness(ts)

    def _check_freshness(self, ts: str) -> None:
        """Reject signatures whose timestamp is further than the tolerance from now (0 disables)."""
        try:
            signed_at = int(ts)
        except ValueError as e:
            raise WebhookAuthError("Invalid signature timestamp", WebhookAuthErrorCode.MALFORMED_SIGNATURE) from e

        if not self.config.tolerance_seconds:
            return
        if signed_at > MILLISECOND_TS_THRESHOLD:
            signed_at //= 1000
        if abs(time.time() - signed_at) > self.config.tolerance_seconds:
            raise WebhookAuthError("Signature timestamp outside tolerance", WebhookAuthErrorCode.INVALID_SIGNATURE)

    @staticmethod
    def _load(body: bytes) -> dict[str, Any]:
        try:
            payload = json.loads(body or b"")
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise WebhookAuthError("Webhook body is not valid JSON", WebhookAuthErrorCode.MALFORMED_PAYLOAD) from e
        if not isinstance(payload, dict):
            raise WebhookAuthError("Webhook body must be a JSON object", WebhookAuthErrorCode.MALFORMED_PAYLOAD)
        return payload

    def _extract(self, payload: dict[str, Any]) -> tuple[str, str | None]:
        """Return (notification type, payment id) from a `{type, data: {id}}` body."""
        notification_type = payload.get("type") or payload.get("topic") or ""
        data = payload.get("data")
        data_id = data.get("id") if isinstance(data, dict) else None
        return str(notification_type), str(data_id) if data_id is not None else None


class StripeWebhookVerifier(WebhookVerifier):
    """Verifies Stripe `stripe-signature` webhooks with the Stripe SDK.

    checkout.session.* events become `payment` notifications whose
    payment id is the checkout session id.
    """

    signature_header = "stripe-signature"
    request_id_header = "request-id"

    def _check_signature(
        self,
        signature: str,
        body: bytes,
        payment_id: str | None,
        request_id: str | None,
    ) -> None:
        try:
            stripe.WebhookSignature.verify_header(
                body.decode("utf-8"),
                signature,
                self.config.secret,
                self.config.tolerance_seconds,
            )
        except stripe.SignatureVerificationError as e:
            raise WebhookAuthError("Invalid signature", WebhookAuthErrorCode.INVALID_SIGNATURE) from e

    def _extract(self, payload: dict[str, Any]) -> tuple[str, str | None]:
        event_type = str(payload.get("type") or "")
        data = payload.get("data")
        obj = data.get("object") if isinstance(data, dict) else None
        object_id = obj.get("id") if isinstance(obj, dict) else None
        if event_type.startswith("checkout.session."):
            return PAYMENT_NOTIFICATION_TYPE, object_id
        return event_type, object_id


def get_webhook_verifier() -> WebhookVerifier:
    """Build the verifier for the configured PAYMENT_PROVIDER."""
    settings = get_settings()
    config = WebhookVerificationConfig.from_settings(settings)
    if settings.payment_provider == "stripe":
        return StripeWebhookVerifier(config)
    return WebhookVerifier(config)
