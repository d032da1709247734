"""JWT verification for the identity provider (Supabase Auth)."""

import json
from enum import Enum
from functools import lru_cache
from typing import Any

import jwt
from jwt import PyJWK

from src.core.config import get_settings
from src.schemas.auth import TokenPayload


class AuthErrorCode(str, Enum):
    """Authentication error codes."""

    NOT_CONFIGURED = "NOT_CONFIGURED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"


class AuthError(Exception):
    """Raised when a bearer token cannot be trusted."""

    def __init__(self, message: str, code: AuthErrorCode) -> None:
        self.message = message
        self.code = code
        super().__init__(message)


# Most specific first
_JWT_ERRORS: tuple[tuple[type[Exception], AuthErrorCode, str], ...] = (
    (jwt.ExpiredSignatureError, AuthErrorCode.TOKEN_EXPIRED, "Token has expired"),
    (jwt.InvalidSignatureError, AuthErrorCode.INVALID_SIGNATURE, "Invalid token signature"),
    (jwt.InvalidTokenError, AuthErrorCode.INVALID_TOKEN, "Invalid token"),
)


@lru_cache
def get_signing_key() -> Any:
    """Load the public key from SUPABASE_SIGNING_KEY_JWK."""
    jwk_json = get_settings().supabase_signing_key_jwk
    if not jwk_json:
        raise AuthError("Signing key not configured", AuthErrorCode.NOT_CONFIGURED)

    try:
        return PyJWK.from_dict(json.loads(jwk_json)).key
    except (json.JSONDecodeError, jwt.PyJWKError) as e:
        raise AuthError(f"Invalid signing key JWK: {e}", AuthErrorCode.NOT_CONFIGURED) from e


def decode_jwt(token: str) -> TokenPayload:
    """Verify an ES256 access token and return its claims.

    Raises:
        AuthError: If the token is expired, forged, or malformed.
    """
    key = get_signing_key()
    try:
        claims: dict[str, Any] = jwt.decode(
            token,
            key,
            algorithms=["ES256"],
            options={"require": ["exp", "iat", "sub"]},
            audience="authenticated",
        )
    except jwt.PyJWTError as e:
        for error_type, code, message in _JWT_ERRORS:
            if isinstance(e, error_type):
                raise AuthError(message, code) from e
        raise AuthError(f"Token validation failed: {e}", AuthErrorCode.INVALID_TOKEN) from e

    return TokenPayload.model_validate(claims)
