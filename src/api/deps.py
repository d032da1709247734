"""FastAPI dependency injection functions."""

import logging
from typing import Annotated

from fastapi import Depends, Header

from src.api.middleware.auth import AuthError, decode_jwt
from src.api.middleware.error_handler import AuthenticationError
from src.schemas.auth import UserContext

logger = logging.getLogger(__name__)


def _bearer_token(authorization: str | None) -> str | None:
    """Extract the token from a `Bearer <token>` header value."""
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


async def get_current_user(
    authorization: Annotated[str | None, Header(description="Bearer token")] = None,
) -> UserContext:
    """Require a valid bearer token.

    Raises:
        AuthenticationError: 401 if the token is missing or invalid.
    """
    token = _bearer_token(authorization)
    if token is None:
        raise AuthenticationError("Authorization header required. Expected: Bearer <token>")

    try:
        return decode_jwt(token).to_user_context()
    except AuthError as e:
        raise AuthenticationError(e.message) from e


async def get_optional_user(
    authorization: Annotated[str | None, Header()] = None,
) -> UserContext | None:
    """Attach the buyer's identity when a valid token is sent.

    Checkout works for guests, so an invalid or expired token is logged
    and treated as no identity rather than rejected.
    """
    token = _bearer_token(authorization)
    if token is None:
        return None

    try:
        return decode_jwt(token).to_user_context()
    except AuthError as e:
        logger.warning("Ignoring invalid token on guest-capable route: %s", e.message)
        return None


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[UserContext, Depends(get_current_user)]
OptionalUser = Annotated[UserContext | None, Depends(get_optional_user)]
