"""Global error handling middleware for consistent error responses."""

import logging
import traceback
from typing import Any, Callable

from fastapi import HTTPException, Request, Response, status
from fastapi.responses import JSONResponse

from src.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for errors returned to API clients.

    Routes translate domain errors into these; subclasses fix the status
    code and error type, callers only supply the message.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type: str = "api_error"
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: str | None = None, details: list[dict[str, Any]] | None = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class BadRequestError(APIError):
    """Client input that cannot be processed (bad cart, out of stock)."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "bad_request"
    default_message = "Bad request"


class AuthenticationError(APIError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = "authentication_error"
    default_message = "Authentication required"


class AuthorizationError(APIError):
    status_code = status.HTTP_403_FORBIDDEN
    error_type = "authorization_error"
    default_message = "Access denied"


class NotFoundError(APIError):
    status_code = status.HTTP_404_NOT_FOUND
    error_type = "not_found"
    default_message = "Resource not found"


class PaymentGatewayError(APIError):
    """Payment provider failure. The order stays pending and checkout may be retried."""

    error_type = "payment_provider_error"
    default_message = "Failed to create payment session"


def create_error_response(
    error_type: str,
    message: str,
    status_code: int,
    details: list[dict[str, Any]] | None = None,
    request_id: str | None = None,
) -> JSONResponse:
    """Render an ErrorResponse body with the given status code."""
    error_response = ErrorResponse.from_exception(
        error_type=error_type,
        message=message,
        details=details,
        request_id=request_id,
    )
    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json", exclude_none=True),
    )


async def error_handler_middleware(request: Request, call_next: Callable[[Request], Any]) -> Response:
    """Turn exceptions escaping the routes into JSON error responses.

    Client errors are logged at info, server-side failures at error with
    the full traceback. Clients never see internal exception text.
    """
    request_id = request.headers.get("X-Request-ID")
    log_extra = {"request_id": request_id, "path": request.url.path}

    try:
        return await call_next(request)

    except APIError as e:
        log = logger.error if e.status_code >= 500 else logger.info
        log("API error on %s: %s - %s", request.url.path, e.error_type, e.message, extra=log_extra)
        return create_error_response(e.error_type, e.message, e.status_code, e.details, request_id)

    except HTTPException as e:
        logger.warning("HTTP exception on %s: %s - %s", request.url.path, e.status_code, e.detail, extra=log_extra)
        return create_error_response("http_error", str(e.detail), e.status_code, request_id=request_id)

    except Exception as e:
        logger.error(
            "Unhandled exception on %s: %s\n%s",
            request.url.path,
            str(e),
            traceback.format_exc(),
            extra=log_extra,
        )
        return create_error_response(
            "internal_error",
            "An unexpected error occurred",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            request_id=request_id,
        )
