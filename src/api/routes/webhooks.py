"""Webhook API routes for payment provider notifications."""

import logging

from fastapi import APIRouter, BackgroundTasks, Request, status

from src.api.middleware.error_handler import AuthenticationError
from src.schemas.checkout import WebhookAck
from src.services.checkout_service import CheckoutService
from src.services.webhook_verifier import WebhookAuthError, get_webhook_verifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post(
    "/payment",
    response_model=WebhookAck,
    status_code=status.HTTP_200_OK,
    summary="Handle payment notifications",
    description="Receives payment provider notifications. Requires a valid signature.",
    responses={401: {"description": "Missing or invalid signature"}},
)
async def payment_webhook(request: Request, background_tasks: BackgroundTasks) -> WebhookAck:
    """Verify and reconcile a payment notification.

    The notification is only a trigger: the payment status is re-read from
    the provider before the order moves. Anything that verifies is
    acknowledged with 200, including unknown orders and repeated deliveries,
    so the provider stops retrying. Reconciliation failures are logged, never
    returned to the provider. The confirmation email is sent after the response.

    Raises:
        AuthenticationError: 401 if the signature check fails.
    """
    # Raw body is needed for signature verification
    body = await request.body()
    logger.debug("Payload size: %d bytes", len(body))

    try:
        notification = get_webhook_verifier().verify(request.headers, body)
    except WebhookAuthError as e:
        logger.warning(
            "Rejected webhook from %s: %s (%s)",
            request.client.host if request.client else "unknown",
            e.message,
            e.code.value,
        )
        raise AuthenticationError("Invalid webhook signature") from e

    logger.info(
        "Received %s notification for %s (request_id=%s)",
        notification.type,
        notification.payment_id,
        notification.request_id,
    )

    try:
        await CheckoutService().handle_payment_notification(notification, defer=background_tasks.add_task)
    except Exception:
        logger.error(
            "Reconciliation of %s notification %s failed; acknowledged anyway",
            notification.type,
            notification.payment_id,
            exc_info=True,
        )
    return WebhookAck()
