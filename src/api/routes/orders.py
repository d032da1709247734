"""Order API routes: checkout and order lookup."""

import logging
from uuid import UUID

from fastapi import APIRouter, status

from src.api.deps import CurrentUser, OptionalUser
from src.api.middleware.error_handler import (
    AuthorizationError,
    BadRequestError,
    NotFoundError,
    PaymentGatewayError,
)
from src.schemas.checkout import (
    CheckoutRequest,
    CheckoutResponse,
    OrderListResponse,
    OrderResponse,
)
from src.services.cart_validator import CartError
from src.services.checkout_service import CheckoutService
from src.services.payment_gateway import PaymentProviderError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    status_code=status.HTTP_200_OK,
    summary="Checkout a cart",
    description="Validates the cart against the catalog, creates a pending order and returns the payment redirect. Guests may check out.",
    responses={
        400: {"description": "Empty cart, unknown item, invalid quantity or insufficient stock"},
        422: {"description": "Malformed request body or email"},
        500: {"description": "Payment provider failure"},
    },
)
async def checkout(data: CheckoutRequest, user: OptionalUser) -> CheckoutResponse:
    """Create a pending order and a payment session for it.

    Prices come from the catalog; the client only sends ids and quantities.
    Stock is reserved nowhere and decremented only when payment settles.

    Raises:
        BadRequestError: 400 if the cart fails validation.
        PaymentGatewayError: 500 if the provider session could not be created.
    """
    service = CheckoutService()

    try:
        result = await service.checkout(
            items=[item.to_cart_item() for item in data.items],
            email=str(data.email),
            shipping_address=data.shipping_address,
            user_id=user.user_id if user else None,
        )
    except CartError as e:
        raise BadRequestError(e.message) from e
    except PaymentProviderError as e:
        raise PaymentGatewayError() from e

    logger.info(
        "Checkout created order %s (%s) for %d line items",
        result.order.id,
        result.order.external_reference,
        len(result.order.line_items),
    )
    return CheckoutResponse(
        id=result.provider_session_id,
        init_point=result.redirect_url,
        order_id=result.order.id,
    )


@router.get(
    "/my-orders",
    response_model=OrderListResponse,
    summary="List my orders",
    description="Returns the authenticated buyer's orders, newest first.",
)
async def list_my_orders(user: CurrentUser) -> OrderListResponse:
    service = CheckoutService()
    orders = await service.get_orders_for_user(user.user_id)
    return OrderListResponse(items=[OrderResponse.from_order(order) for order in orders])


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order by ID",
    description="Returns a single order. Only accessible by the buyer who placed it.",
)
async def get_order(order_id: UUID, user: CurrentUser) -> OrderResponse:
    """Get a single order by ID.

    Guest orders have no owner and are not readable through this route.

    Raises:
        NotFoundError: 404 if the order does not exist.
        AuthorizationError: 403 if the order belongs to someone else.
    """
    service = CheckoutService()
    order = await service.get_order(order_id)
    if order is None:
        raise NotFoundError("Order not found")
    if order.user_id != user.user_id:
        raise AuthorizationError("Not authorized to view this order")
    return OrderResponse.from_order(order)
