"""Store orders router: checkout, order history, reorder and payment retry."""

from fastapi import APIRouter, Depends, Request
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.rate_limit import payment_limit
from libs.db.session import get_async_db
from services.store_service.gateways import (
    PaymentGateway,
    get_gateway,
    get_payment_gateway,
)
from services.store_service.routers.cart import cart_response
from services.store_service.schemas import (
    CheckoutRequest,
    CheckoutResponse,
    OrderResponse,
    ReorderResponse,
)
from services.store_service.services import order_service
from services.store_service.services.cart_service import CartOwner, get_cart
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])


def _select_gateway(checkout: CheckoutRequest, default: PaymentGateway) -> PaymentGateway:
    if checkout.payment_method is None or checkout.payment_method == default.method:
        return default
    return get_gateway(checkout.payment_method.value)


# ============================================================================
# CHECKOUT
# ============================================================================


@router.post("/checkout", response_model=CheckoutResponse, status_code=201)
@payment_limit
async def checkout(
    request: Request,
    checkout: CheckoutRequest,
    current_user: AuthUser = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_async_db),
):
    """Turn the signed-in customer's cart into a pending order and open payment."""
    customer = await order_service.upsert_customer(db, current_user, checkout)
    cart = await get_cart(db, CartOwner(customer_id=customer.id))
    order, session = await order_service.create_order_from_cart(
        db, customer, cart, checkout, _select_gateway(checkout, gateway)
    )
    return CheckoutResponse(
        order_number=order.order_number,
        redirect_url=session.redirect_url,
        session_id=session.session_id,
    )


# ============================================================================
# ORDER HISTORY
# ============================================================================


@router.get("/orders", response_model=list[OrderResponse])
async def list_my_orders(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """List the current customer's orders, newest first."""
    customer = await order_service.get_customer(db, current_user.user_id)
    if customer is None:
        return []
    return await order_service.list_customer_orders(db, customer)


@router.get("/orders/{order_number}", response_model=OrderResponse)
async def get_my_order(
    order_number: str,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Get one of the current customer's orders by number."""
    customer = await order_service.get_or_create_customer(db, current_user)
    return await order_service.get_customer_order(db, customer, order_number)


@router.post("/orders/{order_number}/reorder", response_model=ReorderResponse)
async def reorder(
    order_number: str,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Copy a past order's still-available lines back into the cart."""
    customer = await order_service.get_or_create_customer(db, current_user)
    cart, skipped = await order_service.reorder(db, customer, order_number)
    return ReorderResponse(cart=cart_response(cart), skipped=skipped)


@router.post("/orders/{order_number}/retry-payment", response_model=CheckoutResponse)
@payment_limit
async def retry_payment(
    request: Request,
    order_number: str,
    current_user: AuthUser = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_async_db),
):
    """Open a new payment session for an unpaid order."""
    customer = await order_service.get_or_create_customer(db, current_user)
    session = await order_service.retry_payment(db, customer, order_number, gateway)
    return CheckoutResponse(
        order_number=order_number,
        redirect_url=session.redirect_url,
        session_id=session.session_id,
    )
