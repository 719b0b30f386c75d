"""Store cart router: guest and customer carts."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from libs.auth.dependencies import get_optional_user
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.store_service.models import Cart
from services.store_service.schemas import (
    CartItemAdd,
    CartItemResponse,
    CartItemUpdate,
    CartResponse,
)
from services.store_service.services import cart_service, order_service
from services.store_service.services.cart_service import CartOwner
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])
logger = get_logger(__name__)


# ============================================================================
# CART HELPERS
# ============================================================================


async def get_cart_owner(
    x_session_id: Optional[str] = Header(None, alias="X-Session-ID"),
    session_id: Optional[str] = Query(None),
    current_user: Optional[AuthUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db),
) -> CartOwner:
    """Resolve who owns the cart for this request.

    Signed-in shoppers own their customer cart; a guest cart sent along with the
    session id is merged into it. Guests must send ``X-Session-ID``.
    """
    guest_session = x_session_id or session_id
    if current_user is not None:
        customer = await order_service.get_or_create_customer(db, current_user)
        if guest_session:
            await cart_service.merge_guest_cart(db, guest_session, customer.id)
        return CartOwner(customer_id=customer.id)

    if not guest_session:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Session ID required for guest cart",
        )
    return CartOwner(session_id=guest_session)


def cart_response(cart: Optional[Cart]) -> CartResponse:
    """Build the cart payload with server-computed totals."""
    totals = cart_service.calculate_cart_totals(cart)
    if cart is None:
        return CartResponse()

    items = []
    for item in cart.items:
        unit_price = cart_service.effective_unit_price(item)
        variant = item.variant
        items.append(
            CartItemResponse(
                id=item.id,
                product_id=item.product_id,
                variant_id=item.variant_id,
                product_name=item.product.name,
                sku=variant.sku if variant else None,
                color=variant.color.name if variant and variant.color else None,
                color_hex=variant.color.hex_code if variant and variant.color else None,
                size=variant.size.name if variant and variant.size else None,
                quantity=item.quantity,
                unit_price=unit_price,
                line_total=unit_price * item.quantity,
            )
        )

    return CartResponse(
        id=cart.id,
        items=items,
        subtotal=totals.subtotal,
        shipping=totals.shipping,
        total=totals.total,
        items_count=totals.items_count,
    )


# ============================================================================
# CART ENDPOINTS
# ============================================================================


@router.get("/cart", response_model=CartResponse)
async def get_cart(
    owner: CartOwner = Depends(get_cart_owner),
    db: AsyncSession = Depends(get_async_db),
):
    """Get the current cart (empty payload when none exists yet)."""
    return cart_response(await cart_service.get_cart(db, owner))


@router.post("/cart/items", response_model=CartResponse, status_code=201)
async def add_to_cart(
    item_data: CartItemAdd,
    owner: CartOwner = Depends(get_cart_owner),
    db: AsyncSession = Depends(get_async_db),
):
    """Add a product or variant to the cart."""
    cart = await cart_service.add_item(
        db,
        owner,
        item_data.product_id,
        variant_id=item_data.variant_id,
        quantity=item_data.quantity,
    )
    return cart_response(cart)


@router.patch("/cart/items/{item_id}", response_model=CartResponse)
async def update_cart_item(
    item_id: uuid.UUID,
    item_data: CartItemUpdate,
    owner: CartOwner = Depends(get_cart_owner),
    db: AsyncSession = Depends(get_async_db),
):
    """Change the quantity of a cart line."""
    cart = await cart_service.update_item(db, owner, item_id, item_data.quantity)
    return cart_response(cart)


@router.delete("/cart/items/{item_id}", response_model=CartResponse)
async def remove_cart_item(
    item_id: uuid.UUID,
    owner: CartOwner = Depends(get_cart_owner),
    db: AsyncSession = Depends(get_async_db),
):
    """Remove a line from the cart."""
    cart = await cart_service.remove_item(db, owner, item_id)
    return cart_response(cart)


@router.delete("/cart", status_code=204)
async def clear_cart(
    owner: CartOwner = Depends(get_cart_owner),
    db: AsyncSession = Depends(get_async_db),
):
    """Remove every line from the cart."""
    await cart_service.clear_cart(db, owner)
