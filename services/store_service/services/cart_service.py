"""Cart aggregation.

The owner of a cart is always passed explicitly as a :class:`CartOwner`
(customer id for signed-in shoppers, session id for guests).
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from libs.common.config import get_settings
from libs.common.currency import to_money
from libs.common.logging import get_logger
from services.store_service.errors import CartError, NotFoundError, OutOfStockError
from services.store_service.models import Cart, CartItem, Product, ProductVariant
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)

MAX_LINE_QUANTITY = 99


@dataclass(frozen=True)
class CartOwner:
    customer_id: Optional[uuid.UUID] = None
    session_id: Optional[str] = None

    def __post_init__(self):
        if self.customer_id is None and not self.session_id:
            raise CartError("Session ID required for guest cart")

    @property
    def is_guest(self) -> bool:
        return self.customer_id is None


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    shipping: Decimal
    total: Decimal
    items_count: int


def cart_options():
    return (
        selectinload(Cart.items).selectinload(CartItem.product),
        selectinload(Cart.items)
        .selectinload(CartItem.variant)
        .selectinload(ProductVariant.color),
        selectinload(Cart.items)
        .selectinload(CartItem.variant)
        .selectinload(ProductVariant.size),
        selectinload(Cart.items)
        .selectinload(CartItem.variant)
        .selectinload(ProductVariant.product),
    )


def _owner_clause(owner: CartOwner):
    if owner.customer_id is not None:
        return Cart.customer_id == owner.customer_id
    return (Cart.session_id == owner.session_id) & Cart.customer_id.is_(None)


async def _load_cart(db: AsyncSession, cart_id: uuid.UUID) -> Cart:
    result = await db.execute(
        select(Cart)
        .where(Cart.id == cart_id)
        .options(*cart_options())
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------


def effective_unit_price(item: CartItem) -> Decimal:
    """Variant final price when a variant is chosen, else the product price."""
    if item.variant is not None:
        return to_money(item.variant.final_price)
    return to_money(item.product.price)


def shipping_for(subtotal: Decimal) -> Decimal:
    settings = get_settings()
    if subtotal <= 0 or subtotal >= to_money(settings.FREE_SHIPPING_THRESHOLD):
        return to_money(0)
    return to_money(settings.SHIPPING_FLAT_RATE)


def calculate_cart_totals(cart: Optional[Cart]) -> CartTotals:
    """Server-side totals from loaded cart items."""
    if cart is None or not cart.items:
        zero = to_money(0)
        return CartTotals(subtotal=zero, shipping=zero, total=zero, items_count=0)

    subtotal = to_money(
        sum((effective_unit_price(item) * item.quantity for item in cart.items), Decimal("0"))
    )
    shipping = shipping_for(subtotal)
    return CartTotals(
        subtotal=subtotal,
        shipping=shipping,
        total=to_money(subtotal + shipping),
        items_count=sum(item.quantity for item in cart.items),
    )


# ---------------------------------------------------------------------------
# Cart lookup
# ---------------------------------------------------------------------------


async def get_cart(db: AsyncSession, owner: CartOwner) -> Optional[Cart]:
    result = await db.execute(
        select(Cart)
        .where(_owner_clause(owner))
        .order_by(Cart.created_at.desc())
        .options(*cart_options())
    )
    return result.scalars().first()


async def get_or_create_cart(db: AsyncSession, owner: CartOwner) -> Cart:
    cart = await get_cart(db, owner)
    if cart is not None:
        return cart

    cart = Cart(customer_id=owner.customer_id, session_id=owner.session_id)
    db.add(cart)
    await db.commit()
    return await _load_cart(db, cart.id)


# ---------------------------------------------------------------------------
# Line operations
# ---------------------------------------------------------------------------


async def _available_stock(
    db: AsyncSession, product: Product, variant_id: Optional[uuid.UUID]
) -> tuple[Optional[int], Optional[ProductVariant]]:
    """Stock that can go in the cart; None means unlimited (donatable items)."""
    if variant_id is None:
        if product.is_donatable:
            return None, None
        variant_count = (
            await db.execute(
                select(func.count(ProductVariant.id)).where(
                    ProductVariant.product_id == product.id,
                    ProductVariant.is_active.is_(True),
                )
            )
        ).scalar_one()
        if variant_count:
            raise CartError("Please choose a color and size")
        return product.stock, None

    variant = await db.get(ProductVariant, variant_id)
    if variant is None or variant.product_id != product.id:
        raise CartError("Variant does not belong to this product")
    if not variant.is_active:
        raise CartError("This option is no longer available")
    return variant.stock, variant


async def add_item(
    db: AsyncSession,
    owner: CartOwner,
    product_id: uuid.UUID,
    variant_id: Optional[uuid.UUID] = None,
    quantity: int = 1,
) -> Cart:
    """Add a product (or a product variant) to the owner's cart, merging lines."""
    if quantity < 1 or quantity > MAX_LINE_QUANTITY:
        raise CartError(f"Quantity must be between 1 and {MAX_LINE_QUANTITY}")

    product = await db.get(Product, product_id)
    if product is None or not product.is_active:
        raise NotFoundError("Product not found")

    available, _ = await _available_stock(db, product, variant_id)

    cart = await get_or_create_cart(db, owner)
    line = next(
        (
            item
            for item in cart.items
            if item.product_id == product_id and item.variant_id == variant_id
        ),
        None,
    )
    wanted = quantity + (line.quantity if line else 0)
    if available is not None and wanted > available:
        raise OutOfStockError(product.name, available)

    if line is not None:
        line.quantity = wanted
    else:
        db.add(
            CartItem(
                cart_id=cart.id,
                product_id=product_id,
                variant_id=variant_id,
                quantity=quantity,
            )
        )
    await db.commit()
    return await _load_cart(db, cart.id)


async def _owned_item(
    db: AsyncSession, owner: CartOwner, item_id: uuid.UUID
) -> tuple[Cart, CartItem]:
    cart = await get_cart(db, owner)
    item = None
    if cart is not None:
        item = next((i for i in cart.items if i.id == item_id), None)
    if item is None:
        raise NotFoundError("Cart item not found")
    return cart, item


async def update_item(
    db: AsyncSession, owner: CartOwner, item_id: uuid.UUID, quantity: int
) -> Cart:
    if quantity < 1 or quantity > MAX_LINE_QUANTITY:
        raise CartError(f"Quantity must be between 1 and {MAX_LINE_QUANTITY}")

    cart, item = await _owned_item(db, owner, item_id)
    if item.variant is not None:
        available = item.variant.stock
    elif item.product.is_donatable:
        available = None
    else:
        available = item.product.stock
    if available is not None and quantity > available:
        raise OutOfStockError(item.product.name, available)

    item.quantity = quantity
    await db.commit()
    return await _load_cart(db, cart.id)


async def remove_item(db: AsyncSession, owner: CartOwner, item_id: uuid.UUID) -> Cart:
    cart, item = await _owned_item(db, owner, item_id)
    await db.delete(item)
    await db.commit()
    return await _load_cart(db, cart.id)


async def clear_cart(db: AsyncSession, owner: CartOwner) -> None:
    cart = await get_cart(db, owner)
    if cart is None:
        return
    await db.execute(delete(CartItem).where(CartItem.cart_id == cart.id))
    await db.commit()


async def delete_customer_carts(db: AsyncSession, customer_id: uuid.UUID) -> int:
    """Drop every cart of a customer. Flushes only; used inside reconciliation."""
    result = await db.execute(select(Cart).where(Cart.customer_id == customer_id))
    carts = result.scalars().all()
    for cart in carts:
        await db.delete(cart)
    await db.flush()
    return len(carts)


async def merge_guest_cart(
    db: AsyncSession, session_id: str, customer_id: uuid.UUID
) -> Optional[Cart]:
    """
    Move a guest cart to a customer after sign-in.

    The guest cart is handed over as-is when the customer has no cart;
    otherwise its quantities are summed into the customer's cart and the guest
    cart is deleted.
    """
    guest_cart = await get_cart(db, CartOwner(session_id=session_id))
    if guest_cart is None or not guest_cart.items:
        return await get_cart(db, CartOwner(customer_id=customer_id))

    customer_cart = await get_cart(db, CartOwner(customer_id=customer_id))
    if customer_cart is None:
        guest_cart.customer_id = customer_id
        guest_cart.session_id = None
        await db.commit()
        logger.info("Transferred guest cart %s to customer %s", guest_cart.id, customer_id)
        return await _load_cart(db, guest_cart.id)

    lines = {(i.product_id, i.variant_id): i for i in customer_cart.items}
    for guest_item in guest_cart.items:
        key = (guest_item.product_id, guest_item.variant_id)
        if key in lines:
            lines[key].quantity = min(
                lines[key].quantity + guest_item.quantity, MAX_LINE_QUANTITY
            )
        else:
            db.add(
                CartItem(
                    cart_id=customer_cart.id,
                    product_id=guest_item.product_id,
                    variant_id=guest_item.variant_id,
                    quantity=guest_item.quantity,
                )
            )

    await db.delete(guest_cart)
    await db.commit()
    logger.info("Merged guest cart into customer cart %s", customer_cart.id)
    return await _load_cart(db, customer_cart.id)
