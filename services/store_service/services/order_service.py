"""Order materialization, customer history and back-office order queries."""

import uuid
from decimal import Decimal
from typing import Optional

from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.currency import to_money
from libs.common.datetime_utils import start_of_day
from libs.common.logging import get_logger
from services.store_service.errors import (
    CheckoutError,
    EmptyCartError,
    NotFoundError,
    StoreError,
)
from services.store_service.gateways import CheckoutSession, PaymentGateway
from services.store_service.models import (
    AdminNotification,
    Cart,
    CartItem,
    Customer,
    Donation,
    DonationBeneficiary,
    DonationStatus,
    Order,
    OrderItem,
    OrderStatus,
    Payment,
    Product,
    ProductVariant,
)
from services.store_service.schemas import CheckoutRequest
from services.store_service.services.cart_service import (
    CartOwner,
    effective_unit_price,
    get_cart,
    get_or_create_cart,
    shipping_for,
)
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)

LOW_STOCK_THRESHOLD = 5
RETRYABLE_STATUSES = (OrderStatus.PENDING, OrderStatus.FAILED)


def order_options():
    return (
        selectinload(Order.items),
        selectinload(Order.customer),
        selectinload(Order.beneficiary),
        selectinload(Order.payments),
    )


async def load_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .options(*order_options())
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order not found")
    return order


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------


async def get_customer(db: AsyncSession, auth_id: str) -> Optional[Customer]:
    result = await db.execute(select(Customer).where(Customer.auth_id == auth_id))
    return result.scalar_one_or_none()


async def get_or_create_customer(db: AsyncSession, user: AuthUser) -> Customer:
    """Customer profile for a signed-in user; an empty one is created on first use."""
    customer = await get_customer(db, user.user_id)
    if customer is None:
        customer = Customer(
            auth_id=user.user_id,
            email=user.email,
            first_name="",
            last_name="",
            locale=user.locale,
        )
        db.add(customer)
        await db.commit()
    return customer


async def upsert_customer(
    db: AsyncSession, user: AuthUser, request: CheckoutRequest
) -> Customer:
    """Save the checkout form's contact details onto the customer profile."""
    customer = await get_customer(db, user.user_id)
    if customer is None:
        customer = Customer(auth_id=user.user_id)
        db.add(customer)

    customer.email = user.email or customer.email
    customer.first_name = request.first_name
    customer.last_name = request.last_name
    customer.phone = request.phone
    customer.address = request.address or customer.address
    customer.city = request.city or customer.city
    customer.country = request.country or customer.country
    await db.flush()
    return customer


def _beneficiary_from(request: CheckoutRequest) -> Optional[DonationBeneficiary]:
    if not (request.is_donation and request.has_beneficiary):
        return None
    if request.beneficiary_is_organization:
        if not request.beneficiary_organization_name:
            return None
    elif not (request.beneficiary_first_name or request.beneficiary_last_name):
        return None
    return DonationBeneficiary(
        first_name=request.beneficiary_first_name,
        last_name=request.beneficiary_last_name,
        phone=request.beneficiary_phone,
        organization_name=request.beneficiary_organization_name,
        special_instructions=request.beneficiary_special_instructions,
        is_organization=request.beneficiary_is_organization,
    )


# ---------------------------------------------------------------------------
# Materialization
# ---------------------------------------------------------------------------


def _snapshot(item: CartItem) -> OrderItem:
    unit_price = effective_unit_price(item)
    line = OrderItem(
        product_id=item.product_id,
        variant_id=item.variant_id,
        product_name=item.product.name,
        product_name_translations=item.product.name_translations,
        quantity=item.quantity,
        unit_price=unit_price,
        line_total=to_money(unit_price * item.quantity),
    )
    variant = item.variant
    if variant is not None:
        line.sku = variant.sku
        if variant.color is not None:
            line.selected_color = variant.color.name
            line.selected_color_hex = variant.color.hex_code
        if variant.size is not None:
            line.selected_size = variant.size.name
    return line


async def create_order_from_cart(
    db: AsyncSession,
    customer: Customer,
    cart: Optional[Cart],
    request: CheckoutRequest,
    gateway: PaymentGateway,
) -> tuple[Order, CheckoutSession]:
    """
    Snapshot ``cart`` into a pending order and open a gateway session for it.

    Totals are recomputed from current prices; ``request.total`` is never read.
    If the gateway fails the new order is deleted and :class:`CheckoutError`
    raised, so no unpayable order is left behind.
    """
    if cart is None or not cart.items:
        raise EmptyCartError()

    lines = [_snapshot(item) for item in cart.items]
    subtotal = to_money(sum((line.line_total for line in lines), Decimal("0")))
    shipping = to_money(0) if request.is_donation else shipping_for(subtotal)

    beneficiary = _beneficiary_from(request)
    if beneficiary is not None:
        db.add(beneficiary)
        await db.flush()

    order = Order(
        order_number=Order.generate_order_number(),
        customer_id=customer.id,
        beneficiary_id=beneficiary.id if beneficiary else None,
        subtotal=subtotal,
        shipping=shipping,
        total=to_money(subtotal + shipping),
        currency=get_settings().CURRENCY.lower(),
        status=OrderStatus.PENDING,
        is_donation=request.is_donation,
        payment_method=gateway.method,
        notes=request.notes,
    )
    order.items = lines
    db.add(order)
    await db.commit()
    order = await load_order(db, order.id)

    try:
        session = await gateway.create_session(order)
    except Exception as e:
        logger.exception(
            "%s session creation failed for order %s; discarding it",
            gateway.name,
            order.order_number,
        )
        if order.beneficiary is not None:
            await db.delete(order.beneficiary)
        await db.delete(order)
        await db.commit()
        raise CheckoutError("Payment processing failed. Please try again.") from e

    order.payment_id = session.session_id
    order.payment_intent_id = session.payment_intent_id
    db.add(
        Payment(
            order_id=order.id,
            gateway=gateway.method,
            gateway_payment_id=session.session_id,
            amount=order.total,
            currency=order.currency,
        )
    )
    await db.commit()

    logger.info(
        "Order %s created for customer %s (total %s)",
        order.order_number,
        customer.id,
        order.total,
    )
    return await load_order(db, order.id), session


async def retry_payment(
    db: AsyncSession,
    customer: Customer,
    order_number: str,
    gateway: PaymentGateway,
) -> CheckoutSession:
    """Open a fresh gateway session for an unpaid pending/failed order."""
    order = await get_customer_order(db, customer, order_number)
    if order.paid_at is not None or order.status not in RETRYABLE_STATUSES:
        raise StoreError("This order can no longer be paid")

    try:
        session = await gateway.create_session(order)
    except Exception as e:
        logger.exception("Retry session failed for order %s", order.order_number)
        raise CheckoutError("Payment processing failed. Please try again.") from e

    order.status = OrderStatus.PENDING
    order.payment_method = gateway.method
    order.payment_id = session.session_id
    order.payment_intent_id = session.payment_intent_id
    order.payment_error_message = None
    db.add(
        Payment(
            order_id=order.id,
            gateway=gateway.method,
            gateway_payment_id=session.session_id,
            amount=order.total,
            currency=order.currency,
        )
    )
    await db.commit()
    return session


# ---------------------------------------------------------------------------
# Customer history
# ---------------------------------------------------------------------------


async def list_customer_orders(db: AsyncSession, customer: Customer) -> list[Order]:
    result = await db.execute(
        select(Order)
        .where(Order.customer_id == customer.id)
        .options(*order_options())
        .order_by(Order.created_at.desc())
    )
    return list(result.scalars().all())


async def get_customer_order(
    db: AsyncSession, customer: Customer, order_number: str
) -> Order:
    result = await db.execute(
        select(Order)
        .where(Order.order_number == order_number, Order.customer_id == customer.id)
        .options(*order_options())
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order not found")
    return order


async def get_order_by_payment_id(db: AsyncSession, session_id: str) -> Optional[Order]:
    result = await db.execute(
        select(Order).where(Order.payment_id == session_id).options(*order_options())
    )
    return result.scalars().first()


async def reorder(
    db: AsyncSession, customer: Customer, order_number: str
) -> tuple[Cart, list[str]]:
    """
    Copy an order's lines back into the customer's cart.

    Lines whose product/variant is gone, inactive or out of stock are skipped;
    quantities are capped at current stock (donatable items are uncapped).
    Returns the cart and skipped names.
    """
    order = await get_customer_order(db, customer, order_number)
    cart = await get_or_create_cart(db, CartOwner(customer_id=customer.id))
    existing = {(i.product_id, i.variant_id): i for i in cart.items}
    skipped: list[str] = []

    for item in order.items:
        product = await db.get(Product, item.product_id) if item.product_id else None
        if product is None or not product.is_active:
            skipped.append(item.product_name)
            continue
        stock = None if product.is_donatable else product.stock
        if item.variant_id is not None:
            variant = await db.get(ProductVariant, item.variant_id)
            if variant is None or not variant.is_active:
                skipped.append(item.product_name)
                continue
            stock = variant.stock

        key = (item.product_id, item.variant_id)
        in_cart = existing[key].quantity if key in existing else 0
        if stock is None:
            quantity = item.quantity
        else:
            quantity = min(item.quantity, stock - in_cart)
        if quantity <= 0:
            skipped.append(item.product_name)
            continue
        if key in existing:
            existing[key].quantity += quantity
        else:
            line = CartItem(
                cart_id=cart.id,
                product_id=item.product_id,
                variant_id=item.variant_id,
                quantity=quantity,
            )
            db.add(line)
            existing[key] = line

    await db.commit()
    return await get_cart(db, CartOwner(customer_id=customer.id)), skipped


# ---------------------------------------------------------------------------
# Back office
# ---------------------------------------------------------------------------


async def list_orders(
    db: AsyncSession,
    *,
    search: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    is_donation: Optional[bool] = None,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Order], int]:
    query = select(Order)
    if search:
        pattern = f"%{search}%"
        query = query.outerjoin(Customer, Order.customer_id == Customer.id).where(
            or_(
                Order.order_number.ilike(pattern),
                Customer.first_name.ilike(pattern),
                Customer.last_name.ilike(pattern),
                Customer.email.ilike(pattern),
                Customer.phone.ilike(pattern),
            )
        )
    if status is not None:
        query = query.where(Order.status == status)
    if is_donation is not None:
        query = query.where(Order.is_donation.is_(is_donation))

    total = (
        await db.execute(select(func.count()).select_from(query.subquery()))
    ).scalar_one()
    result = await db.execute(
        query.options(*order_options())
        .order_by(Order.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def order_stats(db: AsyncSession) -> dict:
    rows = await db.execute(
        select(Order.status, func.count(Order.id)).group_by(Order.status)
    )
    by_status = {status.value: 0 for status in OrderStatus}
    for status, count in rows.all():
        by_status[OrderStatus(status).value] = count

    revenue = (
        await db.execute(
            select(func.coalesce(func.sum(Order.total), 0)).where(
                Order.paid_at.is_not(None)
            )
        )
    ).scalar_one()
    donation_orders = (
        await db.execute(
            select(func.count(Order.id)).where(Order.is_donation.is_(True))
        )
    ).scalar_one()

    return {
        "total_orders": sum(by_status.values()),
        "by_status": by_status,
        "revenue": to_money(revenue),
        "donation_orders": donation_orders,
    }


async def update_order(
    db: AsyncSession,
    order_id: uuid.UUID,
    *,
    status: Optional[OrderStatus] = None,
    admin_notes: Optional[str] = None,
) -> Order:
    """Admin edit of status/notes. Payment fields are never touched here."""
    order = await load_order(db, order_id)
    if status is not None and status != order.status:
        logger.info(
            "Order %s status %s -> %s by admin",
            order.order_number,
            order.status.value,
            status.value,
        )
        order.status = status
    if admin_notes is not None:
        order.admin_notes = admin_notes
    await db.commit()
    return await load_order(db, order_id)


async def dashboard_stats(db: AsyncSession) -> dict:
    async def _scalar(query):
        return (await db.execute(query)).scalar_one()

    paid = Order.paid_at.is_not(None)
    return {
        "orders_total": await _scalar(select(func.count(Order.id))),
        "orders_today": await _scalar(
            select(func.count(Order.id)).where(Order.created_at >= start_of_day())
        ),
        "orders_pending": await _scalar(
            select(func.count(Order.id)).where(Order.status == OrderStatus.PENDING)
        ),
        "revenue_total": to_money(
            await _scalar(select(func.coalesce(func.sum(Order.total), 0)).where(paid))
        ),
        "revenue_today": to_money(
            await _scalar(
                select(func.coalesce(func.sum(Order.total), 0)).where(
                    paid, Order.paid_at >= start_of_day()
                )
            )
        ),
        "products_active": await _scalar(
            select(func.count(Product.id)).where(Product.is_active.is_(True))
        ),
        "variants_low_stock": await _scalar(
            select(func.count(ProductVariant.id)).where(
                ProductVariant.is_active.is_(True),
                ProductVariant.stock <= LOW_STOCK_THRESHOLD,
            )
        ),
        "donations_total": to_money(
            await _scalar(
                select(func.coalesce(func.sum(Donation.value), 0)).where(
                    Donation.status == DonationStatus.COMPLETED
                )
            )
        ),
        "notifications_unread": await _scalar(
            select(func.count(AdminNotification.id)).where(
                AdminNotification.read_at.is_(None)
            )
        ),
    }
