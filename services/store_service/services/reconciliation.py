"""Order and donation payment reconciliation.

Shared by the Stripe webhook, the browser success redirect and the PayPal
capture, so whichever path lands first applies the effects and the others
find ``paid_at`` already set.

None of these functions commit: the caller commits once so the ledger update
(webhook) or the response (redirect) sees all or nothing.

Stock policy: a line whose stock cannot cover the ordered quantity is not
decremented. The payment is still honoured; the line is recorded in
``Order.stock_shortfalls`` and carried in the admin notification so staff can
backorder or refund it.
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.store_service.models import (
    Donation,
    DonationStatus,
    Order,
    OrderItem,
    OrderStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
    Product,
    ProductVariant,
)
from services.store_service.services.cart_service import delete_customer_carts
from services.store_service.services.notification_service import (
    create_donation_notification,
    create_order_notification,
    create_payment_notification,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)


@dataclass
class ReconciliationResult:
    applied: bool
    order_id: Optional[uuid.UUID] = None
    shortfalls: list[dict] = field(default_factory=list)
    carts_cleared: int = 0


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def lock_order(db: AsyncSession, order_id: uuid.UUID) -> Optional[Order]:
    """Load an order with ``SELECT ... FOR UPDATE`` and fresh attribute values."""
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .options(selectinload(Order.items), selectinload(Order.customer))
        .with_for_update(of=Order)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def find_order(
    db: AsyncSession,
    *,
    order_id: Optional[uuid.UUID] = None,
    session_id: Optional[str] = None,
    payment_intent_id: Optional[str] = None,
) -> Optional[Order]:
    """Order by embedded id, falling back to the stored gateway session/intent id."""
    if order_id is not None:
        order = await db.get(Order, order_id)
        if order is not None:
            return order
    if session_id:
        result = await db.execute(select(Order).where(Order.payment_id == session_id))
        order = result.scalars().first()
        if order is not None:
            return order
    if payment_intent_id:
        result = await db.execute(
            select(Order).where(Order.payment_intent_id == payment_intent_id)
        )
        return result.scalars().first()
    return None


async def find_donation(
    db: AsyncSession,
    *,
    donation_id: Optional[uuid.UUID] = None,
    session_id: Optional[str] = None,
) -> Optional[Donation]:
    if donation_id is not None:
        donation = await db.get(Donation, donation_id)
        if donation is not None:
            return donation
    if session_id:
        result = await db.execute(
            select(Donation).where(Donation.payment_id == session_id)
        )
        return result.scalars().first()
    return None


# ---------------------------------------------------------------------------
# Stock
# ---------------------------------------------------------------------------


async def _decrement_stock(
    db: AsyncSession, order: Order, item: OrderItem
) -> Optional[dict]:
    """
    Decrement the variant (or product) row of one line under a row lock.

    Returns a shortfall record instead of raising when the row is gone or its
    stock cannot cover the quantity. Donatable products without a variant are
    always available and are left untouched.
    """
    if item.variant_id is not None:
        model, row_id = ProductVariant, item.variant_id
    elif item.product_id is not None:
        model, row_id = Product, item.product_id
    else:
        model, row_id = None, None

    row = None
    if model is not None:
        result = await db.execute(
            select(model)
            .where(model.id == row_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()

    if model is Product and row is not None and row.is_donatable:
        logger.info(
            "Donatable line %s on order %s keeps its stock",
            item.product_name,
            order.order_number,
        )
        return None

    if row is None or row.stock < item.quantity:
        available = row.stock if row is not None else 0
        logger.warning(
            "Insufficient stock for %s on order %s: wanted %d, have %d",
            item.sku or item.product_name,
            order.order_number,
            item.quantity,
            available,
            extra={"extra_fields": {
                "order_id": str(order.id),
                "order_item_id": str(item.id),
                "variant_id": str(item.variant_id) if item.variant_id else None,
                "product_id": str(item.product_id) if item.product_id else None,
                "requested": item.quantity,
                "available": available,
            }},
        )
        return {
            "order_item_id": str(item.id),
            "product_name": item.product_name,
            "sku": item.sku,
            "requested": item.quantity,
            "available": available,
        }

    row.stock -= item.quantity
    logger.info(
        "Stock decremented for %s by %d (now %d)",
        item.sku or item.product_name,
        item.quantity,
        row.stock,
    )
    return None


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


async def _complete_payment_row(
    db: AsyncSession,
    order: Order,
    gateway: PaymentMethod,
    gateway_payment_id: Optional[str],
) -> Payment:
    result = await db.execute(
        select(Payment).where(
            Payment.order_id == order.id,
            Payment.gateway == gateway,
            Payment.gateway_payment_id == gateway_payment_id,
        )
    )
    payment = result.scalars().first()
    if payment is None:
        payment = Payment(
            order_id=order.id,
            gateway=gateway,
            gateway_payment_id=gateway_payment_id,
            amount=order.total,
            currency=order.currency,
        )
        db.add(payment)
    payment.status = PaymentStatus.COMPLETED
    return payment


async def mark_order_paid(
    db: AsyncSession,
    order_id: uuid.UUID,
    *,
    session_id: Optional[str] = None,
    payment_intent_id: Optional[str] = None,
    currency: Optional[str] = None,
    gateway: PaymentMethod = PaymentMethod.STRIPE,
) -> ReconciliationResult:
    """
    Record a confirmed payment: mark the order paid, decrement stock, clear the
    buyer's carts and notify admins.

    A no-op when the order is missing or already carries ``paid_at``.
    """
    order = await lock_order(db, order_id)
    if order is None:
        logger.warning("Paid order %s not found", order_id)
        return ReconciliationResult(applied=False)

    if order.paid_at is not None:
        logger.info(
            "Order %s already paid at %s; skipping", order.order_number, order.paid_at
        )
        return ReconciliationResult(applied=False, order_id=order.id)

    order.paid_at = utc_now()
    order.status = OrderStatus.PROCESSING
    order.payment_method = gateway
    order.payment_error_message = None
    if session_id:
        order.payment_id = session_id
    if payment_intent_id:
        order.payment_intent_id = payment_intent_id
    if currency:
        order.currency = currency.lower()

    await _complete_payment_row(db, order, gateway, session_id or order.payment_id)

    shortfalls = []
    for item in order.items:
        shortfall = await _decrement_stock(db, order, item)
        if shortfall is not None:
            shortfalls.append(shortfall)
    order.stock_shortfalls = shortfalls or None

    carts_cleared = 0
    if order.customer_id is not None:
        carts_cleared = await delete_customer_carts(db, order.customer_id)

    await create_order_notification(db, order)
    await db.flush()

    logger.info(
        "Order %s marked paid via %s",
        order.order_number,
        gateway.value,
        extra={"extra_fields": {
            "order_id": str(order.id),
            "session_id": session_id,
            "payment_intent_id": payment_intent_id,
            "shortfalls": len(shortfalls),
            "carts_cleared": carts_cleared,
        }},
    )
    return ReconciliationResult(
        applied=True,
        order_id=order.id,
        shortfalls=shortfalls,
        carts_cleared=carts_cleared,
    )


def _is_superseded(
    order: Order, session_id: Optional[str], payment_intent_id: Optional[str]
) -> bool:
    if session_id and order.payment_id:
        return session_id != order.payment_id
    if payment_intent_id and order.payment_intent_id:
        return payment_intent_id != order.payment_intent_id
    return False


async def mark_order_failed(
    db: AsyncSession,
    order_id: uuid.UUID,
    *,
    error_message: Optional[str] = None,
    session_id: Optional[str] = None,
    payment_intent_id: Optional[str] = None,
    gateway: PaymentMethod = PaymentMethod.STRIPE,
) -> bool:
    """
    Flag an unpaid order's payment as failed. Stock and carts are untouched so
    the customer can retry. Returns False when nothing changed.

    Failures reported for a session or intent other than the order's current
    one are ignored: ``retry_payment`` may already have opened a new session.
    """
    order = await lock_order(db, order_id)
    if order is None:
        return False
    if order.paid_at is not None:
        logger.info(
            "Ignoring payment failure for already paid order %s", order.order_number
        )
        return False
    if _is_superseded(order, session_id, payment_intent_id):
        logger.info(
            "Ignoring payment failure for superseded session %s on order %s",
            session_id or payment_intent_id,
            order.order_number,
        )
        return False

    order.status = OrderStatus.FAILED
    order.payment_error_message = error_message or "Payment failed"
    order.payment_failed_at = utc_now()

    result = await db.execute(
        select(Payment).where(
            Payment.order_id == order.id,
            Payment.status == PaymentStatus.PENDING,
        )
    )
    for payment in result.scalars().all():
        if session_id is None or payment.gateway_payment_id == session_id:
            payment.status = PaymentStatus.FAILED
            payment.error_message = order.payment_error_message

    await create_payment_notification(db, order, failed=True)
    await db.flush()
    logger.warning(
        "Order %s payment failed: %s", order.order_number, order.payment_error_message
    )
    return True


# ---------------------------------------------------------------------------
# Donations
# ---------------------------------------------------------------------------


async def _lock_donation(db: AsyncSession, donation_id: uuid.UUID) -> Optional[Donation]:
    result = await db.execute(
        select(Donation)
        .where(Donation.id == donation_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def mark_donation_paid(
    db: AsyncSession,
    donation_id: uuid.UUID,
    *,
    session_id: Optional[str] = None,
    payment_intent_id: Optional[str] = None,
    gateway: PaymentMethod = PaymentMethod.STRIPE,
) -> bool:
    donation = await _lock_donation(db, donation_id)
    if donation is None:
        logger.warning("Paid donation %s not found", donation_id)
        return False
    if donation.paid_at is not None or donation.status == DonationStatus.COMPLETED:
        logger.info("Donation %s already completed; skipping", donation.id)
        return False

    donation.status = DonationStatus.COMPLETED
    donation.paid_at = utc_now()
    donation.payment_method = gateway
    if session_id:
        donation.payment_id = session_id
    if payment_intent_id:
        donation.payment_intent_id = payment_intent_id

    await create_donation_notification(db, donation)
    await db.flush()
    logger.info("Donation %s of %s completed", donation.id, donation.value)
    return True


async def mark_donation_failed(db: AsyncSession, donation_id: uuid.UUID) -> bool:
    donation = await _lock_donation(db, donation_id)
    if donation is None or donation.paid_at is not None:
        return False
    donation.status = DonationStatus.FAILED
    await db.flush()
    return True
