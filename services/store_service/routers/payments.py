"""Payment callbacks: Stripe webhook, browser return pages and PayPal capture."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from libs.common.logging import get_logger
from libs.common.rate_limit import payment_limit
from libs.db.session import get_async_db
from services.store_service.gateways import (
    PaymentGateway,
    get_paypal_gateway,
    get_stripe_gateway,
)
from services.store_service.models import (
    Donation,
    Order,
    PaymentMethod,
    PaymentStatus,
)
from services.store_service.schemas import PaymentStatusResponse, WebhookAck
from services.store_service.services import reconciliation, webhook_service
from services.store_service.services.order_service import get_order_by_payment_id
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store-payments"])
logger = get_logger(__name__)


def _order_status(order: Order) -> PaymentStatusResponse:
    return PaymentStatusResponse(
        order_number=order.order_number,
        status=order.status.value,
        paid=order.paid_at is not None,
        total=order.total,
    )


def _donation_status(donation: Donation) -> PaymentStatusResponse:
    return PaymentStatusResponse(
        donation_id=donation.id,
        status=donation.status.value,
        paid=donation.paid_at is not None,
        total=donation.value,
    )


async def _donation_by_payment_id(db: AsyncSession, payment_id: str) -> Optional[Donation]:
    result = await db.execute(select(Donation).where(Donation.payment_id == payment_id))
    return result.scalars().first()


# ============================================================================
# STRIPE WEBHOOK
# ============================================================================


@router.post("/webhooks/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Stripe webhook endpoint (no auth; verified by Stripe-Signature).

    400 on a bad signature or body, 500 when effects could not be applied so
    Stripe redelivers, 200 otherwise (including duplicates and unknown types).
    """
    payload = await request.body()
    result = await webhook_service.handle_stripe_webhook(db, payload, stripe_signature)
    return WebhookAck(status=result.status, event_id=result.event_id)


# ============================================================================
# BROWSER RETURN PAGES
# ============================================================================


@router.get("/payment/success", response_model=PaymentStatusResponse)
async def payment_success(
    session_id: str = Query(..., min_length=1),
    gateway: PaymentGateway = Depends(get_stripe_gateway),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Stripe success redirect.

    Verifies the session with Stripe and applies the same reconciliation as the
    webhook; whichever lands second finds ``paid_at`` set and changes nothing.
    """
    order = await get_order_by_payment_id(db, session_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")

    if order.paid_at is None:
        outcome = await gateway.verify(session_id)
        if outcome.is_completed:
            await reconciliation.mark_order_paid(
                db,
                order.id,
                session_id=session_id,
                payment_intent_id=outcome.payment_intent_id,
                currency=outcome.currency,
                gateway=PaymentMethod.STRIPE,
            )
            await db.commit()
        else:
            logger.info(
                "Success page for order %s but Stripe reports %s",
                order.order_number,
                outcome.status.value,
            )
        order = await get_order_by_payment_id(db, session_id)

    return _order_status(order)


@router.get("/payment/cancel", response_model=PaymentStatusResponse)
async def payment_cancel(
    order: Optional[str] = Query(None, description="Order number"),
    session_id: Optional[str] = Query(None),
    token: Optional[str] = Query(None, description="PayPal order id"),
    db: AsyncSession = Depends(get_async_db),
):
    """Cancel page; the order stays pending so it can be retried."""
    if order:
        result = await db.execute(select(Order).where(Order.order_number == order))
        found = result.scalar_one_or_none()
        if found is not None:
            return _order_status(found)
    payment_id = session_id or token
    if not payment_id:
        raise HTTPException(status_code=404, detail="Payment not found")
    found = await get_order_by_payment_id(db, payment_id)
    if found is not None:
        return _order_status(found)
    donation = await _donation_by_payment_id(db, payment_id)
    if donation is not None:
        return _donation_status(donation)
    raise HTTPException(status_code=404, detail="Payment not found")


# ============================================================================
# PAYPAL
# ============================================================================


@router.get("/payment/paypal/return", response_model=PaymentStatusResponse)
@payment_limit
async def paypal_return(
    request: Request,
    token: str = Query(..., min_length=1, description="PayPal order id"),
    gateway: PaymentGateway = Depends(get_paypal_gateway),
    db: AsyncSession = Depends(get_async_db),
):
    """Capture an approved PayPal order and reconcile it."""
    order = await get_order_by_payment_id(db, token)
    donation = None if order is not None else await _donation_by_payment_id(db, token)
    if order is None and donation is None:
        raise HTTPException(status_code=404, detail="Payment not found")

    if order is not None and order.paid_at is not None:
        return _order_status(order)
    if donation is not None and donation.paid_at is not None:
        return _donation_status(donation)

    outcome = await gateway.verify(token)
    if order is not None:
        if outcome.is_completed:
            await reconciliation.mark_order_paid(
                db,
                order.id,
                session_id=token,
                payment_intent_id=outcome.payment_intent_id,
                currency=outcome.currency,
                gateway=PaymentMethod.PAYPAL,
            )
        elif outcome.status == PaymentStatus.FAILED:
            await reconciliation.mark_order_failed(
                db,
                order.id,
                error_message="PayPal payment was not completed",
                session_id=token,
                gateway=PaymentMethod.PAYPAL,
            )
        await db.commit()
        return _order_status(await get_order_by_payment_id(db, token))

    if outcome.is_completed:
        await reconciliation.mark_donation_paid(
            db,
            donation.id,
            session_id=token,
            payment_intent_id=outcome.payment_intent_id,
            gateway=PaymentMethod.PAYPAL,
        )
    elif outcome.status == PaymentStatus.FAILED:
        await reconciliation.mark_donation_failed(db, donation.id)
    await db.commit()
    await db.refresh(donation)
    return _donation_status(donation)
