"""Donation page, donation checkout and the donation success page."""

from fastapi import APIRouter, Depends, Query, Request
from libs.common.rate_limit import payment_limit
from libs.db.session import get_async_db
from services.store_service.gateways import (
    PaymentGateway,
    get_gateway,
    get_payment_gateway,
    get_stripe_gateway,
)
from services.store_service.models import DonationStatus, PaymentMethod
from services.store_service.schemas import (
    DonationCheckoutResponse,
    DonationCreate,
    DonationPageResponse,
    DonationResponse,
)
from services.store_service.services import donation_service, reconciliation
from services.store_service.services.settings_store import get_donation_settings
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store-donations"])


@router.get("/donations/page", response_model=DonationPageResponse)
async def donation_page(db: AsyncSession = Depends(get_async_db)):
    """Donation page copy and limits."""
    return await get_donation_settings(db)


@router.post("/donations", response_model=DonationCheckoutResponse, status_code=201)
@payment_limit
async def create_donation(
    request: Request,
    donation_in: DonationCreate,
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_async_db),
):
    """Create a pending donation and return the gateway redirect."""
    if donation_in.payment_method is not None and donation_in.payment_method != gateway.method:
        gateway = get_gateway(donation_in.payment_method.value)
    donation, session = await donation_service.create_donation(db, donation_in, gateway)
    return DonationCheckoutResponse(
        donation_id=donation.id,
        redirect_url=session.redirect_url,
        session_id=session.session_id,
    )


@router.get("/donations/success", response_model=DonationResponse)
async def donation_success(
    session_id: str = Query(..., min_length=1),
    gateway: PaymentGateway = Depends(get_stripe_gateway),
    db: AsyncSession = Depends(get_async_db),
):
    """Stripe success redirect for donations; confirms the payment if still pending."""
    donation = await donation_service.get_donation_by_session(db, session_id)
    if donation.status == DonationStatus.PENDING and donation.payment_method == PaymentMethod.STRIPE:
        outcome = await gateway.verify(session_id)
        if outcome.is_completed:
            await reconciliation.mark_donation_paid(
                db,
                donation.id,
                session_id=session_id,
                payment_intent_id=outcome.payment_intent_id,
            )
            await db.commit()
            await db.refresh(donation)
    return donation
