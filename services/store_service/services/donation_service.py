"""Standalone donations: creation through a gateway plus back-office queries."""

import uuid
from decimal import Decimal
from typing import Iterable, Optional

from libs.common.config import get_settings
from libs.common.currency import to_money
from libs.common.logging import get_logger
from services.store_service.errors import (
    CheckoutError,
    DonationsDisabledError,
    NotFoundError,
    StoreError,
)
from services.store_service.gateways import CheckoutSession, PaymentGateway
from services.store_service.models import Donation, DonationStatus
from services.store_service.schemas import DonationCreate
from services.store_service.services.settings_store import get_donation_settings
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def create_donation(
    db: AsyncSession, request: DonationCreate, gateway: PaymentGateway
) -> tuple[Donation, CheckoutSession]:
    """Create a pending donation and open a gateway session for it."""
    config = await get_donation_settings(db)
    if not config["donation_enable"]:
        raise DonationsDisabledError("Donations are currently disabled")

    minimum = to_money(config["donation_min_amount"] or 0)
    value = to_money(request.value)
    if value < minimum:
        raise StoreError(f"Minimum donation amount is ${minimum:.2f}")

    donation = Donation(
        name=request.name,
        phone=request.phone,
        email=request.email,
        value=value,
        currency=get_settings().CURRENCY.lower(),
        message=request.message,
        status=DonationStatus.PENDING,
        payment_method=gateway.method,
    )
    db.add(donation)
    await db.commit()

    try:
        session = await gateway.create_donation_session(donation)
    except Exception as e:
        logger.exception("%s donation session failed; discarding donation", gateway.name)
        await db.delete(donation)
        await db.commit()
        raise CheckoutError("Payment processing failed. Please try again.") from e

    donation.payment_id = session.session_id
    donation.payment_intent_id = session.payment_intent_id
    await db.commit()
    logger.info("Donation %s of %s awaiting payment", donation.id, donation.value)
    return donation, session


async def get_donation_by_session(db: AsyncSession, session_id: str) -> Donation:
    result = await db.execute(select(Donation).where(Donation.payment_id == session_id))
    donation = result.scalars().first()
    if donation is None:
        raise NotFoundError("Donation not found")
    return donation


async def get_donation(db: AsyncSession, donation_id: uuid.UUID) -> Donation:
    donation = await db.get(Donation, donation_id)
    if donation is None:
        raise NotFoundError("Donation not found")
    return donation


async def list_donations(
    db: AsyncSession,
    *,
    status: Optional[DonationStatus] = None,
    search: Optional[str] = None,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Donation], int]:
    query = select(Donation)
    if status is not None:
        query = query.where(Donation.status == status)
    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(
                Donation.name.ilike(pattern),
                Donation.phone.ilike(pattern),
                Donation.email.ilike(pattern),
                Donation.message.ilike(pattern),
            )
        )

    total = (
        await db.execute(select(func.count()).select_from(query.subquery()))
    ).scalar_one()
    result = await db.execute(
        query.order_by(Donation.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def donation_stats(db: AsyncSession) -> dict:
    rows = await db.execute(
        select(
            Donation.status,
            func.count(Donation.id),
            func.coalesce(func.sum(Donation.value), 0),
        ).group_by(Donation.status)
    )
    counts = {status.value: 0 for status in DonationStatus}
    amounts = {status.value: Decimal("0.00") for status in DonationStatus}
    for status, count, amount in rows.all():
        key = DonationStatus(status).value
        counts[key] = count
        amounts[key] = to_money(amount)

    return {
        "total": sum(counts.values()),
        "by_status": counts,
        "amount_completed": amounts[DonationStatus.COMPLETED.value],
        "amount_pending": amounts[DonationStatus.PENDING.value],
    }


async def delete_donation(db: AsyncSession, donation_id: uuid.UUID) -> None:
    donation = await get_donation(db, donation_id)
    await db.delete(donation)
    await db.commit()


async def bulk_delete(db: AsyncSession, ids: Iterable[uuid.UUID]) -> int:
    result = await db.execute(delete(Donation).where(Donation.id.in_(list(ids))))
    await db.commit()
    return result.rowcount or 0
