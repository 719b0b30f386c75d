"""Admin notification feed: creation helpers and back-office queries."""

import uuid
from typing import Any, Iterable, Optional

from libs.common.datetime_utils import days_ago, start_of_day, start_of_week, utc_now
from libs.common.logging import get_logger
from services.store_service.models import (
    AdminNotification,
    Donation,
    NotificationType,
    Order,
)
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

GUEST_NAME = "Guest Customer"


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


async def create_notification(
    db: AsyncSession,
    notification_type: NotificationType,
    title: str,
    message: str,
    data: Optional[dict[str, Any]] = None,
) -> AdminNotification:
    """Add a notification to the session. The caller owns the commit."""
    notification = AdminNotification(
        type=notification_type,
        title=title,
        message=message,
        data=data or {},
    )
    db.add(notification)
    await db.flush()
    return notification


def customer_name(order: Order) -> str:
    """Display name of the buyer; expects ``order.customer`` to be loaded."""
    customer = order.customer
    if customer is not None and customer.full_name:
        return customer.full_name
    return GUEST_NAME


async def create_order_notification(db: AsyncSession, order: Order) -> AdminNotification:
    """
    Announce a paid order (or donation order) to the back office.

    Expects ``order.items`` and ``order.customer`` to be loaded. Calling this
    twice for the same order simply produces two visible notifications.
    """
    name = customer_name(order)
    if order.is_donation:
        notification_type = NotificationType.NEW_DONATION
        title = "New Donation Received"
        label = "Donation"
    else:
        notification_type = NotificationType.NEW_ORDER
        title = "New Order Received"
        label = "Order"

    message = f"{label} #{order.order_number} for ${order.total:.2f} from {name}"
    data = {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "customer_name": name,
        "customer_id": str(order.customer_id) if order.customer_id else None,
        "total": str(order.total),
        "items_count": order.items_count,
        "order_type": "donation" if order.is_donation else "purchase",
        "status": order.status.value,
        "payment_method": order.payment_method.value,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "stock_shortfalls": order.stock_shortfalls or [],
    }

    logger.info("Creating admin notification for order %s", order.order_number)
    return await create_notification(db, notification_type, title, message, data)


async def create_donation_notification(
    db: AsyncSession, donation: Donation
) -> AdminNotification:
    message = f"Donation of ${donation.value:.2f} from {donation.name}"
    data = {
        "donation_id": str(donation.id),
        "donor_name": donation.name,
        "amount": str(donation.value),
        "message": donation.message,
        "paid_at": donation.paid_at.isoformat() if donation.paid_at else None,
    }
    return await create_notification(
        db, NotificationType.NEW_DONATION, "New Donation Received", message, data
    )


async def create_payment_notification(
    db: AsyncSession, order: Order, *, failed: bool = False
) -> AdminNotification:
    """Payment received / payment failed notice for an order."""
    name = customer_name(order)
    if failed:
        notification_type = NotificationType.PAYMENT_FAILED
        title = "Payment Failed"
        message = (
            f"Payment of ${order.total:.2f} failed for Order #{order.order_number} "
            f"from {name}"
        )
    else:
        notification_type = NotificationType.PAYMENT_RECEIVED
        title = "Payment Received"
        message = (
            f"Payment of ${order.total:.2f} received for Order #{order.order_number} "
            f"from {name}"
        )

    data = {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "customer_name": name,
        "total": str(order.total),
        "payment_method": order.payment_method.value,
        "paid_at": order.paid_at.isoformat() if order.paid_at else None,
        "error": order.payment_error_message,
    }
    return await create_notification(db, notification_type, title, message, data)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def get_unread_count(db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count(AdminNotification.id)).where(
            AdminNotification.read_at.is_(None)
        )
    )
    return result.scalar_one()


async def get_recent(db: AsyncSession, limit: int = 5) -> list[AdminNotification]:
    result = await db.execute(
        select(AdminNotification)
        .order_by(AdminNotification.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_notifications(
    db: AsyncSession,
    *,
    notification_type: Optional[NotificationType] = None,
    read: Optional[bool] = None,
    page: int = 1,
    per_page: int = 15,
) -> tuple[list[AdminNotification], int]:
    """Filtered page of notifications, newest first, plus the total match count."""
    query = select(AdminNotification)
    count_query = select(func.count(AdminNotification.id))

    filters = []
    if notification_type is not None:
        filters.append(AdminNotification.type == notification_type)
    if read is True:
        filters.append(AdminNotification.read_at.is_not(None))
    elif read is False:
        filters.append(AdminNotification.read_at.is_(None))

    for clause in filters:
        query = query.where(clause)
        count_query = count_query.where(clause)

    total = (await db.execute(count_query)).scalar_one()
    result = await db.execute(
        query.order_by(AdminNotification.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def mark_as_read(
    db: AsyncSession, notification_id: uuid.UUID
) -> Optional[AdminNotification]:
    notification = await db.get(AdminNotification, notification_id)
    if notification is None:
        return None
    if notification.read_at is None:
        notification.read_at = utc_now()
        await db.commit()
    return notification


async def mark_all_as_read(db: AsyncSession) -> int:
    result = await db.execute(
        update(AdminNotification)
        .where(AdminNotification.read_at.is_(None))
        .values(read_at=utc_now())
    )
    await db.commit()
    return result.rowcount or 0


async def bulk_mark_as_read(db: AsyncSession, ids: Iterable[uuid.UUID]) -> int:
    result = await db.execute(
        update(AdminNotification)
        .where(
            AdminNotification.id.in_(list(ids)),
            AdminNotification.read_at.is_(None),
        )
        .values(read_at=utc_now())
    )
    await db.commit()
    return result.rowcount or 0


async def delete_notification(db: AsyncSession, notification_id: uuid.UUID) -> bool:
    notification = await db.get(AdminNotification, notification_id)
    if notification is None:
        return False
    await db.delete(notification)
    await db.commit()
    return True


async def bulk_delete(db: AsyncSession, ids: Iterable[uuid.UUID]) -> int:
    result = await db.execute(
        delete(AdminNotification).where(AdminNotification.id.in_(list(ids)))
    )
    await db.commit()
    return result.rowcount or 0


async def cleanup_old(db: AsyncSession, days: int = 30) -> int:
    """Delete read notifications older than ``days``."""
    result = await db.execute(
        delete(AdminNotification).where(
            AdminNotification.read_at.is_not(None),
            AdminNotification.created_at < days_ago(days),
        )
    )
    await db.commit()
    deleted = result.rowcount or 0
    logger.info("Cleaned up %d notifications older than %d days", deleted, days)
    return deleted


async def get_stats(db: AsyncSession) -> dict[str, int]:
    async def _count(*clauses) -> int:
        query = select(func.count(AdminNotification.id))
        for clause in clauses:
            query = query.where(clause)
        return (await db.execute(query)).scalar_one()

    return {
        "total": await _count(),
        "unread": await _count(AdminNotification.read_at.is_(None)),
        "today": await _count(AdminNotification.created_at >= start_of_day()),
        "this_week": await _count(AdminNotification.created_at >= start_of_week()),
    }
