"""Stripe webhook verification, parsing and the idempotency ledger.

Ledger states per event id: received -> applying -> applied, or failed when
applying raised (Stripe redelivers, and a failed row is retried).
"""

import json
import uuid
from dataclasses import dataclass
from typing import Any, Optional, Union

import stripe
from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.store_service.errors import (
    WebhookProcessingError,
    WebhookVerificationError,
)
from services.store_service.models import (
    PaymentMethod,
    StripeWebhookEvent,
    WebhookEventStatus,
)
from services.store_service.services import reconciliation
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

PAID_EVENTS = frozenset(
    {
        "checkout.session.completed",
        "checkout.session.async_payment_succeeded",
        "payment_intent.succeeded",
    }
)
FAILED_EVENTS = frozenset(
    {
        "payment_intent.payment_failed",
        "checkout.session.async_payment_failed",
        "checkout.session.expired",
    }
)
# checkout.session.completed fires before delayed methods settle
SETTLED_PAYMENT_STATUSES = frozenset({"paid", "no_payment_required"})
IGNORED_DETAILS = frozenset({"unhandled", "order not found", "donation not found"})


# ---------------------------------------------------------------------------
# Parsed events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OrderPaymentEvent:
    event_id: str
    event_type: str
    order_id: Optional[uuid.UUID]
    session_id: Optional[str]
    payment_intent_id: Optional[str]
    currency: Optional[str]


@dataclass(frozen=True)
class DonationPaymentEvent:
    event_id: str
    event_type: str
    donation_id: Optional[uuid.UUID]
    session_id: Optional[str]
    payment_intent_id: Optional[str]


@dataclass(frozen=True)
class PaymentFailedEvent:
    event_id: str
    event_type: str
    is_donation: bool
    target_id: Optional[uuid.UUID]
    session_id: Optional[str]
    payment_intent_id: Optional[str]
    error_message: Optional[str]


@dataclass(frozen=True)
class UnknownEvent:
    event_id: str
    event_type: str


StripeEvent = Union[OrderPaymentEvent, DonationPaymentEvent, PaymentFailedEvent, UnknownEvent]


@dataclass
class WebhookResult:
    status: str  # processed | duplicate | ignored
    event_id: str
    event_type: str
    detail: Optional[str] = None


def _parse_uuid(value: Any) -> Optional[uuid.UUID]:
    if not value:
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _is_donation(metadata: dict) -> bool:
    return metadata.get("type") == "donation" or bool(metadata.get("donation_id"))


def _ids(event_type: str, obj: dict) -> tuple[Optional[str], Optional[str]]:
    """(checkout session id, payment intent id) for a session or intent object."""
    if event_type.startswith("payment_intent."):
        return None, obj.get("id")
    payment_intent = obj.get("payment_intent")
    if isinstance(payment_intent, dict):
        payment_intent = payment_intent.get("id")
    return obj.get("id"), payment_intent


def parse_event(payload: dict) -> StripeEvent:
    """Turn a verified event payload into a tagged event. Raises on bad shape."""
    event_id = payload.get("id")
    event_type = payload.get("type")
    obj = (payload.get("data") or {}).get("object")
    if not isinstance(event_id, str) or not isinstance(event_type, str):
        raise WebhookVerificationError("Invalid payload: missing event id or type")
    if not isinstance(obj, dict):
        raise WebhookVerificationError("Invalid payload: missing data.object")

    metadata = obj.get("metadata") or {}
    if not isinstance(metadata, dict):
        metadata = {}
    session_id, payment_intent_id = _ids(event_type, obj)

    if event_type in PAID_EVENTS:
        if (
            event_type == "checkout.session.completed"
            and obj.get("payment_status") not in SETTLED_PAYMENT_STATUSES
        ):
            return UnknownEvent(event_id, event_type)
        if _is_donation(metadata):
            return DonationPaymentEvent(
                event_id=event_id,
                event_type=event_type,
                donation_id=_parse_uuid(metadata.get("donation_id")),
                session_id=session_id,
                payment_intent_id=payment_intent_id,
            )
        return OrderPaymentEvent(
            event_id=event_id,
            event_type=event_type,
            order_id=_parse_uuid(metadata.get("order_id")),
            session_id=session_id,
            payment_intent_id=payment_intent_id,
            currency=obj.get("currency"),
        )

    if event_type in FAILED_EVENTS:
        donation = _is_donation(metadata)
        error = (obj.get("last_payment_error") or {}).get("message")
        if error is None and event_type == "checkout.session.expired":
            error = "Checkout session expired"
        return PaymentFailedEvent(
            event_id=event_id,
            event_type=event_type,
            is_donation=donation,
            target_id=_parse_uuid(
                metadata.get("donation_id" if donation else "order_id")
            ),
            session_id=session_id,
            payment_intent_id=payment_intent_id,
            error_message=error,
        )

    return UnknownEvent(event_id, event_type)


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


def verify_and_decode(payload: bytes, signature: Optional[str]) -> dict:
    """Check the ``Stripe-Signature`` header and decode the body."""
    settings = get_settings()
    secret = settings.STRIPE_WEBHOOK_SECRET
    if not secret:
        logger.error("STRIPE_WEBHOOK_SECRET is not configured; rejecting webhook")
        raise WebhookVerificationError("Webhook secret not configured")
    if not signature:
        raise WebhookVerificationError("Missing signature")

    try:
        body = payload.decode("utf-8")
    except UnicodeDecodeError:
        raise WebhookVerificationError("Invalid payload")

    try:
        stripe.WebhookSignature.verify_header(
            body, signature, secret, settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS
        )
    except stripe.SignatureVerificationError as e:
        logger.warning("Stripe webhook: invalid signature - %s", e)
        raise WebhookVerificationError("Invalid signature")

    try:
        data = json.loads(body)
    except ValueError as e:
        logger.warning("Stripe webhook: invalid payload - %s", e)
        raise WebhookVerificationError("Invalid payload")
    if not isinstance(data, dict):
        raise WebhookVerificationError("Invalid payload")
    return data


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


async def _get_ledger_row(db: AsyncSession, event_id: str) -> Optional[StripeWebhookEvent]:
    result = await db.execute(
        select(StripeWebhookEvent)
        .where(StripeWebhookEvent.event_id == event_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def record_event(db: AsyncSession, payload: dict) -> StripeWebhookEvent:
    """Persist (and commit) the raw event before any effect is applied."""
    event_id = payload["id"]
    row = await _get_ledger_row(db, event_id)
    if row is not None:
        return row

    row = StripeWebhookEvent(event_id=event_id, type=payload["type"], payload=payload)
    db.add(row)
    try:
        await db.commit()
    except IntegrityError:
        # A concurrent delivery inserted it first
        await db.rollback()
        row = await _get_ledger_row(db, event_id)
        if row is None:
            raise
    return row


async def _apply(db: AsyncSession, event: StripeEvent) -> str:
    if isinstance(event, OrderPaymentEvent):
        order = await reconciliation.find_order(
            db,
            order_id=event.order_id,
            session_id=event.session_id,
            payment_intent_id=event.payment_intent_id,
        )
        if order is None:
            logger.warning(
                "Stripe %s: no order for session %s",
                event.event_type,
                event.session_id or event.payment_intent_id,
                extra={"extra_fields": {"event_id": event.event_id}},
            )
            return "order not found"
        result = await reconciliation.mark_order_paid(
            db,
            order.id,
            session_id=event.session_id,
            payment_intent_id=event.payment_intent_id,
            currency=event.currency,
            gateway=PaymentMethod.STRIPE,
        )
        return "order paid" if result.applied else "order already paid"

    if isinstance(event, DonationPaymentEvent):
        donation = await reconciliation.find_donation(
            db, donation_id=event.donation_id, session_id=event.session_id
        )
        if donation is None:
            logger.warning(
                "Stripe %s: donation not found",
                event.event_type,
                extra={"extra_fields": {
                    "event_id": event.event_id,
                    "donation_id": str(event.donation_id) if event.donation_id else None,
                }},
            )
            return "donation not found"
        applied = await reconciliation.mark_donation_paid(
            db,
            donation.id,
            session_id=event.session_id,
            payment_intent_id=event.payment_intent_id,
        )
        return "donation paid" if applied else "donation already paid"

    if isinstance(event, PaymentFailedEvent):
        if event.is_donation:
            donation = await reconciliation.find_donation(
                db, donation_id=event.target_id, session_id=event.session_id
            )
            if donation is None:
                return "donation not found"
            await reconciliation.mark_donation_failed(db, donation.id)
            return "donation failed"

        order = await reconciliation.find_order(
            db,
            order_id=event.target_id,
            session_id=event.session_id,
            payment_intent_id=event.payment_intent_id,
        )
        if order is None:
            logger.warning(
                "Stripe %s: order not found for %s",
                event.event_type,
                event.session_id or event.payment_intent_id,
            )
            return "order not found"
        failed = await reconciliation.mark_order_failed(
            db,
            order.id,
            error_message=event.error_message,
            session_id=event.session_id,
            payment_intent_id=event.payment_intent_id,
        )
        return "order failed" if failed else "order failure skipped"

    logger.info("Stripe webhook: unhandled event %s", event.event_type)
    return "unhandled"


async def handle_stripe_webhook(
    db: AsyncSession, payload: bytes, signature: Optional[str]
) -> WebhookResult:
    """
    Verify, deduplicate and apply one Stripe delivery.

    Raises :class:`WebhookVerificationError` before any write on a bad
    signature or body, and :class:`WebhookProcessingError` when effects could
    not be applied (everything rolled back, ledger row left ``failed``).
    """
    data = verify_and_decode(payload, signature)
    event = parse_event(data)

    existing = await _get_ledger_row(db, event.event_id)
    if existing is not None and existing.is_processed:
        logger.info("Stripe event %s already processed", event.event_id)
        return WebhookResult("duplicate", event.event_id, event.event_type)

    row = existing or await record_event(db, data)
    if row.is_processed:
        return WebhookResult("duplicate", event.event_id, event.event_type)

    row.status = WebhookEventStatus.APPLYING
    row.attempts = (row.attempts or 0) + 1
    await db.commit()

    try:
        detail = await _apply(db, event)
        row.status = WebhookEventStatus.APPLIED
        row.processed_at = utc_now()
        row.last_error = None
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception(
            "Stripe webhook handling error for %s", event.event_id,
            extra={"extra_fields": {"event_type": event.event_type}},
        )
        row = await _get_ledger_row(db, event.event_id)
        if row is not None:
            row.status = WebhookEventStatus.FAILED
            row.last_error = f"{type(e).__name__}: {e}"[:2000]
            await db.commit()
        raise WebhookProcessingError("Webhook handler error") from e

    status = "ignored" if detail in IGNORED_DETAILS else "processed"
    return WebhookResult(status, event.event_id, event.event_type, detail)
