"""
Stripe hosted checkout.

The stripe SDK is synchronous, so every call goes through the thread pool.
"""

from datetime import timedelta
from typing import Any, Optional

import stripe
from libs.common.config import get_settings
from libs.common.currency import to_cents
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.store_service.errors import PaymentGatewayError
from services.store_service.gateways.base import (
    CheckoutSession,
    PaymentGateway,
    PaymentOutcome,
)
from services.store_service.models import Donation, Order, PaymentMethod, PaymentStatus
from starlette.concurrency import run_in_threadpool

logger = get_logger(__name__)

SESSION_ID_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"


def _as_dict(obj: Any) -> dict:
    if obj is None:
        return {}
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


class StripeGateway(PaymentGateway):
    """Stripe Checkout Sessions (``mode=payment``)."""

    method = PaymentMethod.STRIPE

    def __init__(self, secret_key: Optional[str] = None):
        settings = get_settings()
        self.secret_key = secret_key or settings.STRIPE_SECRET_KEY
        if not self.secret_key:
            raise ValueError("STRIPE_SECRET_KEY is required")
        self.currency = settings.CURRENCY.lower()
        self.site_url = settings.SITE_URL.rstrip("/")
        self.session_ttl = timedelta(minutes=settings.STRIPE_SESSION_TTL_MINUTES)

    # =========================================================================
    # Request shaping
    # =========================================================================

    def build_line_items(self, order: Order) -> list[dict]:
        """Line items from the stored order snapshot, never from client input."""
        if order.is_donation and not order.items:
            return [self._donation_line(order.total)]

        line_items = []
        for item in order.items:
            description = ", ".join(
                part for part in (item.selected_color, item.selected_size) if part
            )
            product_data = {"name": item.product_name}
            if description:
                product_data["description"] = description
            line_items.append(
                {
                    "price_data": {
                        "currency": self.currency,
                        "product_data": product_data,
                        "unit_amount": to_cents(item.unit_price),
                    },
                    "quantity": item.quantity,
                }
            )
        if order.shipping and order.shipping > 0:
            line_items.append(
                {
                    "price_data": {
                        "currency": self.currency,
                        "product_data": {"name": "Shipping"},
                        "unit_amount": to_cents(order.shipping),
                    },
                    "quantity": 1,
                }
            )
        return line_items

    def _donation_line(self, amount) -> dict:
        return {
            "price_data": {
                "currency": self.currency,
                "product_data": {
                    "name": "Donation",
                    "description": "Thank you for supporting our cause!",
                },
                "unit_amount": to_cents(amount),
            },
            "quantity": 1,
        }

    def _expires_at(self) -> int:
        return int((utc_now() + self.session_ttl).timestamp())

    async def _create(self, params: dict) -> CheckoutSession:
        try:
            session = await run_in_threadpool(
                stripe.checkout.Session.create, api_key=self.secret_key, **params
            )
        except stripe.StripeError as e:
            logger.error("Stripe session creation failed: %s", e)
            raise PaymentGatewayError(
                f"Stripe session creation failed: {e.user_message or e}",
                gateway_status=getattr(e, "http_status", None),
            ) from e

        return CheckoutSession(
            session_id=session["id"],
            redirect_url=session["url"],
            payment_intent_id=session.get("payment_intent"),
        )

    # =========================================================================
    # Contract
    # =========================================================================

    async def create_session(self, order: Order) -> CheckoutSession:
        metadata = {
            "type": "order",
            "order_id": str(order.id),
            "customer_id": str(order.customer_id) if order.customer_id else "",
            "is_donation": "true" if order.is_donation else "false",
        }
        params = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": self.build_line_items(order),
            "success_url": f"{self.site_url}/store/payment/success?session_id={SESSION_ID_PLACEHOLDER}",
            "cancel_url": f"{self.site_url}/store/payment/cancel?order={order.order_number}",
            "metadata": metadata,
            "client_reference_id": str(order.id),
            "payment_intent_data": {"metadata": metadata},
            "expires_at": self._expires_at(),
        }
        if order.customer is not None and order.customer.email:
            params["customer_email"] = order.customer.email

        session = await self._create(params)
        logger.info(
            "Stripe session %s opened for order %s", session.session_id, order.order_number
        )
        return session

    async def create_donation_session(self, donation: Donation) -> CheckoutSession:
        metadata = {"type": "donation", "donation_id": str(donation.id)}
        params = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [self._donation_line(donation.value)],
            "success_url": f"{self.site_url}/store/donations/success?session_id={SESSION_ID_PLACEHOLDER}",
            "cancel_url": f"{self.site_url}/store/donations/cancel",
            "metadata": metadata,
            "client_reference_id": str(donation.id),
            "payment_intent_data": {"metadata": metadata},
            "expires_at": self._expires_at(),
        }
        if donation.email:
            params["customer_email"] = donation.email
        return await self._create(params)

    async def verify(self, token: str) -> PaymentOutcome:
        """Retrieve a checkout session by id."""
        try:
            session = await run_in_threadpool(
                stripe.checkout.Session.retrieve, token, api_key=self.secret_key
            )
        except stripe.StripeError as e:
            logger.error("Stripe session retrieval failed for %s: %s", token, e)
            raise PaymentGatewayError(f"Could not verify Stripe session: {e}") from e

        data = _as_dict(session)
        return PaymentOutcome(
            status=self.map_status(data),
            gateway_payment_id=data["id"],
            payment_intent_id=data.get("payment_intent"),
            currency=data.get("currency"),
            metadata=dict(data.get("metadata") or {}),
            raw=data,
        )

    @staticmethod
    def map_status(raw: Any) -> PaymentStatus:
        """Map a checkout session (``status`` + ``payment_status``)."""
        data = raw if isinstance(raw, dict) else {"payment_status": raw}
        if data.get("payment_status") == "paid":
            return PaymentStatus.COMPLETED
        if data.get("status") == "expired":
            return PaymentStatus.FAILED
        return PaymentStatus.PENDING

    async def refund(self, payment_intent_id: str) -> dict:
        try:
            refund = await run_in_threadpool(
                stripe.Refund.create,
                payment_intent=payment_intent_id,
                api_key=self.secret_key,
            )
        except stripe.StripeError as e:
            raise PaymentGatewayError(f"Stripe refund failed: {e}") from e
        return _as_dict(refund)
