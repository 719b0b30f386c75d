"""
PayPal Orders v2 client.

Provides async methods for:
- OAuth client-credentials token (cached below its real lifetime)
- Creating CAPTURE-intent orders for store orders and donations
- Capturing an approved order
"""

import asyncio
import time
from typing import Any, Optional

import httpx
from libs.common.config import get_settings
from libs.common.currency import format_amount
from libs.common.logging import get_logger
from services.store_service.errors import PaymentGatewayError
from services.store_service.gateways.base import (
    CheckoutSession,
    PaymentGateway,
    PaymentOutcome,
)
from services.store_service.models import Donation, Order, PaymentMethod, PaymentStatus

logger = get_logger(__name__)

# Refresh at least this long before PayPal's own expiry
TOKEN_EXPIRY_MARGIN_SECONDS = 60

APPROVAL_RELS = ("approve", "payer-action")


class PayPalClient(PaymentGateway):
    """Async client for PayPal Checkout (Orders v2)."""

    method = PaymentMethod.PAYPAL

    def __init__(
        self,
        client_id: Optional[str] = None,
        secret: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.client_id = client_id or settings.PAYPAL_CLIENT_ID
        self.secret = secret or settings.PAYPAL_SECRET
        if not self.client_id or not self.secret:
            raise ValueError("PAYPAL_CLIENT_ID and PAYPAL_SECRET are required")
        self.base_url = (base_url or settings.PAYPAL_BASE_URL).rstrip("/")
        self.site_url = settings.SITE_URL.rstrip("/")
        self.currency = settings.CURRENCY.upper()
        self.token_ttl = settings.PAYPAL_TOKEN_TTL_SECONDS
        self._transport = transport

        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, timeout=30.0, transport=self._transport
        )

    # =========================================================================
    # Auth
    # =========================================================================

    async def get_access_token(self) -> str:
        """Return a cached bearer token, fetching a new one when it has aged out."""
        async with self._token_lock:
            if self._token and time.monotonic() < self._token_expires_at:
                return self._token

            async with self._client() as client:
                response = await client.post(
                    "/v1/oauth2/token",
                    data={"grant_type": "client_credentials"},
                    auth=(self.client_id, self.secret),
                )
            if not response.is_success:
                logger.error(
                    "PayPal token request failed: %s - %s",
                    response.status_code,
                    response.text,
                )
                raise PaymentGatewayError(
                    "Unable to authenticate with PayPal",
                    gateway_status=response.status_code,
                )

            data = response.json()
            expires_in = int(data.get("expires_in") or 0)
            ttl = min(self.token_ttl, max(expires_in - TOKEN_EXPIRY_MARGIN_SECONDS, 0))
            self._token = data["access_token"]
            self._token_expires_at = time.monotonic() + ttl
            return self._token

    async def _request(
        self, method: str, endpoint: str, json_data: Optional[dict] = None
    ) -> dict:
        token = await self.get_access_token()
        async with self._client() as client:
            response = await client.request(
                method,
                endpoint,
                json=json_data,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json",
                },
            )

        data = response.json() if response.content else {}
        if not response.is_success:
            logger.error("PayPal API error: %s - %s", response.status_code, data)
            raise PaymentGatewayError(
                data.get("message", "PayPal request failed"),
                gateway_status=response.status_code,
                response_data=data,
            )
        return data

    # =========================================================================
    # Orders
    # =========================================================================

    def _order_payload(self, reference_id: str, custom_id: str, amount) -> dict:
        return {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": reference_id,
                    "custom_id": custom_id,
                    "amount": {
                        "currency_code": self.currency,
                        "value": format_amount(amount),
                    },
                }
            ],
            "application_context": {
                "shipping_preference": "NO_SHIPPING",
                "user_action": "PAY_NOW",
                "return_url": f"{self.site_url}/store/payment/paypal/return",
                "cancel_url": f"{self.site_url}/store/payment/cancel",
            },
        }

    async def create_order(self, reference_id: str, custom_id: str, amount) -> dict:
        return await self._request(
            "POST",
            "/v2/checkout/orders",
            self._order_payload(reference_id, custom_id, amount),
        )

    async def capture_order(self, paypal_order_id: str) -> dict:
        return await self._request(
            "POST", f"/v2/checkout/orders/{paypal_order_id}/capture"
        )

    @staticmethod
    def approval_link(data: dict) -> str:
        for link in data.get("links") or []:
            if link.get("rel") in APPROVAL_RELS:
                return link["href"]
        raise PaymentGatewayError("PayPal response has no approval link", response_data=data)

    # =========================================================================
    # Contract
    # =========================================================================

    async def create_session(self, order: Order) -> CheckoutSession:
        data = await self.create_order(
            str(order.id), "donation" if order.is_donation else "purchase", order.total
        )
        logger.info("PayPal order %s opened for order %s", data.get("id"), order.order_number)
        return CheckoutSession(session_id=data["id"], redirect_url=self.approval_link(data))

    async def create_donation_session(self, donation: Donation) -> CheckoutSession:
        data = await self.create_order(str(donation.id), "donation", donation.value)
        return CheckoutSession(session_id=data["id"], redirect_url=self.approval_link(data))

    async def verify(self, token: str) -> PaymentOutcome:
        """Capture the approved PayPal order identified by ``token``."""
        data = await self.capture_order(token)
        unit = (data.get("purchase_units") or [{}])[0]
        captures = (unit.get("payments") or {}).get("captures") or []
        capture = captures[0] if captures else {}

        custom_id = unit.get("custom_id") or capture.get("custom_id")
        reference_id = unit.get("reference_id")
        metadata: dict[str, Any] = {"reference_id": reference_id, "custom_id": custom_id}

        return PaymentOutcome(
            status=self.map_status(data.get("status")),
            gateway_payment_id=data.get("id", token),
            payment_intent_id=capture.get("id"),
            currency=((capture.get("amount") or {}).get("currency_code") or "").lower()
            or None,
            metadata=metadata,
            raw=data,
        )

    @staticmethod
    def map_status(raw: Any) -> PaymentStatus:
        status = (raw or "").upper() if isinstance(raw, str) else ""
        if status == "COMPLETED":
            return PaymentStatus.COMPLETED
        if status in ("VOIDED", "DECLINED"):
            return PaymentStatus.FAILED
        if status in ("REFUNDED", "PARTIALLY_REFUNDED"):
            return PaymentStatus.REFUNDED
        return PaymentStatus.PENDING
