"""Unit tests for the Stripe and PayPal gateway adapters.

Stripe SDK calls are monkeypatched; PayPal runs against httpx.MockTransport.
"""

import json
import uuid
from decimal import Decimal

import httpx
import pytest
import stripe
from services.store_service.errors import PaymentGatewayError
from services.store_service.gateways import (
    GATEWAYS,
    PayPalClient,
    StripeGateway,
    get_gateway,
)
from services.store_service.models import (
    Donation,
    Order,
    OrderItem,
    PaymentMethod,
    PaymentStatus,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _order(shipping="0.00", is_donation=False, items=None) -> Order:
    order = Order(
        id=uuid.uuid4(),
        order_number="ST-20260101-ABCDE",
        subtotal=Decimal("30.00"),
        shipping=Decimal(shipping),
        total=Decimal("30.00") + Decimal(shipping),
        is_donation=is_donation,
    )
    order.items = items if items is not None else [
        OrderItem(
            product_name="Logo Tee",
            selected_color="Navy",
            selected_size="M",
            quantity=2,
            unit_price=Decimal("12.50"),
            line_total=Decimal("25.00"),
        ),
        OrderItem(
            product_name="Sticker",
            quantity=1,
            unit_price=Decimal("5.00"),
            line_total=Decimal("5.00"),
        ),
    ]
    return order


class PayPalStub:
    """Minimal PayPal API: token, create order, capture."""

    def __init__(self, capture_status="COMPLETED"):
        self.capture_status = capture_status
        self.token_calls = 0
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/v1/oauth2/token":
            self.token_calls += 1
            return httpx.Response(
                200, json={"access_token": f"token-{self.token_calls}", "expires_in": 32400}
            )
        if path == "/v2/checkout/orders":
            body = json.loads(request.content)
            return httpx.Response(
                201,
                json={
                    "id": "PAYPAL-ORDER-1",
                    "status": "CREATED",
                    "purchase_units": body["purchase_units"],
                    "links": [
                        {"rel": "self", "href": "https://paypal.test/v2/checkout/orders/PAYPAL-ORDER-1"},
                        {"rel": "approve", "href": "https://paypal.test/approve/PAYPAL-ORDER-1"},
                    ],
                },
            )
        if path.endswith("/capture"):
            return httpx.Response(
                201,
                json={
                    "id": "PAYPAL-ORDER-1",
                    "status": self.capture_status,
                    "purchase_units": [
                        {
                            "reference_id": "ref-1",
                            "payments": {
                                "captures": [
                                    {
                                        "id": "CAPTURE-1",
                                        "custom_id": "purchase",
                                        "amount": {"currency_code": "USD", "value": "30.00"},
                                    }
                                ]
                            },
                        }
                    ],
                },
            )
        return httpx.Response(404, json={"message": "not found"})


# ---------------------------------------------------------------------------
# Stripe
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.parametrize(
    "session, expected",
    [
        ({"status": "complete", "payment_status": "paid"}, PaymentStatus.COMPLETED),
        ({"status": "open", "payment_status": "unpaid"}, PaymentStatus.PENDING),
        ({"status": "expired", "payment_status": "unpaid"}, PaymentStatus.FAILED),
        ("paid", PaymentStatus.COMPLETED),
        (None, PaymentStatus.PENDING),
    ],
)
def test_stripe_map_status(session, expected):
    assert StripeGateway.map_status(session) == expected


@pytest.mark.unit
def test_stripe_line_items_use_order_snapshot():
    """Amounts come from stored unit prices in cents, plus a shipping line."""
    gateway = StripeGateway(secret_key="sk_test_unit")

    line_items = gateway.build_line_items(_order(shipping="5.00"))

    assert [li["price_data"]["unit_amount"] for li in line_items] == [1250, 500, 500]
    assert [li["quantity"] for li in line_items] == [2, 1, 1]
    assert line_items[0]["price_data"]["product_data"] == {
        "name": "Logo Tee",
        "description": "Navy, M",
    }
    assert line_items[2]["price_data"]["product_data"]["name"] == "Shipping"


@pytest.mark.unit
def test_stripe_itemless_donation_order_is_one_line():
    gateway = StripeGateway(secret_key="sk_test_unit")

    line_items = gateway.build_line_items(_order(is_donation=True, items=[]))

    assert len(line_items) == 1
    assert line_items[0]["price_data"]["unit_amount"] == 3000


@pytest.mark.asyncio
@pytest.mark.unit
async def test_stripe_create_session_tags_order(monkeypatch):
    """Sessions carry the order id in metadata and the placeholder success URL."""
    captured = {}

    def _create(**params):
        captured.update(params)
        return {"id": "cs_test_created", "url": "https://checkout.stripe.test/cs", "payment_intent": None}

    monkeypatch.setattr(stripe.checkout.Session, "create", _create)
    order = _order()

    session = await StripeGateway(secret_key="sk_test_unit").create_session(order)

    assert session.session_id == "cs_test_created"
    assert session.redirect_url == "https://checkout.stripe.test/cs"
    assert captured["api_key"] == "sk_test_unit"
    assert captured["mode"] == "payment"
    assert captured["metadata"]["order_id"] == str(order.id)
    assert captured["metadata"]["type"] == "order"
    assert captured["payment_intent_data"]["metadata"] == captured["metadata"]
    assert captured["success_url"].endswith("session_id={CHECKOUT_SESSION_ID}")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_stripe_donation_session_tagged_as_donation(monkeypatch):
    captured = {}

    def _create(**params):
        captured.update(params)
        return {"id": "cs_don", "url": "https://checkout.stripe.test/don"}

    monkeypatch.setattr(stripe.checkout.Session, "create", _create)
    donation = Donation(id=uuid.uuid4(), name="Ada", value=Decimal("12.00"), email="ada@test.com")

    await StripeGateway(secret_key="sk_test_unit").create_donation_session(donation)

    assert captured["metadata"] == {"type": "donation", "donation_id": str(donation.id)}
    assert captured["line_items"][0]["price_data"]["unit_amount"] == 1200
    assert captured["customer_email"] == "ada@test.com"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_stripe_error_becomes_gateway_error(monkeypatch):
    def _create(**params):
        raise stripe.StripeError("card processing unavailable")

    monkeypatch.setattr(stripe.checkout.Session, "create", _create)

    with pytest.raises(PaymentGatewayError):
        await StripeGateway(secret_key="sk_test_unit").create_session(_order())


@pytest.mark.asyncio
@pytest.mark.unit
async def test_stripe_verify_maps_retrieved_session(monkeypatch):
    def _retrieve(session_id, **kwargs):
        return {
            "id": session_id,
            "status": "complete",
            "payment_status": "paid",
            "payment_intent": "pi_verified",
            "currency": "usd",
            "metadata": {"order_id": "abc"},
        }

    monkeypatch.setattr(stripe.checkout.Session, "retrieve", _retrieve)

    outcome = await StripeGateway(secret_key="sk_test_unit").verify("cs_test_verify")

    assert outcome.is_completed
    assert outcome.gateway_payment_id == "cs_test_verify"
    assert outcome.payment_intent_id == "pi_verified"
    assert outcome.metadata == {"order_id": "abc"}


@pytest.mark.unit
def test_stripe_requires_secret_key(monkeypatch):
    from libs.common.config import get_settings

    monkeypatch.setattr(get_settings(), "STRIPE_SECRET_KEY", "")

    with pytest.raises(ValueError):
        StripeGateway()


# ---------------------------------------------------------------------------
# PayPal
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.parametrize(
    "raw, expected",
    [
        ("COMPLETED", PaymentStatus.COMPLETED),
        ("completed", PaymentStatus.COMPLETED),
        ("APPROVED", PaymentStatus.PENDING),
        ("VOIDED", PaymentStatus.FAILED),
        ("DECLINED", PaymentStatus.FAILED),
        ("REFUNDED", PaymentStatus.REFUNDED),
        (None, PaymentStatus.PENDING),
    ],
)
def test_paypal_map_status(raw, expected):
    assert PayPalClient.map_status(raw) == expected


@pytest.mark.asyncio
@pytest.mark.unit
async def test_paypal_create_session_returns_approval_link():
    stub = PayPalStub()
    client = PayPalClient(transport=httpx.MockTransport(stub))
    order = _order(shipping="5.00")

    session = await client.create_session(order)

    assert session.session_id == "PAYPAL-ORDER-1"
    assert session.redirect_url == "https://paypal.test/approve/PAYPAL-ORDER-1"

    create_request = stub.requests[-1]
    assert create_request.headers["Authorization"] == "Bearer token-1"
    unit = json.loads(create_request.content)["purchase_units"][0]
    assert unit["reference_id"] == str(order.id)
    assert unit["custom_id"] == "purchase"
    assert unit["amount"] == {"currency_code": "USD", "value": "35.00"}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_paypal_token_is_cached():
    """Two API calls share one OAuth token."""
    stub = PayPalStub()
    client = PayPalClient(transport=httpx.MockTransport(stub))

    await client.create_order("ref-1", "purchase", Decimal("10"))
    await client.create_order("ref-2", "purchase", Decimal("20"))

    assert stub.token_calls == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_paypal_expired_token_is_refreshed():
    stub = PayPalStub()
    client = PayPalClient(transport=httpx.MockTransport(stub))

    await client.get_access_token()
    client._token_expires_at = 0.0
    token = await client.get_access_token()

    assert token == "token-2"
    assert stub.token_calls == 2


@pytest.mark.asyncio
@pytest.mark.unit
async def test_paypal_verify_captures_order():
    client = PayPalClient(transport=httpx.MockTransport(PayPalStub()))

    outcome = await client.verify("PAYPAL-ORDER-1")

    assert outcome.status == PaymentStatus.COMPLETED
    assert outcome.gateway_payment_id == "PAYPAL-ORDER-1"
    assert outcome.payment_intent_id == "CAPTURE-1"
    assert outcome.currency == "usd"
    assert outcome.metadata == {"reference_id": "ref-1", "custom_id": "purchase"}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_paypal_declined_capture_is_failed():
    client = PayPalClient(transport=httpx.MockTransport(PayPalStub("DECLINED")))

    outcome = await client.verify("PAYPAL-ORDER-1")

    assert outcome.status == PaymentStatus.FAILED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_paypal_api_error_raises_gateway_error():
    def _handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/oauth2/token":
            return httpx.Response(200, json={"access_token": "t", "expires_in": 3600})
        return httpx.Response(422, json={"message": "UNPROCESSABLE_ENTITY"})

    client = PayPalClient(transport=httpx.MockTransport(_handler))

    with pytest.raises(PaymentGatewayError) as exc_info:
        await client.create_order("ref", "purchase", Decimal("10"))

    assert exc_info.value.gateway_status == 422
    assert exc_info.value.message == "UNPROCESSABLE_ENTITY"
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
@pytest.mark.unit
async def test_paypal_auth_failure_raises_gateway_error():
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": "invalid_client"})

    client = PayPalClient(transport=httpx.MockTransport(_handler))

    with pytest.raises(PaymentGatewayError):
        await client.get_access_token()


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_registry_resolves_configured_gateways():
    assert set(GATEWAYS) == {"stripe", "paypal"}
    assert get_gateway("stripe").method == PaymentMethod.STRIPE
    assert get_gateway("PayPal").method == PaymentMethod.PAYPAL


@pytest.mark.unit
def test_registry_rejects_unknown_gateway():
    with pytest.raises(PaymentGatewayError):
        get_gateway("bitcoin")
