"""Integration tests for checkout, order history, return pages and retry."""

from decimal import Decimal

import pytest
from libs.common.config import get_settings
from services.store_service.models import (
    AdminNotification,
    NotificationType,
    Order,
    OrderStatus,
)
from sqlalchemy import func, select
from tests.factories import (
    CustomerFactory,
    OrderFactory,
    ProductFactory,
    checkout_session_completed,
    signed_body,
)

CHECKOUT_FORM = {
    "first_name": "Jane",
    "last_name": "Doe",
    "phone": "+15551234567",
    "address": "1 Pool Lane",
    "city": "Lagos",
    "country": "NG",
}


async def _product(db, **overrides):
    product = ProductFactory.create(**overrides)
    db.add(product)
    await db.commit()
    return product


async def _order_by_number(db, order_number: str) -> Order:
    result = await db.execute(select(Order).where(Order.order_number == order_number))
    order = result.scalar_one()
    await db.refresh(order)
    return order


async def _checkout_one(client, product, quantity=2):
    added = await client.post(
        "/store/cart/items", json={"product_id": str(product.id), "quantity": quantity}
    )
    assert added.status_code == 201
    return await client.post("/store/checkout", json=CHECKOUT_FORM)


# ---------------------------------------------------------------------------
# POST /store/checkout
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_then_webhook_completes_order(customer_client, db_session):
    """Full happy path: cart -> pending order -> signed webhook -> paid."""
    product = await _product(db_session, price=Decimal("20.00"), stock=5)

    response = await _checkout_one(customer_client, product, quantity=2)

    assert response.status_code == 201
    body = response.json()
    assert body["redirect_url"].endswith(body["session_id"])
    order = await _order_by_number(db_session, body["order_number"])
    assert order.status == OrderStatus.PENDING
    assert order.total == Decimal("45.00")

    payload, signature = signed_body(
        checkout_session_completed(order), get_settings().STRIPE_WEBHOOK_SECRET
    )
    webhook = await customer_client.post(
        "/store/webhooks/stripe",
        content=payload,
        headers={"Stripe-Signature": signature},
    )
    assert webhook.status_code == 200

    order = await _order_by_number(db_session, body["order_number"])
    await db_session.refresh(product)
    assert order.paid_at is not None
    assert order.status == OrderStatus.PROCESSING
    assert product.stock == 3

    cart = await customer_client.get("/store/cart")
    assert cart.json()["items"] == []
    notifications = (
        await db_session.execute(
            select(func.count())
            .select_from(AdminNotification)
            .where(AdminNotification.type == NotificationType.NEW_ORDER)
        )
    ).scalar_one()
    assert notifications == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_with_empty_cart_is_400(customer_client):
    response = await customer_client.post("/store/checkout", json=CHECKOUT_FORM)

    assert response.status_code == 400
    assert response.json()["detail"] == "Cart is empty"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_gateway_failure_is_502_and_leaves_no_order(
    customer_client, db_session, fake_gateway
):
    product = await _product(db_session, stock=5)
    fake_gateway.fail = True

    response = await _checkout_one(customer_client, product)

    assert response.status_code == 502
    count = (await db_session.execute(select(func.count()).select_from(Order))).scalar_one()
    assert count == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_requires_login(guest_client):
    response = await guest_client.post("/store/checkout", json=CHECKOUT_FORM)

    assert response.status_code in (401, 403)


# ---------------------------------------------------------------------------
# Return pages
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_success_page_confirms_payment(customer_client, db_session, fake_gateway):
    product = await _product(db_session, stock=5)
    body = (await _checkout_one(customer_client, product, quantity=1)).json()

    response = await customer_client.get(
        "/store/payment/success", params={"session_id": body["session_id"]}
    )

    assert response.status_code == 200
    assert response.json()["paid"] is True
    assert response.json()["status"] == "processing"
    assert fake_gateway.verified == [body["session_id"]]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_success_page_for_unknown_session_is_404(guest_client):
    response = await guest_client.get(
        "/store/payment/success", params={"session_id": "cs_unknown"}
    )

    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_cancel_page_keeps_order_pending(guest_client, db_session):
    order = OrderFactory.create()
    db_session.add(order)
    await db_session.commit()

    by_number = await guest_client.get(
        "/store/payment/cancel", params={"order": order.order_number}
    )
    by_session = await guest_client.get(
        "/store/payment/cancel", params={"session_id": order.payment_id}
    )
    missing = await guest_client.get("/store/payment/cancel")

    assert by_number.json()["status"] == "pending"
    assert by_session.json()["order_number"] == order.order_number
    assert missing.status_code == 404


# ---------------------------------------------------------------------------
# Order history and retry
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_order_history_lists_own_orders(customer_client, db_session):
    product = await _product(db_session, stock=5)
    body = (await _checkout_one(customer_client, product)).json()
    someone_else = CustomerFactory.create()
    db_session.add(someone_else)
    await db_session.flush()
    db_session.add(OrderFactory.create(customer_id=someone_else.id))
    await db_session.commit()

    listing = await customer_client.get("/store/orders")
    detail = await customer_client.get(f"/store/orders/{body['order_number']}")

    assert [o["order_number"] for o in listing.json()] == [body["order_number"]]
    assert detail.status_code == 200
    assert detail.json()["items"][0]["quantity"] == 2


@pytest.mark.asyncio
@pytest.mark.integration
async def test_retry_payment_opens_new_session(customer_client, db_session):
    product = await _product(db_session, stock=5)
    body = (await _checkout_one(customer_client, product)).json()

    response = await customer_client.post(
        f"/store/orders/{body['order_number']}/retry-payment"
    )

    assert response.status_code == 200
    assert response.json()["session_id"] != body["session_id"]
    order = await _order_by_number(db_session, body["order_number"])
    assert order.payment_id == response.json()["session_id"]
