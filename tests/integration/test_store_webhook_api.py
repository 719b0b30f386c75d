"""Integration tests for POST /store/webhooks/stripe."""

import json
from decimal import Decimal

import pytest
from libs.common.config import get_settings
from services.store_service.models import (
    AdminNotification,
    OrderStatus,
    StripeWebhookEvent,
    WebhookEventStatus,
)
from services.store_service.services import reconciliation
from sqlalchemy import func, select
from tests.factories import (
    OrderFactory,
    OrderItemFactory,
    ProductFactory,
    checkout_session_completed,
    sign_payload,
    signed_body,
)

WEBHOOK_URL = "/store/webhooks/stripe"


async def _paid_order_setup(db):
    product = ProductFactory.create(stock=4, price=Decimal("12.00"))
    db.add(product)
    await db.flush()
    order = OrderFactory.create(subtotal=Decimal("24.00"), total=Decimal("24.00"))
    db.add(order)
    await db.flush()
    db.add(OrderItemFactory.create(order, product, quantity=2, unit_price=Decimal("12.00")))
    await db.commit()
    return product, order


async def _post(client, event: dict):
    body, signature = signed_body(event, get_settings().STRIPE_WEBHOOK_SECRET)
    return await client.post(
        WEBHOOK_URL,
        content=body,
        headers={"Stripe-Signature": signature, "Content-Type": "application/json"},
    )


async def _count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.asyncio
@pytest.mark.integration
async def test_webhook_marks_order_paid(guest_client, db_session):
    product, order = await _paid_order_setup(db_session)
    event = checkout_session_completed(order)

    response = await _post(guest_client, event)

    assert response.status_code == 200
    assert response.json() == {
        "received": True,
        "status": "processed",
        "event_id": event["id"],
    }
    await db_session.refresh(order)
    await db_session.refresh(product)
    assert order.status == OrderStatus.PROCESSING
    assert order.paid_at is not None
    assert product.stock == 2


@pytest.mark.asyncio
@pytest.mark.integration
async def test_duplicate_delivery_acknowledged_once(guest_client, db_session):
    product, order = await _paid_order_setup(db_session)
    event = checkout_session_completed(order)

    first = await _post(guest_client, event)
    second = await _post(guest_client, event)

    assert first.json()["status"] == "processed"
    assert second.status_code == 200
    assert second.json()["status"] == "duplicate"
    await db_session.refresh(product)
    assert product.stock == 2
    assert await _count(db_session, AdminNotification) == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_bad_signature_is_400(guest_client, db_session):
    _, order = await _paid_order_setup(db_session)
    payload = json.dumps(checkout_session_completed(order))

    response = await guest_client.post(
        WEBHOOK_URL,
        content=payload,
        headers={"Stripe-Signature": sign_payload(payload, "whsec_wrong")},
    )

    assert response.status_code == 400
    assert await _count(db_session, StripeWebhookEvent) == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_missing_signature_is_400(guest_client):
    response = await guest_client.post(WEBHOOK_URL, content=b"{}")

    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_unhandled_event_type_is_acknowledged(guest_client, db_session):
    event = {
        "id": "evt_unhandled_1",
        "object": "event",
        "type": "customer.created",
        "data": {"object": {"id": "cus_1"}},
    }

    response = await _post(guest_client, event)

    assert response.status_code == 200
    assert response.json()["status"] == "ignored"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_processing_failure_is_500_so_stripe_retries(
    guest_client, db_session, monkeypatch
):
    _, order = await _paid_order_setup(db_session)
    event = checkout_session_completed(order)

    async def _boom(*args, **kwargs):
        raise RuntimeError("lock timeout")

    monkeypatch.setattr(reconciliation, "mark_order_paid", _boom)
    response = await _post(guest_client, event)

    assert response.status_code == 500
    assert response.json() == {"detail": "Webhook handler error"}
    row = (
        await db_session.execute(
            select(StripeWebhookEvent).where(StripeWebhookEvent.event_id == event["id"])
        )
    ).scalar_one()
    await db_session.refresh(row)
    assert row.status == WebhookEventStatus.FAILED
    await db_session.refresh(order)
    assert order.paid_at is None
