"""Unit tests for Stripe event parsing and signature verification."""

import json
import time
import uuid

import pytest
from libs.common.config import get_settings
from services.store_service.errors import WebhookVerificationError
from services.store_service.services.webhook_service import (
    DonationPaymentEvent,
    OrderPaymentEvent,
    PaymentFailedEvent,
    UnknownEvent,
    parse_event,
    verify_and_decode,
)
from tests.factories import sign_payload, stripe_event

# ---------------------------------------------------------------------------
# parse_event
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_completed_order_session():
    order_id = uuid.uuid4()
    event = parse_event(
        stripe_event(
            "checkout.session.completed",
            {
                "id": "cs_test_1",
                "payment_status": "paid",
                "payment_intent": "pi_1",
                "currency": "usd",
                "metadata": {"type": "order", "order_id": str(order_id)},
            },
            event_id="evt_1",
        )
    )

    assert event == OrderPaymentEvent(
        event_id="evt_1",
        event_type="checkout.session.completed",
        order_id=order_id,
        session_id="cs_test_1",
        payment_intent_id="pi_1",
        currency="usd",
    )


@pytest.mark.unit
def test_expanded_payment_intent_object():
    """An expanded payment_intent object still yields its id."""
    event = parse_event(
        stripe_event(
            "checkout.session.completed",
            {
                "id": "cs_test_2",
                "payment_status": "paid",
                "payment_intent": {"id": "pi_expanded", "object": "payment_intent"},
                "metadata": {},
            },
        )
    )

    assert isinstance(event, OrderPaymentEvent)
    assert event.payment_intent_id == "pi_expanded"
    assert event.order_id is None


@pytest.mark.unit
def test_donation_intent_succeeded():
    """Donation metadata routes to a donation event; intents carry no session id."""
    donation_id = uuid.uuid4()
    event = parse_event(
        stripe_event(
            "payment_intent.succeeded",
            {"id": "pi_don", "metadata": {"donation_id": str(donation_id)}},
        )
    )

    assert isinstance(event, DonationPaymentEvent)
    assert event.donation_id == donation_id
    assert event.session_id is None
    assert event.payment_intent_id == "pi_don"


@pytest.mark.unit
def test_unpaid_completed_session_is_not_a_payment():
    event = parse_event(
        stripe_event(
            "checkout.session.completed",
            {"id": "cs_test_3", "payment_status": "unpaid", "metadata": {}},
        )
    )

    assert isinstance(event, UnknownEvent)


@pytest.mark.unit
def test_no_payment_required_counts_as_paid():
    event = parse_event(
        stripe_event(
            "checkout.session.completed",
            {"id": "cs_free", "payment_status": "no_payment_required", "metadata": {}},
        )
    )

    assert isinstance(event, OrderPaymentEvent)


@pytest.mark.unit
def test_intent_failure_carries_error_message():
    order_id = uuid.uuid4()
    event = parse_event(
        stripe_event(
            "payment_intent.payment_failed",
            {
                "id": "pi_bad",
                "metadata": {"order_id": str(order_id)},
                "last_payment_error": {"message": "Insufficient funds"},
            },
        )
    )

    assert isinstance(event, PaymentFailedEvent)
    assert event.is_donation is False
    assert event.target_id == order_id
    assert event.error_message == "Insufficient funds"


@pytest.mark.unit
def test_expired_session_failure():
    event = parse_event(
        stripe_event(
            "checkout.session.expired",
            {"id": "cs_old", "metadata": {"type": "donation"}},
        )
    )

    assert isinstance(event, PaymentFailedEvent)
    assert event.is_donation is True
    assert event.session_id == "cs_old"
    assert event.error_message == "Checkout session expired"


@pytest.mark.unit
def test_unhandled_type():
    event = parse_event(stripe_event("customer.created", {"id": "cus_1"}, "evt_c"))

    assert event == UnknownEvent("evt_c", "customer.created")


@pytest.mark.unit
def test_malformed_metadata_id_is_dropped():
    event = parse_event(
        stripe_event(
            "checkout.session.completed",
            {
                "id": "cs_test_4",
                "payment_status": "paid",
                "metadata": {"order_id": "not-a-uuid"},
            },
        )
    )

    assert event.order_id is None
    assert event.session_id == "cs_test_4"


@pytest.mark.unit
@pytest.mark.parametrize(
    "payload",
    [
        {"type": "checkout.session.completed", "data": {"object": {}}},
        {"id": "evt_1", "data": {"object": {}}},
        {"id": "evt_1", "type": "checkout.session.completed"},
        {"id": "evt_1", "type": "checkout.session.completed", "data": {"object": []}},
    ],
)
def test_malformed_envelope_rejected(payload):
    with pytest.raises(WebhookVerificationError):
        parse_event(payload)


# ---------------------------------------------------------------------------
# verify_and_decode
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_valid_signature_decodes_body():
    secret = get_settings().STRIPE_WEBHOOK_SECRET
    body = json.dumps({"id": "evt_ok", "type": "ping", "data": {"object": {}}})

    data = verify_and_decode(body.encode(), sign_payload(body, secret))

    assert data["id"] == "evt_ok"


@pytest.mark.unit
def test_stale_signature_rejected():
    """Signatures older than the tolerance window are refused."""
    secret = get_settings().STRIPE_WEBHOOK_SECRET
    body = json.dumps({"id": "evt_old", "type": "ping", "data": {"object": {}}})
    stale = int(time.time()) - 3600

    with pytest.raises(WebhookVerificationError):
        verify_and_decode(body.encode(), sign_payload(body, secret, timestamp=stale))


@pytest.mark.unit
def test_tampered_body_rejected():
    secret = get_settings().STRIPE_WEBHOOK_SECRET
    body = json.dumps({"id": "evt_1", "type": "ping", "data": {"object": {}}})
    header = sign_payload(body, secret)
    tampered = body.replace("evt_1", "evt_2")

    with pytest.raises(WebhookVerificationError):
        verify_and_decode(tampered.encode(), header)


@pytest.mark.unit
def test_signed_non_object_body_rejected():
    secret = get_settings().STRIPE_WEBHOOK_SECRET
    body = json.dumps(["not", "an", "event"])

    with pytest.raises(WebhookVerificationError):
        verify_and_decode(body.encode(), sign_payload(body, secret))
