"""Integration tests for the public donation endpoints."""

import pytest
from services.store_service.models import Donation, DonationStatus, SettingType
from sqlalchemy import select
from tests.factories import SettingFactory


@pytest.mark.asyncio
@pytest.mark.integration
async def test_donation_page_defaults(guest_client):
    response = await guest_client.get("/store/donations/page")

    assert response.status_code == 200
    assert response.json()["donation_enable"] is True
    assert response.json()["donation_min_amount"] == 5.0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_donation_then_success_page(guest_client, db_session, fake_gateway):
    created = await guest_client.post(
        "/store/donations",
        json={"name": "Tolu", "email": "tolu@test.com", "value": "15.00"},
    )

    assert created.status_code == 201
    body = created.json()
    assert body["session_id"].startswith("cs_don_")

    success = await guest_client.get(
        "/store/donations/success", params={"session_id": body["session_id"]}
    )

    assert success.status_code == 200
    assert success.json()["status"] == "completed"
    assert success.json()["paid_at"] is not None
    donation = (await db_session.execute(select(Donation))).scalar_one()
    await db_session.refresh(donation)
    assert donation.status == DonationStatus.COMPLETED


@pytest.mark.asyncio
@pytest.mark.integration
async def test_disabled_donations_are_403(guest_client, db_session):
    db_session.add(
        SettingFactory.create(key="donation_enable", value="0", type=SettingType.BOOLEAN)
    )
    await db_session.commit()

    response = await guest_client.post(
        "/store/donations", json={"name": "Tolu", "value": "15.00"}
    )

    assert response.status_code == 403
    assert response.json() == {"detail": "Donations are currently disabled"}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_below_minimum_donation_is_400(guest_client):
    response = await guest_client.post(
        "/store/donations", json={"name": "Tolu", "value": "1.00"}
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Minimum donation amount is $5.00"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_donation_gateway_failure_is_502(guest_client, fake_gateway):
    fake_gateway.fail = True

    response = await guest_client.post(
        "/store/donations", json={"name": "Tolu", "value": "15.00"}
    )

    assert response.status_code == 502


@pytest.mark.asyncio
@pytest.mark.integration
async def test_unknown_donation_session_is_404(guest_client):
    response = await guest_client.get(
        "/store/donations/success", params={"session_id": "cs_don_missing"}
    )

    assert response.status_code == 404
