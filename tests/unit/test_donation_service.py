"""Unit tests for standalone donations."""

from decimal import Decimal

import pytest
from services.store_service.errors import (
    CheckoutError,
    DonationsDisabledError,
    NotFoundError,
    StoreError,
)
from services.store_service.models import Donation, DonationStatus, SettingType
from services.store_service.schemas import DonationCreate
from services.store_service.services import donation_service, settings_store
from sqlalchemy import func, select
from tests.factories import DonationFactory, FakeGateway


def _request(**overrides) -> DonationCreate:
    data = {"name": "Ada", "email": "ada@test.com", "value": Decimal("25.00")}
    data.update(overrides)
    return DonationCreate(**data)


async def _donation_count(db) -> int:
    return (await db.execute(select(func.count()).select_from(Donation))).scalar_one()


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_donation_opens_session(db_session):
    gateway = FakeGateway()

    donation, session = await donation_service.create_donation(
        db_session, _request(), gateway
    )

    assert donation.status == DonationStatus.PENDING
    assert donation.payment_id == session.session_id
    assert donation.value == Decimal("25.00")
    assert donation.currency == "usd"
    assert gateway.donations == [donation]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_disabled_donations_rejected(db_session):
    await settings_store.set_setting(
        db_session, "donation_enable", False, SettingType.BOOLEAN
    )

    with pytest.raises(DonationsDisabledError):
        await donation_service.create_donation(db_session, _request(), FakeGateway())


@pytest.mark.asyncio
@pytest.mark.unit
async def test_below_minimum_rejected(db_session):
    await settings_store.set_setting(
        db_session, "donation_min_amount", 10, SettingType.INTEGER
    )

    with pytest.raises(StoreError) as exc_info:
        await donation_service.create_donation(
            db_session, _request(value=Decimal("9.99")), FakeGateway()
        )

    assert "10.00" in exc_info.value.message
    assert await _donation_count(db_session) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_gateway_failure_discards_donation(db_session):
    gateway = FakeGateway()
    gateway.fail = True

    with pytest.raises(CheckoutError):
        await donation_service.create_donation(db_session, _request(), gateway)

    assert await _donation_count(db_session) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_lookup_by_session(db_session):
    donation = DonationFactory.create(payment_id="cs_don_lookup")
    db_session.add(donation)
    await db_session.commit()

    found = await donation_service.get_donation_by_session(db_session, "cs_don_lookup")

    assert found.id == donation.id
    with pytest.raises(NotFoundError):
        await donation_service.get_donation_by_session(db_session, "cs_missing")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_list_and_stats(db_session):
    db_session.add_all(
        [
            DonationFactory.create(name="Bola", value=Decimal("10.00")),
            DonationFactory.create(
                name="Chidi",
                value=Decimal("30.00"),
                status=DonationStatus.COMPLETED,
            ),
        ]
    )
    await db_session.commit()

    found, total = await donation_service.list_donations(db_session, search="chid")
    stats = await donation_service.donation_stats(db_session)

    assert total == 1
    assert found[0].name == "Chidi"
    assert stats["total"] == 2
    assert stats["by_status"]["completed"] == 1
    assert stats["amount_completed"] == Decimal("30.00")
    assert stats["amount_pending"] == Decimal("10.00")
