"""Integration tests for the public catalog endpoints."""

from decimal import Decimal

import pytest
from tests.factories import (
    CategoryFactory,
    ColorFactory,
    ProductFactory,
    SettingFactory,
    SizeFactory,
    VariantFactory,
)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_health(guest_client):
    response = await guest_client.get("/health")

    assert response.json() == {"status": "ok", "service": "store"}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_products_by_category(guest_client, db_session):
    caps = CategoryFactory.create(slug="caps")
    db_session.add(caps)
    await db_session.flush()
    db_session.add_all(
        [
            ProductFactory.create(name="Silicone Cap", category_id=caps.id),
            ProductFactory.create(name="Kickboard"),
            ProductFactory.create(name="Hidden Cap", category_id=caps.id, is_active=False),
        ]
    )
    await db_session.commit()

    response = await guest_client.get("/store/products", params={"category": "caps"})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["items"][0]["name"] == "Silicone Cap"
    assert body["items"][0]["in_stock"] is True


@pytest.mark.asyncio
@pytest.mark.integration
async def test_product_detail_shows_active_variants(guest_client, db_session):
    product = ProductFactory.create(
        slug="team-hoodie",
        price=Decimal("40.00"),
        stock=0,
        name_translations={"fr": "Sweat d'equipe"},
    )
    color = ColorFactory.create(name="Black")
    size = SizeFactory.create(name="L")
    other_size = SizeFactory.create(name="XL")
    db_session.add_all([product, color, size, other_size])
    await db_session.flush()
    db_session.add_all(
        [
            VariantFactory.create(product, color, size, stock=2),
            VariantFactory.create(product, color, other_size, is_active=False),
        ]
    )
    await db_session.commit()

    response = await guest_client.get("/store/products/team-hoodie", params={"locale": "fr"})

    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "Sweat d'equipe"
    assert len(body["variants"]) == 1
    assert body["total_stock"] == 2
    assert [s["name"] for s in body["available_sizes"]] == ["L"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_unknown_product_is_404(guest_client):
    response = await guest_client.get("/store/products/no-such-thing")

    assert response.status_code == 404
    assert response.json() == {"detail": "Product not found"}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_public_settings_hide_private_keys(guest_client, db_session):
    db_session.add_all(
        [
            SettingFactory.create(key="shop_name", value="Swim Shop", is_public=True),
            SettingFactory.create(key="internal_note", value="secret"),
        ]
    )
    await db_session.commit()

    response = await guest_client.get("/store/settings")

    assert response.json() == {"shop_name": "Swim Shop"}
