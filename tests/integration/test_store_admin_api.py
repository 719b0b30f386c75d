"""Integration tests for the /admin/store back office."""

from decimal import Decimal

import pytest
from libs.common.datetime_utils import utc_now
from services.store_service.models import NotificationType, OrderStatus
from tests.factories import (
    DonationFactory,
    NotificationFactory,
    OrderFactory,
    ProductFactory,
)

# ---------------------------------------------------------------------------
# Access control
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.parametrize(
    "path",
    ["/admin/store/orders", "/admin/store/notifications", "/admin/store/settings"],
)
async def test_customer_cannot_use_admin_endpoints(customer_client, path):
    response = await customer_client.get(path)

    assert response.status_code == 403


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_product_with_new_colors_and_sizes(admin_client):
    """Colors and sizes typed into the form arrive with ``temp_*`` ids."""
    payload = {
        "name": "Team Hoodie",
        "price": "40.00",
        "colors": [
            {"id": "temp_c1", "name": "Navy", "hex": "#000080"},
            {"id": "temp_c2", "name": "Grey", "hex": "#808080"},
        ],
        "sizes": [{"id": "temp_s1", "name": "M", "category_type": "clothing"}],
        "variants": [
            {"color_id": "temp_c1", "size_id": "temp_s1", "stock": 3},
            {
                "color_id": "temp_c2",
                "size_id": "temp_s1",
                "stock": 1,
                "price_adjustment": "2.00",
            },
        ],
    }

    response = await admin_client.post("/admin/store/products", json=payload)

    assert response.status_code == 201
    body = response.json()
    assert body["slug"] == "team-hoodie"
    assert len(body["variants"]) == 2
    assert all(v["sku"].startswith("TEA-") for v in body["variants"])

    colors = (await admin_client.get("/admin/store/colors")).json()
    assert sorted(c["name"] for c in colors) == ["Grey", "Navy"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_update_product_replaces_variant_set(admin_client):
    created = (
        await admin_client.post(
            "/admin/store/products",
            json={
                "name": "Cap",
                "price": "10.00",
                "colors": [{"id": "temp_1", "name": "Red"}],
                "sizes": [{"id": "temp_2", "name": "One"}],
                "variants": [{"color_id": "temp_1", "size_id": "temp_2", "stock": 2}],
            },
        )
    ).json()

    response = await admin_client.patch(
        f"/admin/store/products/{created['id']}",
        json={"price": "12.00", "variants": []},
    )

    assert response.status_code == 200
    assert Decimal(response.json()["price"]) == Decimal("12.00")
    assert response.json()["variants"] == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_product_list_includes_inactive(admin_client, db_session):
    db_session.add_all(
        [ProductFactory.create(name="Live"), ProductFactory.create(name="Draft", is_active=False)]
    )
    await db_session.commit()

    response = await admin_client.get("/admin/store/products")

    assert response.json()["total"] == 2


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_and_update_orders(admin_client, db_session):
    paid = OrderFactory.create(
        status=OrderStatus.PROCESSING, paid_at=utc_now(), total=Decimal("30.00")
    )
    pending = OrderFactory.create()
    db_session.add_all([paid, pending])
    await db_session.commit()

    listing = await admin_client.get(
        "/admin/store/orders", params={"status": "processing"}
    )
    assert listing.status_code == 200
    assert [o["id"] for o in listing.json()["items"]] == [str(paid.id)]
    assert listing.json()["stats"]["total_orders"] == 2

    updated = await admin_client.patch(
        f"/admin/store/orders/{paid.id}",
        json={"status": "done", "admin_notes": "Shipped"},
    )
    assert updated.json()["status"] == "done"
    assert updated.json()["admin_notes"] == "Shipped"
    assert updated.json()["paid_at"] is not None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_dashboard(admin_client, db_session):
    db_session.add(OrderFactory.create())
    await db_session.commit()

    response = await admin_client.get("/admin/store/dashboard")

    assert response.status_code == 200
    assert response.json()["orders_total"] == 1


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_notification_feed(admin_client, db_session):
    first = NotificationFactory.create(type=NotificationType.NEW_ORDER)
    second = NotificationFactory.create()
    db_session.add_all([first, second])
    await db_session.commit()

    listing = await admin_client.get(
        "/admin/store/notifications", params={"type": "new_order"}
    )
    assert listing.json()["total"] == 1
    assert listing.json()["unread_count"] == 2

    marked = await admin_client.post(f"/admin/store/notifications/{first.id}/read")
    assert marked.json()["is_read"] is True

    count = await admin_client.get("/admin/store/notifications/unread-count")
    assert count.json() == {"unread_count": 1}

    deleted = await admin_client.post(
        "/admin/store/notifications/bulk-delete", json={"ids": [str(second.id)]}
    )
    assert deleted.json() == {"deleted": 1}


# ---------------------------------------------------------------------------
# Settings and donations
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_settings_bulk_update(admin_client, guest_client):
    response = await admin_client.put(
        "/admin/store/settings",
        json={
            "settings": [
                {"key": "donation_enable", "value": False, "type": "boolean"},
                {"key": "shop_name", "value": "Swim Shop", "is_public": True},
            ]
        },
    )

    assert response.status_code == 200
    saved = {s["key"]: s["value"] for s in response.json()}
    assert saved == {"donation_enable": "0", "shop_name": "Swim Shop"}

    page = await guest_client.get("/store/donations/page")
    assert page.json()["donation_enable"] is False


@pytest.mark.asyncio
@pytest.mark.integration
async def test_donation_admin_list_and_delete(admin_client, db_session):
    donation = DonationFactory.create(name="Kemi")
    db_session.add(donation)
    await db_session.commit()

    listing = await admin_client.get("/admin/store/donations", params={"search": "kem"})
    assert listing.json()["total"] == 1
    assert listing.json()["stats"]["total"] == 1

    deleted = await admin_client.delete(f"/admin/store/donations/{donation.id}")
    assert deleted.status_code == 204

    missing = await admin_client.get(f"/admin/store/donations/{donation.id}")
    assert missing.status_code == 404
