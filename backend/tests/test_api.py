"""
API tests: checkout through settlement over HTTP, with the demo gateway
and an in-memory database.
"""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

CART = [
    {"productId": "p_abc", "title": "Figure", "price": 1000, "quantity": 2},
    {"productId": "p_def", "title": "Keychain", "price": 500, "quantity": 1},
]

CUSTOMER = {
    "email": "buyer@example.com",
    "firstName": "Taro",
    "lastName": "Yamada",
    "phone": "090-0000-0000",
    "address": "1-1 Chiyoda",
    "city": "Tokyo",
    "state": "Tokyo",
    "zipCode": "100-0001",
}


async def checkout(client, items=None, payment_intent_id=None):
    items = items or CART
    if payment_intent_id is None:
        resp = await client.post("/api/checkout/payment-intent", json={"items": items})
        assert resp.status_code == 200
        payment_intent_id = resp.json()["paymentIntentId"]

    resp = await client.post("/api/orders", json={**CUSTOMER, "items": items, "paymentIntentId": payment_intent_id})
    assert resp.status_code == 201
    return resp.json()["order"]


class TestCheckout:

    @pytest.mark.asyncio
    async def test_payment_intent_holds_original_subtotal(self, client):
        resp = await client.post("/api/checkout/payment-intent", json={"items": CART})

        assert resp.status_code == 200
        body = resp.json()
        assert body["amount"] == 2500
        assert body["demo"] is True
        assert body["clientSecret"]
        assert body["paymentIntentId"].startswith("pi_demo_")

    @pytest.mark.asyncio
    async def test_payment_intent_rejects_zero_amount(self, client):
        resp = await client.post("/api/checkout/payment-intent", json={"amount": 0})

        assert resp.status_code == 400
        assert resp.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_payment_intent_rejects_fractional_price(self, client):
        items = [{"productId": "p_abc", "title": "Figure", "price": 833.5, "quantity": 1}]

        resp = await client.post("/api/checkout/payment-intent", json={"items": items})

        assert resp.status_code == 400
        assert resp.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_order_created_with_server_side_prices(self, client):
        order = await checkout(client)

        assert order["originalSubtotal"] == 2500
        assert order["subtotal"] == 3000
        assert order["total"] == 3000
        assert order["authorizedAmount"] == 2500
        assert order["paymentStatus"] == "authorized"
        assert order["orderStatus"] == "confirmed"
        assert [i["price"] for i in order["items"]] == [1200, 600]

    @pytest.mark.asyncio
    async def test_order_missing_fields_is_400(self, client):
        resp = await client.post(
            "/api/orders",
            json={**CUSTOMER, "city": " ", "items": CART, "paymentIntentId": "pi_x"},
        )

        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_confirmation_page(self, client):
        order = await checkout(client)

        resp = await client.get(f"/api/orders/{order['id']}")

        assert resp.status_code == 200
        assert resp.json()["email"] == "buyer@example.com"

    @pytest.mark.asyncio
    async def test_unknown_order_is_404(self, client):
        resp = await client.get("/api/orders/does-not-exist")

        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"


class TestAdminOrders:

    @pytest.mark.asyncio
    async def test_admin_routes_need_a_token(self, client):
        resp = await client.get("/api/admin/orders")

        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_non_admin_identity_is_403(self, client):
        from storefront.auth_middleware import create_access_token

        headers = {"Authorization": f"Bearer {create_access_token('stranger')}"}
        resp = await client.get("/api/admin/orders", headers=headers)

        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_general_role_cannot_capture(self, client, make_admin):
        order = await checkout(client)
        headers = await make_admin("general")

        resp = await client.post(f"/api/admin/orders/{order['id']}/capture", json={}, headers=headers)

        assert resp.status_code == 403
        assert resp.json()["error"] == "permission_denied"

    @pytest.mark.asyncio
    async def test_full_settlement_flow(self, client, make_admin):
        order = await checkout(client)
        headers = await make_admin("admin")
        order_id = order["id"]

        resp = await client.put(
            f"/api/admin/orders/{order_id}/shipping",
            json={"shippingFee": 0, "expectedVersion": order["version"]},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json()["total"] == 3000

        resp = await client.post(f"/api/admin/orders/{order_id}/capture", json={}, headers=headers)
        assert resp.status_code == 200
        captured = resp.json()
        # The whole pre-markup hold, no shipping on top
        assert captured["id"] == order_id
        assert captured["capturedAmount"] == 2500
        assert captured["paymentStatus"] == "captured"

        for status in ("processing", "shipped", "delivered"):
            resp = await client.put(
                f"/api/admin/orders/{order_id}/status",
                json={"status": status, "trackingNumber": "JP1" if status == "shipped" else None},
                headers=headers,
            )
            assert resp.status_code == 200

        final = resp.json()
        assert final["orderStatus"] == "delivered"
        assert final["trackingNumber"] == "JP1"
        assert final["deliveredAt"] is not None

        today = datetime.utcnow().date()
        resp = await client.get(
            "/api/admin/profit",
            params={"startDate": str(today - timedelta(days=1)), "endDate": str(today + timedelta(days=1))},
            headers=headers,
        )
        assert resp.status_code == 200
        summary = resp.json()["summary"]
        assert summary["totalRevenue"] == 3000
        assert summary["totalCost"] == 2500
        assert summary["totalProfit"] == 500

    @pytest.mark.asyncio
    async def test_capture_above_hold_is_refused(self, client, make_admin):
        order = await checkout(client)
        headers = await make_admin("admin")
        order_id = order["id"]

        shipped = await client.put(
            f"/api/admin/orders/{order_id}/shipping", json={"shippingFee": 200}, headers=headers,
        )
        resp = await client.post(f"/api/admin/orders/{order_id}/capture", json={}, headers=headers)

        assert resp.status_code == 502
        assert resp.json()["error"] == "external_service_error"
        after = (await client.get(f"/api/orders/{order_id}")).json()
        assert after["paymentStatus"] == "authorized"
        assert after["capturedAmount"] is None
        assert after["version"] == shipped.json()["version"]

    @pytest.mark.asyncio
    async def test_repeated_checkout_keeps_one_order(self, client, make_admin):
        first = await checkout(client)
        headers = await make_admin("admin")

        resp = await client.post(
            "/api/orders",
            json={**CUSTOMER, "items": CART, "paymentIntentId": first["paymentIntentId"]},
        )
        assert resp.status_code == 409
        assert resp.json()["error"] == "duplicate_order"

        listed = (await client.get("/api/admin/orders", headers=headers)).json()
        assert listed["total"] == 1

        resp = await client.post(f"/api/admin/orders/{first['id']}/capture", json={}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["id"] == first["id"]
        assert resp.json()["paymentStatus"] == "captured"

    @pytest.mark.asyncio
    async def test_illegal_transition_is_409(self, client, make_admin):
        order = await checkout(client)
        headers = await make_admin("admin")

        resp = await client.put(
            f"/api/admin/orders/{order['id']}/status", json={"status": "delivered"}, headers=headers,
        )

        assert resp.status_code == 409
        assert resp.json()["error"] == "invalid_transition"

    @pytest.mark.asyncio
    async def test_unknown_status_is_rejected(self, client, make_admin):
        order = await checkout(client)
        headers = await make_admin("admin")

        resp = await client.put(
            f"/api/admin/orders/{order['id']}/status", json={"status": "lost"}, headers=headers,
        )

        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_negative_shipping_fee_is_400(self, client, make_admin):
        order = await checkout(client)
        headers = await make_admin("admin")

        resp = await client.put(
            f"/api/admin/orders/{order['id']}/shipping", json={"shippingFee": -100}, headers=headers,
        )

        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_stale_version_is_409(self, client, make_admin):
        order = await checkout(client)
        headers = await make_admin("admin")

        resp = await client.put(
            f"/api/admin/orders/{order['id']}/shipping",
            json={"shippingFee": 100, "expectedVersion": order["version"] + 5},
            headers=headers,
        )

        assert resp.status_code == 409
        assert resp.json()["error"] == "stale_write"

    @pytest.mark.asyncio
    async def test_failed_capture_leaves_order_unchanged(self, client, make_admin):
        # The demo gateway has never seen this intent
        order = await checkout(client, payment_intent_id="pi_unknown")
        headers = await make_admin("admin")

        resp = await client.post(
            f"/api/admin/orders/{order['id']}/capture", json={"shippingFee": 200}, headers=headers,
        )
        assert resp.status_code == 502

        after = (await client.get(f"/api/orders/{order['id']}")).json()
        assert after["paymentStatus"] == "authorized"
        assert after["shippingFee"] is None
        assert after["version"] == order["version"]

    @pytest.mark.asyncio
    async def test_cancel_releases_hold(self, client, make_admin, demo_gateway):
        order = await checkout(client)
        headers = await make_admin("admin")

        resp = await client.post(f"/api/admin/orders/{order['id']}/cancel", headers=headers)

        assert resp.status_code == 200
        assert resp.json()["orderStatus"] == "cancelled"
        intent = await demo_gateway.retrieve_intent(order["paymentIntentId"])
        assert intent.status == "canceled"

    @pytest.mark.asyncio
    async def test_customers(self, client, make_admin):
        await checkout(client)
        await checkout(client)
        headers = await make_admin("general")

        resp = await client.get("/api/admin/customers", headers=headers)

        assert resp.status_code == 200
        assert resp.json()[0]["orderCount"] == 2


class TestProducts:

    @pytest.mark.asyncio
    async def test_catalog_pagination_and_prices(self, client, make_admin):
        headers = await make_admin("super_admin")
        batch = [
            {"title": f"Item {n}", "price": 1000, "sourceUrl": f"https://shop.example.jp/{n}"}
            for n in range(5)
        ]
        resp = await client.post("/api/admin/products", json={"products": batch}, headers=headers)
        assert resp.json() == {"added": 5, "updated": 0}

        first = (await client.get("/api/products", params={"limit": 3})).json()
        second = (await client.get("/api/products", params={"limit": 3, "cursor": first["nextCursor"]})).json()

        ids = [p["id"] for p in first["products"] + second["products"]]
        assert len(set(ids)) == 5
        assert second["nextCursor"] is None
        assert all(p["displayPrice"] == 1200 for p in first["products"])

        product = (await client.get(f"/api/products/{ids[0]}")).json()
        assert product["originalPrice"] == 1000

    @pytest.mark.asyncio
    async def test_popular_requires_permission(self, client, make_admin):
        headers = await make_admin("test_mode")

        resp = await client.get("/api/products/popular", headers=headers)

        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_popular_products(self, client, make_admin):
        await checkout(client)
        headers = await make_admin("general")

        resp = await client.get("/api/products/popular", headers=headers)

        assert resp.status_code == 200
        assert {p["productId"] for p in resp.json()} == {"p_abc", "p_def"}


class TestAdminUsers:

    @pytest.mark.asyncio
    async def test_setup_requires_secret(self, client):
        resp = await client.post("/api/admin/setup", json={"secret": "wrong"})

        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_setup_creates_default_admin_once(self, client):
        first = await client.post("/api/admin/setup", json={"secret": "test-setup-secret"})
        second = await client.post("/api/admin/setup", json={"secret": "test-setup-secret"})

        assert first.json()["created"] is True
        assert second.json()["created"] is False

    @pytest.mark.asyncio
    async def test_super_admin_manages_users(self, client, make_admin):
        headers = await make_admin("super_admin")

        resp = await client.post(
            "/api/admin/users",
            json={"uid": "new-uid", "email": "new@example.com", "role": "general"},
            headers=headers,
        )
        assert resp.status_code == 201
        assert resp.json()["permissions"] == [
            "admin.login", "products.view", "products.popularity.view",
            "orders.view", "customers.view", "analytics.view",
        ]

        resp = await client.put("/api/admin/users/new-uid/role", json={"role": "admin"}, headers=headers)
        assert resp.json()["role"] == "admin"

        resp = await client.get("/api/admin/users", headers=headers)
        assert resp.json()["count"] == 2

        resp = await client.delete("/api/admin/users/new-uid", headers=headers)
        assert resp.status_code == 200
        resp = await client.get("/api/admin/users", headers=headers)
        assert resp.json()["count"] == 1

    @pytest.mark.asyncio
    async def test_admin_can_view_but_not_edit_users(self, client, make_admin):
        headers = await make_admin("admin")

        assert (await client.get("/api/admin/users", headers=headers)).status_code == 200
        resp = await client.post(
            "/api/admin/users",
            json={"uid": "x", "email": "x@example.com", "role": "super_admin"},
            headers=headers,
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_invalid_role_is_400(self, client, make_admin):
        headers = await make_admin("super_admin")

        resp = await client.post(
            "/api/admin/users",
            json={"uid": "x", "email": "x@example.com", "role": "owner"},
            headers=headers,
        )

        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_check_access(self, client, make_admin):
        from storefront.auth_middleware import create_access_token

        headers = await make_admin("general")
        resp = await client.post("/api/admin/check-access", headers=headers)
        body = resp.json()
        assert body["hasAccess"] is True
        assert body["role"] == "general"
        assert body["roleLevel"] == 2

        stranger = {"Authorization": f"Bearer {create_access_token('stranger')}"}
        resp = await client.post("/api/admin/check-access", headers=stranger)
        assert resp.json()["hasAccess"] is False

    @pytest.mark.asyncio
    async def test_permission_matrix(self, client, make_admin):
        headers = await make_admin("test_mode")

        resp = await client.get("/api/admin/permissions", headers=headers)

        assert resp.status_code == 200
        assert len(resp.json()["matrix"]) == 16


class TestAnalyticsAndHealth:

    @pytest.mark.asyncio
    async def test_track_event(self, client, make_admin):
        headers = await make_admin("general")

        with patch(
            "storefront.services.analytics.AnalyticsTracker.track_event",
            new_callable=AsyncMock,
            return_value=object(),
        ) as mock_track:
            resp = await client.post(
                "/api/analytics/events",
                json={"eventType": "page_view", "page": "/admin/orders", "sessionId": "s1"},
                headers=headers,
            )

        assert resp.status_code == 202
        assert mock_track.call_args.kwargs["user_role"] == "general"

    @pytest.mark.asyncio
    async def test_analytics_report_requires_permission(self, client, make_admin):
        headers = await make_admin("test_mode")

        resp = await client.get("/api/admin/analytics", headers=headers)

        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/health")

        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"
