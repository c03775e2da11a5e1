"""
Public order tracking tests.
"""

from conftest import VENUE_A, VENUE_B, order_payload

TRACKING_KEYS = {
    "orderNumber",
    "status",
    "items",
    "totalAmount",
    "createdAt",
    "preparedAt",
    "readyAt",
    "servedAt",
    "estimatedTime",
}


def _create(client, **overrides) -> dict:
    resp = client.post("/v1/orders", json=order_payload(**overrides))
    assert resp.status_code == 200
    return resp.get_json()


class TestTrackOrder:
    def test_projection_hides_private_fields(self, client):
        created = _create(client, customerName="Arta", specialInstructions="Window seat")
        resp = client.get(f"/v1/track/{created['orderNumber']}")
        assert resp.status_code == 200
        body = resp.get_json()
        assert set(body) == TRACKING_KEYS
        assert body["status"] == "new"
        assert body["totalAmount"] == 15.0
        assert body["estimatedTime"] == "15-20 minutes"
        assert "Arta" not in resp.get_data(as_text=True)
        assert VENUE_A not in resp.get_data(as_text=True)

    def test_same_table_in_two_venues_never_leaks(self, client):
        order_a = _create(client, venueId=VENUE_A, tableNumber="5")
        order_b = _create(
            client,
            venueId=VENUE_B,
            tableNumber="5",
            items=[{"id": "raki", "name": "Raki", "price": 4, "quantity": 3}],
        )
        assert order_a["orderNumber"] != order_b["orderNumber"]

        tracked_a = client.get(f"/v1/track/{order_a['orderNumber']}").get_json()
        tracked_b = client.get(f"/v1/track/{order_b['orderNumber']}").get_json()
        assert [item["name"] for item in tracked_a["items"]] == ["Espresso", "Burger"]
        assert [item["name"] for item in tracked_b["items"]] == ["Raki"]
        assert tracked_b["totalAmount"] == 12.0

    def test_reflects_status_changes(self, client, headers_a):
        created = _create(client)
        client.put(
            f"/v1/orders/{created['orderId']}/status",
            json={"status": "ready"},
            headers=headers_a,
        )
        body = client.get(f"/v1/track/{created['orderNumber']}").get_json()
        assert body["status"] == "ready"
        assert body["readyAt"] is not None
        assert body["estimatedTime"] == "Ready for pickup"

    def test_lookup_ignores_case(self, client):
        created = _create(client)
        resp = client.get(f"/v1/track/{created['orderNumber'].lower()}")
        assert resp.status_code == 200

    def test_unknown_order_number_is_404(self, client):
        resp = client.get("/v1/track/SKN-20240101-999")
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "NOT_FOUND"

    def test_tracking_is_read_only(self, client):
        created = _create(client)
        first = client.get(f"/v1/track/{created['orderNumber']}").get_json()
        second = client.get(f"/v1/track/{created['orderNumber']}").get_json()
        assert first == second
