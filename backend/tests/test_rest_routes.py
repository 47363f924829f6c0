"""
HTTP API tests.

Verifies:
- Generic CRUD envelopes and validation errors per table
- store_settings singleton (404 before creation, 409 on a second row)
- API key enforcement (tracking and health stay public)
- Order delete cascades to its cash-flow rows
- Every committed write lands in the change journal
"""

import pytest

from shoeclean.models import CashFlow, Order


def order_payload(**overrides):
    payload = {
        "invoice_number": "INV-20261014-ABCDE",
        "customer_name": "Budi",
        "customer_phone": "081234567890",
        "shoes": [
            {"id": "s1", "brand": "Nike", "service": "DEEP_CLEAN_EXPRESS", "service_type": "gold",
             "price": 35000, "discount_amount": 0, "process_status": "cleaning"},
            {"id": "s2", "brand": "Vans", "service": "UNYELLOWING", "service_type": "premium",
             "price": 40000, "discount_amount": 0, "process_status": "ready"},
        ],
        "payment_status": "unpaid",
        "subtotal": 75000,
        "total": 75000,
        "entry_date": "2026-10-14",
        "created_at": "2026-10-14T09:30:00Z",
    }
    payload.update(overrides)
    return payload


def create(client, table, payload, **kwargs):
    response = client.post(f"/api/{table}", json=payload, **kwargs)
    assert response.status_code == 201, response.get_json()
    return response.get_json()["row"]


class TestCrud:
    def test_create_list_update_delete(self, client, db_session):
        row = create(client, "customers", {"name": "Budi", "phone": "081234567890"})
        assert row["id"]
        assert row["total_orders"] == 0

        listed = client.get("/api/customers").get_json()["rows"]
        assert [r["id"] for r in listed] == [row["id"]]

        response = client.patch(f"/api/customers/{row['id']}", json={"total_orders": 1, "total_spent": 35000})
        assert response.status_code == 200
        assert response.get_json()["row"]["total_spent"] == 35000

        response = client.delete(f"/api/customers/{row['id']}")
        assert response.get_json() == {"deleted": row["id"]}
        assert client.get("/api/customers").get_json()["rows"] == []

    def test_list_filters(self, client, db_session):
        create(client, "app_users", {"username": "owner", "password": "x", "role": "superuser"})
        create(client, "app_users", {"username": "old", "password": "x", "role": "admin", "is_active": False})

        rows = client.get("/api/app_users?username=owner&is_active=true").get_json()["rows"]
        assert [r["username"] for r in rows] == ["owner"]
        assert client.get("/api/app_users?is_active=false").get_json()["rows"][0]["username"] == "old"

        response = client.get("/api/app_users?is_active=maybe")
        assert response.status_code == 400
        response = client.get("/api/app_users?shoe_size=42")
        assert response.status_code == 400

    def test_order_round_trip_keeps_shoes(self, client, db_session):
        row = create(client, "orders", order_payload())
        assert row["shoes"][1]["process_status"] == "ready"
        assert row["entry_date"] == "2026-10-14"
        assert row["created_at"] == "2026-10-14T09:30:00Z"

    @pytest.mark.parametrize("table,payload,fragment", [
        ("customers", {"name": "Budi"}, "Missing required fields: phone"),
        ("orders", order_payload(payment_status="refunded"), "payment_status"),
        ("orders", order_payload(shoes={"not": "a list"}), "shoes"),
        ("discounts", {"name": "Promo", "type": "bogus", "value": 10}, "type"),
        ("cash_flows", {"type": "income", "category": "Pesanan", "amount": 10**10}, "amount"),
        ("customers", {"id": "chosen", "name": "Budi", "phone": "0812"}, "id"),
        ("customers", {"name": "Budi", "phone": "0812", "vip": True}, "vip"),
    ])
    def test_validation_errors(self, client, db_session, table, payload, fragment):
        response = client.post(f"/api/{table}", json=payload)
        assert response.status_code == 400
        body = response.get_json()
        assert body["code"] == "invalid"
        assert fragment in body["error"]

    def test_unknown_table_and_row(self, client, db_session):
        assert client.get("/api/invoices").status_code == 404
        response = client.patch("/api/customers/nope", json={"name": "X"})
        assert response.status_code == 404
        assert response.get_json()["code"] == "not_found"
        assert client.delete("/api/customers/nope").status_code == 404

    def test_duplicate_username(self, client, db_session):
        create(client, "app_users", {"username": "owner", "password": "x", "role": "superuser"})
        response = client.post("/api/app_users", json={"username": "owner", "password": "y", "role": "admin"})
        assert response.status_code == 409
        assert response.get_json()["code"] == "conflict"

    def test_order_delete_cascades_cash_flows(self, client, db_session):
        order = create(client, "orders", order_payload(payment_status="paid", payment_method="cash"))
        create(client, "cash_flows", {"type": "income", "category": "Pesanan", "amount": 75000, "order_id": order["id"]})
        create(client, "cash_flows", {"type": "expense", "category": "Sabun", "amount": 5000})

        assert client.delete(f"/api/orders/{order['id']}").status_code == 200
        assert db_session.query(Order).count() == 0
        assert [c.category for c in db_session.query(CashFlow).all()] == ["Sabun"]


class TestStoreSettings:
    def test_singleton(self, client, db_session):
        response = client.get("/api/store_settings")
        assert response.status_code == 404

        row = create(client, "store_settings", {"name": "Dr.ShoezClean", "whatsapp_notification_enabled": True})
        assert client.get("/api/store_settings").get_json()["row"]["id"] == row["id"]

        response = client.post("/api/store_settings", json={"name": "Second"})
        assert response.status_code == 409

        response = client.patch(f"/api/store_settings/{row['id']}", json={"sidebar_bg_color": "#000000"})
        assert response.get_json()["row"]["sidebar_bg_color"] == "#000000"


class TestApiKey:
    def test_key_required_when_configured(self, app, client, db_session):
        app.config["SHOECLEAN_API_KEY"] = "s3cret"

        assert client.get("/api/customers").status_code == 401
        assert client.get("/api/customers", headers={"apikey": "wrong"}).status_code == 401
        assert client.get("/api/changes").status_code == 401
        assert client.get("/api/customers", headers={"apikey": "s3cret"}).status_code == 200

    def test_public_routes(self, app, client, db_session):
        app.config["SHOECLEAN_API_KEY"] = "s3cret"
        assert client.get("/api/health").status_code == 200
        assert client.get("/api/tracking/INV-NOPE").status_code == 404

    def test_cors_header_for_known_origin(self, client, db_session):
        response = client.get("/api/health", headers={"Origin": "http://localhost:5173"})
        assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
        response = client.get("/api/health", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in response.headers


class TestTracking:
    def test_track_by_invoice(self, client, db_session):
        create(client, "orders", order_payload(customer_id="c1", branch_id="b1"))

        response = client.get("/api/tracking/inv-20261014-abcde")
        assert response.status_code == 200
        order = response.get_json()["order"]
        assert order["invoice_number"] == "INV-20261014-ABCDE"
        assert order["overall_status"] == "cleaning"
        assert order["overall_status_label"] == "Sedang Disikat"
        assert [s["value"] for s in order["stages"]][0] == "received"
        assert "customer_id" not in order
        assert "branch_id" not in order

    def test_partial_invoice_match(self, client, db_session):
        create(client, "orders", order_payload())
        assert client.get("/api/tracking/ABCDE").status_code == 200


class TestChangeJournal:
    def test_writes_are_journaled(self, client, db_session):
        start = client.get("/api/changes?limit=0").get_json()
        assert start["events"] == []

        row = create(client, "branches", {"name": "Cabang Bandung"})
        client.patch(f"/api/branches/{row['id']}", json={"is_active": False})
        client.delete(f"/api/branches/{row['id']}")

        body = client.get(f"/api/changes?after={start['last_id']}").get_json()
        assert [(e["table"], e["event_type"]) for e in body["events"]] == [
            ("branches", "INSERT"),
            ("branches", "UPDATE"),
            ("branches", "DELETE"),
        ]
        assert body["last_id"] == body["events"][-1]["id"]

    def test_failed_write_is_not_journaled(self, client, db_session):
        start = client.get("/api/changes?limit=0").get_json()["last_id"]
        client.post("/api/customers", json={"name": "Budi"})
        assert client.get(f"/api/changes?after={start}").get_json()["events"] == []

    def test_paging_and_bad_params(self, client, db_session):
        start = client.get("/api/changes?limit=0").get_json()["last_id"]
        for n in range(3):
            create(client, "branches", {"name": f"Cabang {n}"})
        assert len(client.get(f"/api/changes?after={start}&limit=2").get_json()["events"]) == 2
        assert client.get("/api/changes?after=-1").status_code == 400


class TestHealth:
    def test_health(self, client, db_session):
        response = client.get("/api/health")
        body = response.get_json()
        assert response.status_code == 200
        assert body["status"] == "healthy"
        assert "last_change_id" in body["checks"]["database"]["details"]
