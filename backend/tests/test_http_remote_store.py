import asyncio
import json

import httpx
import pytest

from shoeclean.client.remote import (
    ChangeEvent,
    HttpRemoteStore,
    RemoteReadError,
    RemoteWriteError,
    SettingsNotFound,
)


class Backend:
    """Records requests and answers from a route table."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"error": "no route", "code": "not_found"})
        if callable(handler):
            return handler(request)
        status, body = handler
        return httpx.Response(status, json=body)


def make_store(routes, **kwargs):
    backend = Backend(routes)
    store = HttpRemoteStore("http://shoeclean.test/", transport=httpx.MockTransport(backend), **kwargs)
    return store, backend


def run(store, coro):
    async def scenario():
        try:
            return await coro
        finally:
            await store.aclose()

    return asyncio.run(scenario())


def test_select_all_sends_api_key():
    store, backend = make_store({("GET", "/api/orders"): (200, {"rows": [{"id": "o1"}]})}, api_key="s3cret")
    assert run(store, store.select_all("orders")) == [{"id": "o1"}]
    assert backend.requests[0].headers["apikey"] == "s3cret"


def test_select_where_encodes_booleans():
    store, backend = make_store({("GET", "/api/app_users"): (200, {"rows": []})})
    run(store, store.select_where("app_users", {"username": "owner", "is_active": True}))
    params = backend.requests[0].url.params
    assert params["username"] == "owner"
    assert params["is_active"] == "true"


def test_insert_update_delete():
    def echo(request):
        return httpx.Response(201, json={"row": {"id": "c1", **json.loads(request.content)}})

    store, backend = make_store({
        ("POST", "/api/customers"): echo,
        ("PATCH", "/api/customers/c1"): (200, {"row": {"id": "c1", "name": "Budi S"}}),
        ("DELETE", "/api/customers/c1"): (200, {"deleted": "c1"}),
    })

    async def scenario():
        created = await store.insert("customers", {"name": "Budi"})
        updated = await store.update("customers", "c1", {"name": "Budi S"})
        await store.delete("customers", "c1")
        return created, updated

    created, updated = run(store, scenario())
    assert created == {"id": "c1", "name": "Budi"}
    assert updated["name"] == "Budi S"
    assert [r.method for r in backend.requests] == ["POST", "PATCH", "DELETE"]


def test_error_status_becomes_remote_error():
    store, _ = make_store({("POST", "/api/orders"): (400, {"error": "payment_status must be one of", "code": "invalid"})})
    with pytest.raises(RemoteWriteError) as excinfo:
        run(store, store.insert("orders", {}))
    assert excinfo.value.status_code == 400
    assert "payment_status" in str(excinfo.value)


def test_transport_failure_becomes_read_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    store, _ = make_store({("GET", "/api/branches"): refuse})
    with pytest.raises(RemoteReadError) as excinfo:
        run(store, store.select_all("branches"))
    assert excinfo.value.status_code is None


def test_missing_settings():
    store, _ = make_store({("GET", "/api/store_settings"): (404, {"error": "none", "code": "not_found"})})
    with pytest.raises(SettingsNotFound):
        run(store, store.select_settings())


def test_changes_after():
    store, backend = make_store({("GET", "/api/changes"): (200, {
        "events": [
            {"id": 8, "table": "orders", "event_type": "INSERT", "occurred_at": "2026-10-14T09:30:00Z"},
            {"id": 9, "table": "cash_flows", "event_type": "INSERT", "occurred_at": "2026-10-14T09:30:00Z"},
        ],
        "last_id": 9,
    })})
    events, cursor = run(store, store.changes_after(7))
    assert events[0] == ChangeEvent(table="orders", event_type="INSERT", id=8)
    assert cursor == 9
    assert backend.requests[0].url.params["after"] == "7"


def test_subscription_polls_and_filters_tables():
    state = {"served": False}

    def changes(request):
        after = int(request.url.params["after"])
        if request.url.params.get("limit") == "0":
            return httpx.Response(200, json={"events": [], "last_id": 5})
        if after == 5 and not state["served"]:
            state["served"] = True
            return httpx.Response(200, json={"events": [
                {"id": 6, "table": "orders", "event_type": "UPDATE"},
                {"id": 7, "table": "store_settings", "event_type": "UPDATE"},
            ], "last_id": 7})
        return httpx.Response(200, json={"events": [], "last_id": 7})

    store, _ = make_store({("GET", "/api/changes"): changes}, poll_interval=0.01)
    received = []

    async def scenario():
        subscription = await store.subscribe(received.append, tables=("orders",))
        for _ in range(100):
            if received:
                break
            await asyncio.sleep(0.01)
        await subscription.close()

    run(store, scenario())
    assert received == [ChangeEvent(table="orders", event_type="UPDATE", id=6)]


def test_malformed_body_becomes_read_error():
    def html(request):
        return httpx.Response(200, text="<html>proxy error</html>")

    store, _ = make_store({("GET", "/api/orders"): html})
    with pytest.raises(RemoteReadError):
        run(store, store.select_all("orders"))


def test_missing_rows_key_becomes_read_error():
    store, _ = make_store({("GET", "/api/customers"): (200, {"data": []})})
    with pytest.raises(RemoteReadError) as excinfo:
        run(store, store.select_all("customers"))
    assert excinfo.value.status_code == 200


def test_malformed_write_reply_becomes_write_error():
    store, _ = make_store({("POST", "/api/branches"): (201, {"ok": True})})
    with pytest.raises(RemoteWriteError):
        run(store, store.insert("branches", {"name": "Cabang 1"}))


def test_subscription_survives_bad_poll_and_failing_handler():
    polls = {"count": 0}

    def changes(request):
        if request.url.params.get("limit") == "0":
            return httpx.Response(200, json={"events": [], "last_id": 5})
        polls["count"] += 1
        if polls["count"] == 1:
            return httpx.Response(200, text="<html>proxy error</html>")
        if polls["count"] == 2:
            return httpx.Response(200, json={"last_id": 5})
        if polls["count"] == 3:
            return httpx.Response(200, json={"events": [
                {"id": 6, "table": "orders", "event_type": "INSERT"},
            ], "last_id": 6})
        if polls["count"] == 4:
            return httpx.Response(200, json={"events": [
                {"id": 7, "table": "customers", "event_type": "UPDATE"},
            ], "last_id": 7})
        return httpx.Response(200, json={"events": [], "last_id": 7})

    store, _ = make_store({("GET", "/api/changes"): changes}, poll_interval=0.01)
    received = []

    def handler(event):
        received.append(event)
        if event.table == "orders":
            raise RuntimeError("handler blew up")

    async def scenario():
        subscription = await store.subscribe(handler)
        for _ in range(200):
            if len(received) >= 2:
                break
            await asyncio.sleep(0.01)
        await subscription.close()

    run(store, scenario())
    assert received == [
        ChangeEvent(table="orders", event_type="INSERT", id=6),
        ChangeEvent(table="customers", event_type="UPDATE", id=7),
    ]
