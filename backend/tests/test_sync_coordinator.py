import asyncio

from shoeclean.catalog import DEFAULT_SETTINGS
from shoeclean.client.records import Customer
from shoeclean.client.remote import ChangeEvent
from shoeclean.client.sync import MutationState, RemoteWriteSkipped, _swap_in, is_temp_id, new_temp_id

from conftest import make_customer, make_order


def run(coro):
    return asyncio.run(coro)


def test_temp_ids():
    temp = new_temp_id()
    assert is_temp_id(temp)
    assert not is_temp_id("2f1c7e0a")
    assert not is_temp_id(None)


def test_swap_in_never_duplicates():
    temp = Customer(id="temp-1", name="Budi", phone="081234567890")
    canonical = Customer(id="c1", name="Budi", phone="081234567890")
    other = Customer(id="c2", name="Sari", phone="085711112222")

    assert _swap_in([other, temp], "temp-1", canonical) == [other, canonical]
    # a refresh already brought the canonical row in
    assert _swap_in([canonical, other, temp], "temp-1", canonical) == [canonical, other]
    # a refresh dropped the temporary row
    assert _swap_in([other], "temp-1", canonical) == [other, canonical]


def test_pending_create_survives_refresh(store, remote):
    remote.seed("store_settings", dict(DEFAULT_SETTINGS))
    remote.seed("customers", make_customer(id="c1", phone="085711112222").to_row())

    async def scenario():
        remote.hold_inserts()
        pending = asyncio.create_task(store.add_customer(make_customer()))
        await asyncio.sleep(0)

        await store.fetch_initial_data()
        during = sorted(is_temp_id(c.id) for c in store.customers)

        remote.release_inserts()
        created = await pending
        return during, created

    during, created = run(scenario())
    assert during == [False, True]
    assert sorted(c.id for c in store.customers) == sorted(["c1", created.id])


def test_update_of_unconfirmed_record_is_not_sent(store, remote):
    async def scenario():
        remote.hold_inserts()
        pending = asyncio.create_task(store.add_customer(make_customer()))
        await asyncio.sleep(0)
        temp_id = store.customers[0].id
        result = await store.update_customer(temp_id, {"name": "Budi S"})
        remote.release_inserts()
        await pending
        return result

    result = run(scenario())
    assert result.state == MutationState.FAILED
    assert isinstance(result.error, RemoteWriteSkipped)
    assert ("update", "customers") not in remote.calls


def test_failed_delete_keeps_local_removal(store, remote):
    remote.seed("customers", make_customer(id="c1").to_row())
    remote.fail("delete", "customers")

    async def scenario():
        await store.fetch_initial_data()
        return await store.delete_customer("c1")

    result = run(scenario())
    assert result.state == MutationState.FAILED
    assert store.customers == ()
    assert "c1" in remote.tables["customers"]


def test_drain_waits_for_background_writes(store, remote):
    remote.seed("customers", make_customer(id="c1").to_row())

    async def scenario():
        await store.fetch_initial_data()
        store.update_customer("c1", {"name": "Budi S"})
        store.delete_customer("c1")
        await store.sync.drain()

    run(scenario())
    assert remote.rows("customers") == []


def test_change_events_are_coalesced(store, remote):
    remote.seed("store_settings", dict(DEFAULT_SETTINGS))

    async def scenario():
        store.sync.handle_change_event(_event("orders"))
        await asyncio.sleep(0)
        # a running refresh absorbs any number of events into one follow-up
        for _ in range(3):
            store.sync.handle_change_event(_event("customers"))
        await store.sync.wait_for_refresh()

    run(scenario())
    assert remote.calls.count(("select", "orders")) == 2


def test_realtime_event_refreshes_store(store, remote):
    remote.seed("store_settings", dict(DEFAULT_SETTINGS))

    async def scenario():
        await store.fetch_initial_data()
        await store.sync.start_realtime()
        await store.sync.start_realtime()
        remote.seed("orders", make_order(id="o-remote").to_row())
        await remote.emit("orders", "INSERT")
        await store.sync.wait_for_refresh()
        await store.sync.stop_realtime()
        return store.sync.realtime_active

    assert run(scenario()) is False
    assert [o.id for o in store.orders] == ["o-remote"]
    assert remote.calls.count(("subscribe", None)) == 1
    assert remote.callbacks == []


def test_listeners_see_every_replace(store):
    seen = []
    unsubscribe = store.on_change(seen.append)

    async def scenario():
        await store.add_customer(make_customer())

    run(scenario())
    unsubscribe()
    run(scenario())
    # optimistic insert, then the canonical swap
    assert seen == ["customers", "customers"]


def test_failing_listener_does_not_break_writes(store):
    def broken(_collection):
        raise RuntimeError("render failed")

    store.on_change(broken)
    created = run(store.add_customer(make_customer()))
    assert store.get_customer(created.id) is not None


def _event(table):
    return ChangeEvent(table=table, event_type="UPDATE")
