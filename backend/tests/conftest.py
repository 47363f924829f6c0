"""
Pytest fixtures for shoeclean tests.

Provides the Flask app on in-memory SQLite and, for the dashboard core, an
in-memory RemoteStore whose operations can be made to fail on demand.
"""

import asyncio
import itertools
from datetime import datetime

import pytest

from shoeclean import create_app
from shoeclean.client.records import Customer, Discount, LineItem, Order, User
from shoeclean.client.remote import (
    COLLECTION_TABLES,
    SETTINGS_TABLE,
    ChangeEvent,
    RemoteReadError,
    RemoteStore,
    RemoteWriteError,
    SettingsNotFound,
    Subscription,
    dispatch_change,
)
from shoeclean.client.store import EntityStore
from shoeclean.config import ClientConfig
from shoeclean.extensions import db
from shoeclean.services.session_service import SessionFile


# =============================================================================
# SERVER
# =============================================================================


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'SHOECLEAN_API_KEY': None,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Clear all data but keep schema."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()
        app.config['SHOECLEAN_API_KEY'] = None


# =============================================================================
# DASHBOARD CORE
# =============================================================================


class FakeRemoteStore(RemoteStore):
    """
    Dict-backed RemoteStore.

    fail(op, table) makes the next matching calls raise; hold_inserts()
    parks inserts until release_inserts() so tests can look at the
    optimistic state.
    """

    def __init__(self):
        self.tables = {name: {} for name in (*COLLECTION_TABLES, SETTINGS_TABLE)}
        self.failures = {}
        self.calls = []
        self.callbacks = []
        self._ids = itertools.count(1)
        self._insert_gate = None

    # -- test controls --

    def fail(self, op, table, exc=None):
        if exc is None:
            error_cls = RemoteReadError if op.startswith("select") else RemoteWriteError
            exc = error_cls("simulated network error")
        self.failures[(op, table)] = exc

    def heal(self, op, table):
        self.failures.pop((op, table), None)

    def hold_inserts(self):
        self._insert_gate = asyncio.Event()

    def release_inserts(self):
        self._insert_gate.set()

    def seed(self, table, row):
        row = dict(row)
        row.setdefault("id", f"{table}-{next(self._ids)}")
        self.tables[table][row["id"]] = row
        return row

    def rows(self, table):
        return list(self.tables[table].values())

    async def emit(self, table, event_type="UPDATE"):
        for callback in list(self.callbacks):
            await dispatch_change(callback, ChangeEvent(table=table, event_type=event_type))

    def _check(self, op, table):
        self.calls.append((op, table))
        exc = self.failures.get((op, table))
        if exc is not None:
            raise exc

    # -- RemoteStore --

    async def select_all(self, table):
        self._check("select", table)
        return [dict(r) for r in self.tables[table].values()]

    async def select_where(self, table, filters):
        self._check("select_where", table)
        return [
            dict(r) for r in self.tables[table].values()
            if all(r.get(k) == v for k, v in filters.items())
        ]

    async def select_settings(self):
        self._check("select", SETTINGS_TABLE)
        rows = self.rows(SETTINGS_TABLE)
        if not rows:
            raise SettingsNotFound("no settings row")
        return dict(rows[0])

    async def insert(self, table, row):
        self._check("insert", table)
        if self._insert_gate is not None:
            await self._insert_gate.wait()
        return dict(self.seed(table, {k: v for k, v in row.items() if k != "id"}))

    async def update(self, table, row_id, fields):
        self._check("update", table)
        if row_id not in self.tables[table]:
            raise RemoteWriteError(f"{table}/{row_id} not found", status_code=404)
        self.tables[table][row_id].update(fields)
        return dict(self.tables[table][row_id])

    async def delete(self, table, row_id):
        self._check("delete", table)
        self.tables[table].pop(row_id, None)
        if table == "orders":
            for key, entry in list(self.tables["cash_flows"].items()):
                if entry.get("order_id") == row_id:
                    del self.tables["cash_flows"][key]

    async def subscribe(self, callback, tables=COLLECTION_TABLES):
        self.calls.append(("subscribe", None))
        self.callbacks.append(callback)

        fake = self

        class _Sub(Subscription):
            async def close(self):
                if callback in fake.callbacks:
                    fake.callbacks.remove(callback)
                await super().close()

        return _Sub()


FIXED_NOW = datetime(2026, 10, 14, 9, 30, 0)


@pytest.fixture
def remote():
    return FakeRemoteStore()


@pytest.fixture
def client_config():
    return ClientConfig(
        api_url="http://shoeclean.test",
        api_key=None,
        session_file="unused",
        poll_interval=0.01,
        request_timeout=5,
        allow_plaintext_passwords=False,
        log_level="DEBUG",
        bcrypt_rounds=4,
    )


@pytest.fixture
def store(remote, client_config, tmp_path):
    return EntityStore(
        remote,
        config=client_config,
        session_file=SessionFile(tmp_path / "session.json"),
        clock=lambda: FIXED_NOW,
    )


def make_line_item(item_id="item-1", price=35000, discount_amount=0, status="received", service="DEEP_CLEAN_EXPRESS"):
    return LineItem(
        id=item_id,
        brand="Nike",
        service_key=service,
        variant_key="gold",
        unit_price=price,
        discount_amount=discount_amount,
        process_status=status,
    )


def make_order(**overrides):
    items = overrides.pop("line_items", None) or [make_line_item()]
    subtotal = sum(i.unit_price for i in items)
    discount = sum(i.discount_amount for i in items)
    fields = dict(
        id="",
        invoice_number="INV-20261014-ABCDE",
        customer_id=None,
        customer_name="Budi",
        customer_phone="081234567890",
        line_items=items,
        payment_status="unpaid",
        subtotal=subtotal,
        discount=discount,
        total=subtotal - discount,
        created_at=FIXED_NOW,
    )
    fields.update(overrides)
    return Order(**fields)


def make_customer(**overrides):
    fields = dict(id="", name="Budi", phone="081234567890")
    fields.update(overrides)
    return Customer(**fields)


def make_discount(kind="percentage", value=10, **overrides):
    fields = dict(id="disc-1", name="Promo", kind=kind, value=value, is_active=True)
    fields.update(overrides)
    return Discount(**fields)


def make_user(**overrides):
    fields = dict(id="user-1", username="owner", password_hash="x", role="superuser", is_active=True, is_master=False)
    fields.update(overrides)
    return User(**fields)
