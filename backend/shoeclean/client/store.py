"""
Entity store: the dashboard's in-memory mirror of the remote store.

Six collections (orders, customers, discounts, cash_flows, users, branches),
the settings singleton and the logged-in user. All writes go through the
mutators here; they change local state immediately and hand remote
persistence to the SyncCoordinator.

- add_* coroutines wait for the canonical record (the server id is needed
  downstream, e.g. to attach a cash-flow entry to an order)
- update_* / delete_* return at once with the background asyncio.Task whose
  result is a SyncResult

Mutators that schedule background work must be called from a running event
loop.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Callable, Iterable, Mapping, Optional

from ..catalog import (
    CASH_FLOW_KINDS,
    CASH_INCOME,
    DISCOUNT_KINDS,
    DISCOUNT_PERCENTAGE,
    ORDER_INCOME_CATEGORY,
    PAYMENT_METHODS,
    PAYMENT_PAID,
    PAYMENT_STATUSES,
    PAYMENT_UNPAID,
    PROCESS_ORDER,
)
from ..config import ClientConfig, configure_logging
from ..services.auth_service import (
    AuthError,
    PermissionDeniedError,
    ensure_can_assign_role,
    ensure_can_manage_user,
    hash_password,
    needs_rehash,
    verify_password,
)
from ..services.invoice_service import generate_invoice_number
from ..services.login_throttle_service import LoginThrottle
from ..services.pricing_service import CatalogMiss, build_line_item, compute_order_totals
from ..services.session_service import STATE_EXPIRED, InactivityTimer, SessionFile
from ..time_utils import utcnow
from ..validation import (
    MAX_AMOUNT,
    ConflictError,
    NotFoundError,
    ValidationError,
    normalize_phone,
    sanitize_fields,
    sanitize_string,
    validate_email,
    validate_phone,
    validate_required,
)
from .records import Branch, CashFlow, Customer, Discount, Order, Record, Settings, User
from .remote import (
    HttpRemoteStore,
    RemoteError,
    RemoteStore,
    SettingsNotFound,
)
from .sync import MutationState, SyncCoordinator, SyncResult

logger = logging.getLogger(__name__)

# collection -> (remote table, record class)
COLLECTIONS: dict[str, tuple[str, type[Record]]] = {
    "orders": ("orders", Order),
    "customers": ("customers", Customer),
    "discounts": ("discounts", Discount),
    "cash_flows": ("cash_flows", CashFlow),
    "users": ("app_users", User),
    "branches": ("branches", Branch),
}

ChangeListener = Callable[[str], None]


class EntityStore:
    def __init__(
        self,
        remote: RemoteStore,
        *,
        config: Optional[ClientConfig] = None,
        session_file: Optional[SessionFile] = None,
        throttle: Optional[LoginThrottle] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.remote = remote
        self.config = config or ClientConfig()
        self.session_file = session_file
        self._clock = clock
        self.throttle = throttle or LoginThrottle(clock=clock)
        self.inactivity = InactivityTimer(clock=clock)
        self.sync = SyncCoordinator(self, remote)

        self._collections: dict[str, list] = {name: [] for name in COLLECTIONS}
        self._listeners: list[ChangeListener] = []
        self.settings: Settings = Settings.defaults()
        self.current_user: Optional[User] = None
        self.initialized = False
        self._settings_seed_attempted = False

    @classmethod
    def from_config(cls, config: ClientConfig) -> "EntityStore":
        configure_logging(config.log_level)
        return cls(
            HttpRemoteStore.from_config(config),
            config=config,
            session_file=SessionFile(config.session_file),
        )

    # -- collection plumbing ------------------------------------------

    def binding(self, collection: str) -> tuple[str, type[Record]]:
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise ValueError(f"Unknown collection {collection!r}") from None

    def _replace(self, collection: str, transform: Callable[[list], list]) -> None:
        """Swap in a new list for `collection`; readers never see a half-applied change."""
        self._collections[collection] = list(transform(list(self._collections[collection])))
        self._notify(collection)

    def _notify(self, collection: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(collection)
            except Exception:
                logger.exception("Change listener failed for %s", collection)

    def on_change(self, listener: ChangeListener) -> Callable[[], None]:
        """Call `listener(collection_name)` after every collection replace. Returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self, collection: str) -> tuple:
        self.binding(collection)
        return tuple(self._collections[collection])

    def get(self, collection: str, record_id: Optional[str]):
        if not record_id:
            return None
        for record in self._collections[collection]:
            if record.id == record_id:
                return record
        return None

    @property
    def orders(self) -> tuple[Order, ...]:
        return tuple(self._collections["orders"])

    @property
    def customers(self) -> tuple[Customer, ...]:
        return tuple(self._collections["customers"])

    @property
    def discounts(self) -> tuple[Discount, ...]:
        return tuple(self._collections["discounts"])

    @property
    def cash_flows(self) -> tuple[CashFlow, ...]:
        return tuple(self._collections["cash_flows"])

    @property
    def users(self) -> tuple[User, ...]:
        return tuple(self._collections["users"])

    @property
    def branches(self) -> tuple[Branch, ...]:
        return tuple(self._collections["branches"])

    def _now(self) -> datetime:
        return self._clock()

    # -- bulk read ----------------------------------------------------

    async def fetch_initial_data(self) -> None:
        """
        Read every collection and the settings row in parallel.

        A failing collection is logged and left empty; the others still load.
        A missing settings row is created from the defaults, once per store.
        """
        await asyncio.gather(
            *(self._fetch_collection(name) for name in COLLECTIONS),
            self._fetch_settings(),
        )
        self.initialized = True

    async def refresh(self) -> None:
        await self.fetch_initial_data()

    async def _fetch_collection(self, collection: str) -> None:
        table, record_cls = COLLECTIONS[collection]
        try:
            rows = await self.remote.select_all(table)
        except RemoteError as exc:
            logger.error("Loading %s failed, collection left empty: %s", table, exc)
            rows = []

        records = []
        for row in rows:
            try:
                records.append(record_cls.from_row(row))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed %s row %s: %s", table, row.get("id"), exc)

        # Creates still waiting on the server stay visible across a refresh
        loaded = {r.id for r in records}
        records.extend(r for r in self.sync.pending_creates(collection) if r.id not in loaded)
        self._replace(collection, lambda _: records)

    async def _fetch_settings(self) -> None:
        try:
            row = await self.remote.select_settings()
        except SettingsNotFound:
            await self._seed_settings()
            return
        except RemoteError as exc:
            logger.error("Loading store settings failed, using defaults: %s", exc)
            return
        self.settings = Settings.from_row(row)
        self._notify("settings")

    async def _seed_settings(self) -> None:
        if self._settings_seed_attempted:
            return
        self._settings_seed_attempted = True
        defaults = Settings.defaults()
        try:
            row = await self.remote.insert("store_settings", defaults.to_row(include_server_fields=False))
        except RemoteError as exc:
            logger.error("Creating default store settings failed: %s", exc)
            return
        logger.info("Default store settings created")
        self.settings = Settings.from_row(row)
        self._notify("settings")

    # -- orders -------------------------------------------------------

    def get_order(self, order_id: Optional[str]) -> Optional[Order]:
        return self.get("orders", order_id)

    def find_order_by_invoice(self, invoice_number: str) -> Optional[Order]:
        wanted = (invoice_number or "").strip().upper()
        for order in self._collections["orders"]:
            if order.invoice_number.upper() == wanted:
                return order
        return None

    def get_orders_by_branch(self, branch_id: Optional[str]) -> list[Order]:
        """Orders of one branch; None or "" selects the central store."""
        if not branch_id:
            return [o for o in self._collections["orders"] if not o.branch_id]
        return [o for o in self._collections["orders"] if o.branch_id == branch_id]

    def orders_for_customer(self, customer_id: str) -> list[Order]:
        return [o for o in self._collections["orders"] if o.customer_id == customer_id]

    def _validate_order(self, order: Order) -> None:
        validate_required(order.invoice_number, "invoice_number")
        validate_required(order.customer_name, "customer_name")
        validate_required(order.customer_phone, "customer_phone")
        if not order.line_items:
            raise ValidationError("at least one line item is required")
        if order.payment_status not in PAYMENT_STATUSES:
            raise ValidationError(f"payment_status must be one of {', '.join(PAYMENT_STATUSES)}")
        if order.payment_method is not None and order.payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")

    async def add_order(self, order: Order) -> Order:
        """
        Create an order and wait for its server id.

        Raises RemoteError (after rolling the local entry back) if the remote
        insert fails. On success the customer's running totals move once and a
        paid order gets its income cash-flow entry.
        """
        self._validate_order(order)
        now = self._now()
        order = replace(
            order,
            entry_date=order.entry_date or now.date(),
            created_at=order.created_at or now,
            updated_at=order.updated_at or now,
        )
        created = await self.sync.create("orders", order)

        customer = self.get_customer(created.customer_id)
        if customer is not None:
            self.update_customer(customer.id, {
                "total_orders": customer.total_orders + 1,
                "total_spent": customer.total_spent + created.total,
            })

        if created.payment_status == PAYMENT_PAID:
            await self._record_order_income(created, created.total)
        return created

    def update_order(self, order_id: str, changes: Mapping[str, Any]) -> asyncio.Task:
        """
        Merge `changes` into the order and push them in the background.

        An unpaid -> paid edge books the order's income once; the amount is the
        new total when one is given, else the order's current total.
        """
        changes = dict(Order.known_changes(changes))
        if "payment_status" in changes and changes["payment_status"] not in PAYMENT_STATUSES:
            raise ValidationError(f"payment_status must be one of {', '.join(PAYMENT_STATUSES)}")
        changes["updated_at"] = self._now()

        before = self.get_order(order_id)
        if before is None:
            logger.warning("update_order: %s is not in the local store", order_id)
        task = self.sync.update("orders", order_id, changes)

        if (
            before is not None
            and changes.get("payment_status") == PAYMENT_PAID
            and before.payment_status != PAYMENT_PAID
        ):
            amount = changes["total"] if "total" in changes else before.total
            self.sync.track(self._record_order_income(before.merged(changes), amount))
        return task

    def delete_order(self, order_id: str) -> asyncio.Task:
        """Remove the order and its cash-flow entries; the backend cascades the same delete."""
        self._replace("cash_flows", lambda items: [c for c in items if c.order_id != order_id])
        return self.sync.delete("orders", order_id)

    def update_line_item_status(self, order_id: str, item_id: str, status: str) -> bool:
        """Move one shoe to `status`; returns True when every shoe of the order is ready."""
        if status not in PROCESS_ORDER:
            raise ValidationError(f"process status must be one of {', '.join(PROCESS_ORDER)}")
        order = self.get_order(order_id)
        if order is None:
            raise NotFoundError(f"order {order_id} not found")
        if not any(item.id == item_id for item in order.line_items):
            raise NotFoundError(f"line item {item_id} not found in order {order.invoice_number}")

        items = [
            replace(item, process_status=status) if item.id == item_id else item
            for item in order.line_items
        ]
        self.update_order(order_id, {"line_items": items})
        return all(item.process_status == "ready" for item in items)

    async def _record_order_income(self, order: Order, amount: int) -> Optional[CashFlow]:
        for entry in self._collections["cash_flows"]:
            if entry.order_id == order.id and entry.kind == CASH_INCOME and entry.category == ORDER_INCOME_CATEGORY:
                logger.info("Income for %s already booked", order.invoice_number)
                return None
        if amount is None or not 0 <= amount <= MAX_AMOUNT:
            logger.warning("Income for %s not booked, amount %s is out of range", order.invoice_number, amount)
            return None
        return await self.add_cash_flow(CashFlow(
            id="",
            kind=CASH_INCOME,
            category=ORDER_INCOME_CATEGORY,
            description=f"Pembayaran {order.invoice_number}",
            amount=amount,
            date=self._now(),
            order_id=order.id,
        ))

    async def checkout(
        self,
        *,
        customer_name: str,
        customer_phone: str,
        items: Iterable[Mapping[str, Any]],
        payment_status: str = PAYMENT_UNPAID,
        payment_method: Optional[str] = None,
        estimated_date: Optional[date] = None,
        notes: Optional[str] = None,
        branch_id: Optional[str] = None,
    ) -> Order:
        """
        Order intake: find or create the customer, price the shoes and create the order.

        `items` are mappings with brand, service_key, variant_key and an
        optional discount_id.
        """
        customer_name = sanitize_string(customer_name)
        validate_required(customer_name, "customer_name")
        validate_phone(customer_phone)
        phone = normalize_phone(customer_phone)
        if payment_status == PAYMENT_PAID and not payment_method:
            raise ValidationError("payment_method is required for a paid order")

        line_items = []
        for position, item in enumerate(items, start=1):
            brand = sanitize_string(item.get("brand"))
            validate_required(brand, f"item {position} brand")
            discount = self.get_discount(item.get("discount_id"))
            try:
                line_items.append(build_line_item(
                    brand=brand,
                    service_key=item.get("service_key"),
                    variant_key=item.get("variant_key"),
                    discount=discount,
                ))
            except CatalogMiss as exc:
                raise ValidationError(f"item {position}: choose a service and a variant") from exc
        if not line_items:
            raise ValidationError("at least one line item is required")

        customer = self.find_customer_by_phone(phone)
        if customer is None:
            customer = await self.add_customer(Customer(id="", name=customer_name, phone=phone))

        totals = compute_order_totals(line_items)
        now = self._now()
        order = Order(
            id="",
            invoice_number=generate_invoice_number(now),
            customer_id=customer.id,
            customer_name=customer_name,
            customer_phone=phone,
            line_items=line_items,
            entry_date=now.date(),
            estimated_date=estimated_date,
            notes=sanitize_string(notes) or None,
            payment_status=payment_status,
            payment_method=payment_method,
            subtotal=totals.subtotal,
            discount=totals.discount,
            total=totals.total,
            branch_id=branch_id or None,
        )
        return await self.add_order(order)

    # -- customers ----------------------------------------------------

    def get_customer(self, customer_id: Optional[str]) -> Optional[Customer]:
        return self.get("customers", customer_id)

    def find_customer_by_phone(self, phone: str) -> Optional[Customer]:
        wanted = normalize_phone(phone)
        if not wanted:
            return None
        for customer in self._collections["customers"]:
            if normalize_phone(customer.phone) == wanted:
                return customer
        return None

    def search_customers(self, query: str) -> list[Customer]:
        needle = (query or "").strip().lower()
        return [
            c for c in self._collections["customers"]
            if needle in c.name.lower() or needle in normalize_phone(c.phone)
        ]

    async def add_customer(self, customer: Customer) -> Customer:
        name = sanitize_string(customer.name)
        validate_required(name, "name")
        validate_phone(customer.phone)
        customer = replace(
            customer,
            name=name,
            phone=normalize_phone(customer.phone),
            created_at=customer.created_at or self._now(),
        )
        return await self.sync.create("customers", customer)

    def update_customer(self, customer_id: str, changes: Mapping[str, Any]) -> asyncio.Task:
        changes = dict(changes)
        if "phone" in changes:
            validate_phone(changes["phone"])
            changes["phone"] = normalize_phone(changes["phone"])
        return self.sync.update("customers", customer_id, changes)

    def delete_customer(self, customer_id: str) -> asyncio.Task:
        return self.sync.delete("customers", customer_id)

    # -- discounts ----------------------------------------------------

    def get_discount(self, discount_id: Optional[str]) -> Optional[Discount]:
        return self.get("discounts", discount_id)

    def active_discounts(self) -> list[Discount]:
        return [d for d in self._collections["discounts"] if d.is_active]

    def _validate_discount_fields(self, kind: str, value: int) -> None:
        if kind not in DISCOUNT_KINDS:
            raise ValidationError(f"type must be one of {', '.join(DISCOUNT_KINDS)}")
        if value is None or value < 0:
            raise ValidationError("value must be zero or more")
        if kind == DISCOUNT_PERCENTAGE and value > 100:
            raise ValidationError("percentage value must be at most 100")

    async def add_discount(self, discount: Discount) -> Discount:
        validate_required(discount.name, "name")
        self._validate_discount_fields(discount.kind, discount.value)
        discount = replace(discount, name=sanitize_string(discount.name), created_at=discount.created_at or self._now())
        return await self.sync.create("discounts", discount)

    def update_discount(self, discount_id: str, changes: Mapping[str, Any]) -> asyncio.Task:
        current = self.get_discount(discount_id)
        if current is not None and ("kind" in changes or "value" in changes):
            self._validate_discount_fields(changes.get("kind", current.kind), changes.get("value", current.value))
        return self.sync.update("discounts", discount_id, changes)

    def delete_discount(self, discount_id: str) -> asyncio.Task:
        return self.sync.delete("discounts", discount_id)

    # -- cash flows ---------------------------------------------------

    def get_cash_flow(self, entry_id: Optional[str]) -> Optional[CashFlow]:
        return self.get("cash_flows", entry_id)

    async def add_cash_flow(self, entry: CashFlow) -> Optional[CashFlow]:
        """
        Book a cash-flow entry. Remote failure rolls the entry back, is
        logged and returns None instead of raising.
        """
        if entry.kind not in CASH_FLOW_KINDS:
            raise ValidationError(f"type must be one of {', '.join(CASH_FLOW_KINDS)}")
        validate_required(entry.category, "category")
        if entry.amount is None or not 0 <= entry.amount <= MAX_AMOUNT:
            raise ValidationError(f"amount must be between 0 and {MAX_AMOUNT}")
        now = self._now()
        entry = replace(entry, date=entry.date or now, created_at=entry.created_at or now)
        try:
            return await self.sync.create("cash_flows", entry)
        except RemoteError:
            logger.error("Cash-flow entry %r was not saved", entry.description)
            return None

    def update_cash_flow(self, entry_id: str, changes: Mapping[str, Any]) -> asyncio.Task:
        return self.sync.update("cash_flows", entry_id, changes)

    def delete_cash_flow(self, entry_id: str) -> asyncio.Task:
        return self.sync.delete("cash_flows", entry_id)

    # -- users --------------------------------------------------------

    def get_user(self, user_id: Optional[str]) -> Optional[User]:
        return self.get("users", user_id)

    async def add_user(self, username: str, password: str, role: str, *, is_active: bool = True) -> User:
        ensure_can_assign_role(self.current_user, None, role)
        username = sanitize_string(username)
        validate_required(username, "username")
        if any(u.username == username for u in self._collections["users"]):
            raise ConflictError(f"username {username!r} already exists")
        user = User(
            id="",
            username=username,
            password_hash=hash_password(password, rounds=self.config.bcrypt_rounds),
            role=role,
            is_active=is_active,
            created_at=self._now(),
        )
        return await self.sync.create("users", user)

    def update_user(self, user_id: str, changes: Mapping[str, Any]) -> asyncio.Task:
        """Role and account edits, gated by the acting user's authority. `password` is hashed here."""
        target = self.get_user(user_id)
        if target is None:
            raise NotFoundError(f"user {user_id} not found")
        changes = dict(changes)
        if "is_master" in changes:
            raise PermissionDeniedError("the master flag cannot be changed from the dashboard")
        if "role" in changes:
            ensure_can_assign_role(self.current_user, target, changes["role"])
        else:
            ensure_can_manage_user(self.current_user, target)
        if "password" in changes:
            changes["password_hash"] = hash_password(changes.pop("password"), rounds=self.config.bcrypt_rounds)
        task = self.sync.update("users", user_id, changes)
        if self.current_user is not None and self.current_user.id == user_id:
            self.current_user = self.get_user(user_id)
        return task

    def delete_user(self, user_id: str) -> asyncio.Task:
        target = self.get_user(user_id)
        if target is None:
            raise NotFoundError(f"user {user_id} not found")
        ensure_can_manage_user(self.current_user, target)
        if self.current_user is not None and self.current_user.id == user_id:
            raise ValidationError("you cannot delete your own account")
        if target.is_master:
            raise PermissionDeniedError("the master account cannot be deleted")
        return self.sync.delete("users", user_id)

    def change_password(self, current_password: str, new_password: str) -> asyncio.Task:
        """Self-service password change for the logged-in user."""
        user = self.current_user
        if user is None:
            raise AuthError("not logged in")
        if not verify_password(current_password, user.password_hash,
                               allow_plaintext=self.config.allow_plaintext_passwords):
            raise AuthError("current password is incorrect")
        new_hash = hash_password(new_password, rounds=self.config.bcrypt_rounds)
        self.current_user = replace(user, password_hash=new_hash)
        return self.sync.update("users", user.id, {"password_hash": new_hash})

    # -- branches -----------------------------------------------------

    def get_branch(self, branch_id: Optional[str]) -> Optional[Branch]:
        return self.get("branches", branch_id)

    def active_branches(self) -> list[Branch]:
        return [b for b in self._collections["branches"] if b.is_active]

    async def add_branch(self, branch: Branch) -> Branch:
        name = sanitize_string(branch.name)
        validate_required(name, "name")
        branch = replace(branch, name=name, created_at=branch.created_at or self._now())
        return await self.sync.create("branches", branch)

    def update_branch(self, branch_id: str, changes: Mapping[str, Any]) -> asyncio.Task:
        return self.sync.update("branches", branch_id, changes)

    def delete_branch(self, branch_id: str) -> asyncio.Task:
        return self.sync.delete("branches", branch_id)

    # -- settings -----------------------------------------------------

    def update_settings(self, changes: Mapping[str, Any]) -> asyncio.Task:
        changes = sanitize_fields(Settings.known_changes(changes))
        if "name" in changes:
            validate_required(changes["name"], "name")
        if changes.get("email"):
            validate_email(changes["email"])
        self.settings = self.settings.merged(changes)
        self._notify("settings")
        return self.sync.track(self._push_settings(Settings.row_changes(changes)))

    async def _push_settings(self, fields: dict) -> SyncResult:
        settings_id = self.settings.id
        try:
            if settings_id:
                await self.remote.update("store_settings", settings_id, fields)
            else:
                row = await self.remote.insert("store_settings", self.settings.to_row(include_server_fields=False))
                settings_id = row["id"]
                self.settings = replace(self.settings, id=settings_id)
        except RemoteError as exc:
            logger.error("Saving store settings failed, local change kept: %s", exc)
            return SyncResult("store_settings", settings_id or "", MutationState.FAILED, exc)
        return SyncResult("store_settings", settings_id, MutationState.CONFIRMED)

    # -- session ------------------------------------------------------

    async def _authenticate(self, username: str, password: str) -> User:
        rows = await self.remote.select_where("app_users", {"username": username, "is_active": True})
        if not rows:
            raise AuthError("unknown or inactive user")
        user = User.from_row(rows[0])
        if not verify_password(password, user.password_hash,
                               allow_plaintext=self.config.allow_plaintext_passwords):
            raise AuthError("wrong password")
        return user

    async def login(self, username: str, password: str) -> bool:
        """
        Returns False on bad credentials, an inactive account, a locked
        throttle or an unreachable store; never raises for those.
        """
        locked, remaining = self.throttle.is_locked()
        if locked:
            logger.warning("Login locked for another %ss", remaining)
            return False

        username = (username or "").strip()
        try:
            user = await self._authenticate(username, password)
        except AuthError as exc:
            self.throttle.record_failed_attempt()
            logger.info("Login failed for %r: %s", username, exc)
            return False
        except RemoteError as exc:
            logger.error("Login could not reach the store: %s", exc)
            return False

        self.throttle.reset()
        self.current_user = user
        self.inactivity.touch()
        if self.session_file is not None:
            self.session_file.save(user.id, user.username, now=self._now())

        await self.fetch_initial_data()
        if needs_rehash(user.password_hash):
            self.sync.update("users", user.id, {
                "password_hash": hash_password(password, rounds=self.config.bcrypt_rounds),
            })
            logger.info("Upgraded stored password hash for %r", user.username)
        await self.sync.start_realtime()
        logger.info("User %r logged in", user.username)
        return True

    async def resume_session(self) -> bool:
        """Restore the saved session: reload everything and re-check the account."""
        pointer = self.session_file.load() if self.session_file is not None else None
        if pointer is None:
            return False

        await self.fetch_initial_data()
        user = self.get_user(pointer.user_id)
        if user is None or not user.is_active:
            logger.info("Saved session for %r is no longer valid", pointer.username)
            self.session_file.clear()
            return False

        self.current_user = user
        self.inactivity.touch()
        await self.sync.start_realtime()
        return True

    async def logout(self) -> None:
        await self.sync.stop_realtime()
        await self.sync.drain()
        if self.session_file is not None:
            self.session_file.clear()
        username = self.current_user.username if self.current_user else None
        self.current_user = None
        self.initialized = False
        for name in COLLECTIONS:
            self._replace(name, lambda _: [])
        logger.info("User %r logged out", username)

    def touch(self) -> None:
        """Record user activity for the inactivity timeout."""
        self.inactivity.touch()

    async def enforce_inactivity(self) -> str:
        """Log out once the inactivity timer has expired; returns the timer state."""
        state = self.inactivity.state()
        if state == STATE_EXPIRED and self.current_user is not None:
            logger.info("Session expired after inactivity")
            await self.logout()
        return state
