"""
Typed in-memory records and their mapping to store rows.

Rows are the snake_case dicts exchanged with the remote store; records are
what the entity store keeps. Each record class declares COLUMNS
(attribute -> column); datetime and date attributes are parsed on the way in
and serialized to ISO-8601 on the way out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from typing import Any, ClassVar, Mapping, Optional

from ..catalog import DEFAULT_PROCESS_STATUS, DEFAULT_SETTINGS, PAYMENT_UNPAID
from ..time_utils import parse_iso_date, parse_iso_datetime, to_utc_z

logger = logging.getLogger(__name__)


def _dump(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_utc_z(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Record):
        return value.to_row()
    if isinstance(value, (list, tuple)):
        return [_dump(v) for v in value]
    return value


class Record:
    COLUMNS: ClassVar[dict[str, str]] = {}
    DATETIME_FIELDS: ClassVar[frozenset] = frozenset()
    DATE_FIELDS: ClassVar[frozenset] = frozenset()
    # Attributes never sent back to the store on create/update
    SERVER_FIELDS: ClassVar[frozenset] = frozenset({"id"})

    @classmethod
    def _load(cls, attr: str, value: Any) -> Any:
        if attr in cls.DATETIME_FIELDS:
            return value if isinstance(value, datetime) or value is None else parse_iso_datetime(value)
        if attr in cls.DATE_FIELDS:
            return value if isinstance(value, date) or value is None else parse_iso_date(value)
        return value

    @classmethod
    def from_row(cls, row: Mapping[str, Any]):
        kwargs = {}
        for attr, column in cls.COLUMNS.items():
            if column in row:
                kwargs[attr] = cls._load(attr, row[column])
        return cls(**kwargs)

    def to_row(self, include_server_fields: bool = True) -> dict:
        row = {}
        for attr, column in self.COLUMNS.items():
            if not include_server_fields and attr in self.SERVER_FIELDS:
                continue
            row[column] = _dump(getattr(self, attr))
        return row

    @classmethod
    def known_changes(cls, changes: Mapping[str, Any]) -> dict:
        """Keep only attributes the record has; unknown keys are no-ops."""
        names = {f.name for f in fields(cls)}
        unknown = set(changes) - names
        if unknown:
            logger.debug("Ignoring unknown %s fields: %s", cls.__name__, sorted(unknown))
        return {k: v for k, v in changes.items() if k in names}

    @classmethod
    def row_changes(cls, changes: Mapping[str, Any]) -> dict:
        """Partial attribute changes -> partial row for an update call."""
        return {
            cls.COLUMNS[attr]: _dump(value)
            for attr, value in changes.items()
            if attr in cls.COLUMNS and attr not in cls.SERVER_FIELDS
        }

    def merged(self, changes: Mapping[str, Any]):
        return replace(self, **changes)


@dataclass
class LineItem(Record):
    """One pair of shoes in an order, with its price captured at selection time."""

    id: str
    brand: str = ""
    service_key: str = ""
    variant_key: str = ""
    unit_price: int = 0
    discount_id: Optional[str] = None
    discount_amount: int = 0
    process_status: str = DEFAULT_PROCESS_STATUS

    COLUMNS: ClassVar[dict[str, str]] = {
        "id": "id",
        "brand": "brand",
        "service_key": "service",
        "variant_key": "service_type",
        "unit_price": "price",
        "discount_id": "discount_id",
        "discount_amount": "discount_amount",
        "process_status": "process_status",
    }
    SERVER_FIELDS: ClassVar[frozenset] = frozenset()

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "LineItem":
        item = super().from_row(row)
        # Older rows stored no status and a null discount amount
        if not item.process_status:
            item.process_status = DEFAULT_PROCESS_STATUS
        if item.discount_amount is None:
            item.discount_amount = 0
        return item


@dataclass
class Order(Record):
    id: str
    invoice_number: str
    customer_id: Optional[str] = None
    customer_name: str = ""
    customer_phone: str = ""
    line_items: list[LineItem] = field(default_factory=list)
    entry_date: Optional[date] = None
    estimated_date: Optional[date] = None
    pickup_date: Optional[date] = None
    notes: Optional[str] = None
    payment_status: str = PAYMENT_UNPAID
    payment_method: Optional[str] = None
    subtotal: int = 0
    discount: int = 0
    total: int = 0
    branch_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    COLUMNS: ClassVar[dict[str, str]] = {
        "id": "id",
        "invoice_number": "invoice_number",
        "customer_id": "customer_id",
        "customer_name": "customer_name",
        "customer_phone": "customer_phone",
        "line_items": "shoes",
        "entry_date": "entry_date",
        "estimated_date": "estimated_date",
        "pickup_date": "pickup_date",
        "notes": "notes",
        "payment_status": "payment_status",
        "payment_method": "payment_method",
        "subtotal": "subtotal",
        "discount": "discount",
        "total": "total",
        "branch_id": "branch_id",
        "created_at": "created_at",
        "updated_at": "updated_at",
    }
    DATETIME_FIELDS: ClassVar[frozenset] = frozenset({"created_at", "updated_at"})
    DATE_FIELDS: ClassVar[frozenset] = frozenset({"entry_date", "estimated_date", "pickup_date"})

    @classmethod
    def _load(cls, attr: str, value: Any) -> Any:
        if attr == "line_items":
            return [v if isinstance(v, LineItem) else LineItem.from_row(v) for v in (value or [])]
        return super()._load(attr, value)

    @property
    def shoe_count(self) -> int:
        return len(self.line_items)


@dataclass
class Customer(Record):
    id: str
    name: str
    phone: str
    total_orders: int = 0
    total_spent: int = 0
    created_at: Optional[datetime] = None

    COLUMNS: ClassVar[dict[str, str]] = {
        "id": "id",
        "name": "name",
        "phone": "phone",
        "total_orders": "total_orders",
        "total_spent": "total_spent",
        "created_at": "created_at",
    }
    DATETIME_FIELDS: ClassVar[frozenset] = frozenset({"created_at"})


@dataclass
class Discount(Record):
    id: str
    name: str
    kind: str
    value: int
    is_active: bool = True
    created_at: Optional[datetime] = None

    COLUMNS: ClassVar[dict[str, str]] = {
        "id": "id",
        "name": "name",
        "kind": "type",
        "value": "value",
        "is_active": "is_active",
        "created_at": "created_at",
    }
    DATETIME_FIELDS: ClassVar[frozenset] = frozenset({"created_at"})


@dataclass
class CashFlow(Record):
    id: str
    kind: str
    category: str
    amount: int
    description: str = ""
    date: Optional[datetime] = None
    order_id: Optional[str] = None
    created_at: Optional[datetime] = None

    COLUMNS: ClassVar[dict[str, str]] = {
        "id": "id",
        "kind": "type",
        "category": "category",
        "description": "description",
        "amount": "amount",
        "date": "date",
        "order_id": "order_id",
        "created_at": "created_at",
    }
    DATETIME_FIELDS: ClassVar[frozenset] = frozenset({"date", "created_at"})


@dataclass
class User(Record):
    id: str
    username: str
    password_hash: str
    role: str
    is_active: bool = True
    is_master: bool = False
    created_at: Optional[datetime] = None

    COLUMNS: ClassVar[dict[str, str]] = {
        "id": "id",
        "username": "username",
        "password_hash": "password",
        "role": "role",
        "is_active": "is_active",
        "is_master": "is_master",
        "created_at": "created_at",
    }
    DATETIME_FIELDS: ClassVar[frozenset] = frozenset({"created_at"})


@dataclass
class Branch(Record):
    id: str
    name: str
    address: str = ""
    phone: str = ""
    is_active: bool = True
    created_at: Optional[datetime] = None

    COLUMNS: ClassVar[dict[str, str]] = {
        "id": "id",
        "name": "name",
        "address": "address",
        "phone": "phone",
        "is_active": "is_active",
        "created_at": "created_at",
    }
    DATETIME_FIELDS: ClassVar[frozenset] = frozenset({"created_at"})


@dataclass
class Settings(Record):
    """The singleton store profile. `id` stays None until the row is known."""

    name: str
    tagline: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    bank_name: Optional[str] = None
    bank_account: Optional[str] = None
    account_holder: Optional[str] = None
    qr_payment_ref: Optional[str] = None
    logo_ref: Optional[str] = None
    whatsapp_notifications_enabled: Optional[bool] = False
    sidebar_bg_color: Optional[str] = None
    sidebar_text_color: Optional[str] = None
    sidebar_hover_color: Optional[str] = None
    sidebar_active_color: Optional[str] = None
    id: Optional[str] = None

    COLUMNS: ClassVar[dict[str, str]] = {
        "id": "id",
        "name": "name",
        "tagline": "tagline",
        "phone": "phone",
        "address": "address",
        "email": "email",
        "website": "website",
        "bank_name": "bank_name",
        "bank_account": "bank_account",
        "account_holder": "account_holder",
        "qr_payment_ref": "qr_payment",
        "logo_ref": "logo",
        "whatsapp_notifications_enabled": "whatsapp_notification_enabled",
        "sidebar_bg_color": "sidebar_bg_color",
        "sidebar_text_color": "sidebar_text_color",
        "sidebar_hover_color": "sidebar_hover_color",
        "sidebar_active_color": "sidebar_active_color",
    }

    @classmethod
    def defaults(cls) -> "Settings":
        return cls.from_row(DEFAULT_SETTINGS)
