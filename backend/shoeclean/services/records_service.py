# Overview: Service-layer CRUD for the dashboard collections; validation policy per table and the settings singleton.

"""
Table records service

One generic CRUD path serves every collection; what differs per table is the
ModelValidationPolicy (writable/required fields), the enum choices and the
money columns.

- Ids are assigned here (server side); a client-sent id is refused.
- Deleting an order also deletes its cash-flow rows, in the same commit.
- store_settings is a singleton: a second insert is a ConflictError.
"""

from __future__ import annotations

from typing import Any, Mapping

from sqlalchemy import Boolean

from ..catalog import (
    CASH_FLOW_KINDS,
    DISCOUNT_KINDS,
    PAYMENT_METHODS,
    PAYMENT_STATUSES,
    USER_ROLES,
)
from ..extensions import db
from ..models import TABLE_MODELS, CashFlow, Order, StoreSettings
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_amount,
    enforce_choice,
    validate_payload,
)


POLICIES: dict[str, ModelValidationPolicy] = {
    "orders": ModelValidationPolicy(
        writable_fields={
            "invoice_number", "customer_id", "customer_name", "customer_phone", "shoes",
            "entry_date", "estimated_date", "pickup_date", "notes",
            "payment_status", "payment_method", "subtotal", "discount", "total",
            "branch_id", "created_at", "updated_at",
        },
        required_on_create={"invoice_number", "customer_name", "customer_phone", "shoes"},
    ),
    "customers": ModelValidationPolicy(
        writable_fields={"name", "phone", "total_orders", "total_spent", "created_at"},
        required_on_create={"name", "phone"},
    ),
    "discounts": ModelValidationPolicy(
        writable_fields={"name", "type", "value", "is_active", "created_at"},
        required_on_create={"name", "type", "value"},
    ),
    "cash_flows": ModelValidationPolicy(
        writable_fields={"type", "category", "description", "amount", "date", "order_id", "created_at"},
        required_on_create={"type", "category", "amount"},
    ),
    "app_users": ModelValidationPolicy(
        writable_fields={"username", "password", "role", "is_active", "is_master", "created_at"},
        required_on_create={"username", "password", "role"},
    ),
    "branches": ModelValidationPolicy(
        writable_fields={"name", "address", "phone", "is_active", "created_at"},
        required_on_create={"name"},
    ),
    "store_settings": ModelValidationPolicy(
        writable_fields={
            "name", "tagline", "phone", "address", "email", "website",
            "bank_name", "bank_account", "account_holder", "qr_payment", "logo",
            "whatsapp_notification_enabled", "sidebar_bg_color", "sidebar_text_color",
            "sidebar_hover_color", "sidebar_active_color",
        },
        required_on_create={"name"},
    ),
}

CHOICES: dict[str, dict[str, tuple]] = {
    "orders": {"payment_status": PAYMENT_STATUSES, "payment_method": PAYMENT_METHODS},
    "discounts": {"type": DISCOUNT_KINDS},
    "cash_flows": {"type": CASH_FLOW_KINDS},
    "app_users": {"role": USER_ROLES},
}

AMOUNT_FIELDS: dict[str, tuple[str, ...]] = {
    "orders": ("subtotal", "discount", "total"),
    "customers": ("total_spent",),
    "discounts": ("value",),
    "cash_flows": ("amount",),
}


def model_for(table: str):
    model = TABLE_MODELS.get(table)
    if model is None:
        raise NotFoundError(f"Unknown table: {table}")
    return model


def _validated(table: str, payload: Any, *, partial: bool) -> dict:
    if isinstance(payload, dict) and "id" in payload:
        raise ValidationError("Field not allowed: id")
    patch = validate_payload(model=model_for(table), payload=payload, policy=POLICIES[table], partial=partial)
    for field, choices in CHOICES.get(table, {}).items():
        enforce_choice(patch, field, choices)
    for field in AMOUNT_FIELDS.get(table, ()):
        enforce_amount(patch, field)
    if table == "orders" and "shoes" in patch and not isinstance(patch["shoes"], list):
        raise ValidationError("shoes must be a JSON array")
    return patch


def _filter_value(column, raw: str):
    if isinstance(column.type, Boolean):
        lowered = raw.strip().lower()
        if lowered in ("true", "1"):
            return True
        if lowered in ("false", "0"):
            return False
        raise ValidationError(f"{column.key} filter must be true or false")
    return raw


def list_rows(table: str, filters: Mapping[str, str] | None = None) -> list[dict]:
    """All rows of `table`, optionally narrowed by column equality filters."""
    model = model_for(table)
    columns = {c.key: c for c in model.__mapper__.columns}
    query = db.session.query(model)
    for key, raw in (filters or {}).items():
        column = columns.get(key)
        if column is None:
            raise ValidationError(f"Unknown filter: {key}")
        query = query.filter(column == _filter_value(column, raw))
    if "created_at" in columns:
        query = query.order_by(columns["created_at"].desc())
    return [row.to_dict() for row in query.all()]


def get_row(table: str, row_id: str):
    row = db.session.get(model_for(table), row_id)
    if row is None:
        raise NotFoundError(f"{table} row {row_id} not found")
    return row


def create_row(table: str, payload: Any) -> dict:
    patch = _validated(table, payload, partial=False)
    model = model_for(table)

    if table == "store_settings" and db.session.query(StoreSettings).count() > 0:
        raise ConflictError("Store settings already exist")
    if table == "app_users" and db.session.query(model).filter_by(username=patch["username"]).first():
        raise ConflictError(f"Username {patch['username']!r} already exists")

    row = model(**patch)
    db.session.add(row)
    db.session.commit()
    return row.to_dict()


def update_row(table: str, row_id: str, payload: Any) -> dict:
    patch = _validated(table, payload, partial=True)
    row = get_row(table, row_id)

    if table == "app_users" and "username" in patch and patch["username"] != row.username:
        if db.session.query(type(row)).filter_by(username=patch["username"]).first():
            raise ConflictError(f"Username {patch['username']!r} already exists")

    for key, value in patch.items():
        setattr(row, key, value)
    db.session.commit()
    return row.to_dict()


def delete_row(table: str, row_id: str) -> str:
    row = get_row(table, row_id)
    if isinstance(row, Order):
        # row-by-row so every cash-flow delete is journaled
        for entry in db.session.query(CashFlow).filter_by(order_id=row.id).all():
            db.session.delete(entry)
    db.session.delete(row)
    db.session.commit()
    return row_id


def get_settings() -> dict:
    row = db.session.query(StoreSettings).first()
    if row is None:
        raise NotFoundError("Store settings have not been created")
    return row.to_dict()


def find_order_by_invoice(invoice: str) -> Order | None:
    """Case-insensitive exact match first, then a partial match, newest first."""
    needle = (invoice or "").strip().upper()
    if not needle:
        return None
    query = db.session.query(Order).order_by(Order.created_at.desc())
    exact = query.filter(db.func.upper(Order.invoice_number) == needle).first()
    if exact is not None:
        return exact
    return query.filter(Order.invoice_number.ilike(f"%{needle}%")).first()
