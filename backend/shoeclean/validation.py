from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Date, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .time_utils import parse_iso_date, parse_iso_datetime


# Maximum amount for any money column: Rp 999,999,999
MAX_AMOUNT = 999_999_999

MIN_PASSWORD_LENGTH = 6

# Indonesian mobile numbers: 08xx, 628xx or +628xx
PHONE_RE = re.compile(r"^(\+62|62|0)8[1-9][0-9]{7,10}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
TAG_RE = re.compile(r"<[^>]*>")


class ValidationError(ValueError):
    """400-level input problem (missing or malformed field)."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., second settings row)."""


class NotFoundError(LookupError):
    """404-level missing record."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.lstrip("-").isdigit():
                return int(stripped)
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    # Check DateTime before Date; both accept ISO-8601 strings
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, Date):
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                return parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
        raise ValidationError(f"{col.key} must be a date")

    if isinstance(coltype, JSON):
        if not isinstance(value, (list, dict)):
            raise ValidationError(f"{col.key} must be a JSON array or object")
        return value

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "" and k in required:
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_choice(patch: dict, field: str, choices) -> None:
    if field in patch and patch[field] is not None and patch[field] not in choices:
        raise ValidationError(f"{field} must be one of: {', '.join(choices)}")


def enforce_amount(patch: dict, field: str) -> None:
    if field in patch and patch[field] is not None:
        if abs(patch[field]) > MAX_AMOUNT:
            raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT:,}")


# ---------------------------------------------------------------------------
# Form-level helpers shared by the dashboard core
# ---------------------------------------------------------------------------

def sanitize_string(value: str | None) -> str:
    """Strip HTML tags and surrounding whitespace."""
    if not value:
        return ""
    return TAG_RE.sub("", value).strip()


def sanitize_fields(data: dict) -> dict:
    return {k: sanitize_string(v) if isinstance(v, str) else v for k, v in data.items()}


def normalize_phone(phone: str) -> str:
    return re.sub(r"[\s-]", "", phone or "")


def validate_required(value: str | None, field_name: str) -> None:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} is required")


def validate_phone(phone: str | None) -> None:
    cleaned = normalize_phone(phone or "")
    if not cleaned:
        raise ValidationError("phone is required")
    if not PHONE_RE.match(cleaned):
        raise ValidationError("phone format is invalid (example: 08123456789)")


def validate_email(email: str | None) -> None:
    if not email:
        raise ValidationError("email is required")
    if not EMAIL_RE.match(email):
        raise ValidationError("email format is invalid")


def validate_password(password: str | None) -> None:
    if not password:
        raise ValidationError("password is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"password must be at least {MIN_PASSWORD_LENGTH} characters")
