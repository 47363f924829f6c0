# Overview: Password hashing/verification and role-assignment authority for dashboard accounts.

"""
Authentication helpers

Passwords are hashed with bcrypt. Accounts created by earlier releases carry
unsalted digests; verify_password still accepts them so those users can log
in, and needs_rehash tells the caller to upgrade the stored hash.

- SHA-256 hex digest (64 hex chars)
- 16-hex-char "simple" digest written where SHA-256 was unavailable
- plaintext, only when allow_plaintext is set (off by default)

ROLE AUTHORITY: exactly one account is the master (is_master). Only the
master may grant, remove or alter the superuser role, on any account
including its own. Cashiers manage no accounts.
"""

from __future__ import annotations

import hashlib
import hmac
import re

import bcrypt

from ..catalog import ROLE_CASHIER, ROLE_SUPERUSER, USER_ROLES
from ..validation import validate_password

DEFAULT_ROUNDS = 12

_HEX64 = re.compile(r"^[0-9a-f]{64}$")
_HEX16 = re.compile(r"^[0-9a-f]{16}$")


class AuthError(Exception):
    """Bad credentials, inactive account or locked login."""


class PermissionDeniedError(Exception):
    """The acting user may not perform this account change."""


def hash_password(password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Validate length (ValidationError), then hash with bcrypt. Stored as str."""
    validate_password(password)
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def is_bcrypt_hash(stored: str | None) -> bool:
    return bool(stored) and stored.startswith(("$2a$", "$2b$", "$2y$"))


def legacy_sha256_digest(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def _to_int32(value: int) -> int:
    return ((value + 2**31) % 2**32) - 2**31


def legacy_simple_digest(password: str) -> str:
    """djb2 over UTF-16 code units, as written by browsers without WebCrypto."""
    h = 5381
    units = password.encode("utf-16-le")
    for i in range(0, len(units), 2):
        code = units[i] | (units[i + 1] << 8)
        h = _to_int32(_to_int32(h << 5) + h + code)
    salted = _to_int32(h ^ 0x5F3759DF)
    return f"{abs(salted):08x}{abs(h):08x}"


def verify_password(password: str, stored: str | None, *, allow_plaintext: bool = False) -> bool:
    if not stored or password is None:
        return False

    if is_bcrypt_hash(stored):
        try:
            return bcrypt.checkpw(password.encode("utf-8"), stored.encode("utf-8"))
        except ValueError:
            # Corrupt hash column
            return False

    if _HEX64.match(stored):
        return hmac.compare_digest(legacy_sha256_digest(password), stored)
    if _HEX16.match(stored) and hmac.compare_digest(legacy_simple_digest(password), stored):
        return True

    if allow_plaintext:
        return hmac.compare_digest(password.encode("utf-8"), stored.encode("utf-8"))
    return False


def needs_rehash(stored: str | None) -> bool:
    return not is_bcrypt_hash(stored)


def _is_active(user) -> bool:
    return user is not None and bool(getattr(user, "is_active", False))


def can_manage_user(actor, target) -> bool:
    """May `actor` edit or delete the `target` account at all?"""
    if not _is_active(actor) or actor.role == ROLE_CASHIER:
        return False
    if target is not None and target.role == ROLE_SUPERUSER:
        return bool(actor.is_master)
    return True


def can_assign_role(actor, target, new_role: str) -> bool:
    """
    May `actor` give `new_role` to `target`?

    `target` is None when a new account is being created.
    """
    if new_role not in USER_ROLES:
        return False
    if not can_manage_user(actor, target):
        return False
    touches_superuser = new_role == ROLE_SUPERUSER or (
        target is not None and target.role == ROLE_SUPERUSER
    )
    if touches_superuser:
        return bool(actor.is_master)
    return True


def ensure_can_assign_role(actor, target, new_role: str) -> None:
    if not can_assign_role(actor, target, new_role):
        who = getattr(actor, "username", None) or "anonymous"
        raise PermissionDeniedError(f"{who} may not assign role {new_role!r}")


def ensure_can_manage_user(actor, target) -> None:
    if not can_manage_user(actor, target):
        who = getattr(actor, "username", None) or "anonymous"
        raise PermissionDeniedError(f"{who} may not manage user {getattr(target, 'username', '?')!r}")
