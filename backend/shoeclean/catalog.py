"""
Static reference data: the service price list, workflow stages, payment enums
and the default store profile.

Prices are whole rupiah. The catalog is read-only at runtime; line items copy
the unit price when they are created so old invoices keep their price.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class CatalogVariant:
    name: str
    price: int


@dataclass(frozen=True)
class CatalogService:
    name: str
    duration: str
    variants: Mapping[str, CatalogVariant]


_RAW_SERVICES: dict[str, dict] = {
    "DEEP_CLEAN_EXPRESS": {
        "name": "Deep Clean Express",
        "duration": "1 hari",
        "variants": {
            "silver": ("Silver", 33000),
            "gold": ("Gold", 35000),
            "platinum": ("Platinum", 38000),
            "white": ("White Shoes", 40000),
        },
    },
    "DEEP_CLEAN_REGULER": {
        "name": "Deep Clean Reguler",
        "duration": "3-4 hari",
        "variants": {
            "silver": ("Silver", 19000),
            "gold": ("Gold", 22000),
            "platinum": ("Platinum", 25000),
            "white": ("White Shoes", 26000),
        },
    },
    "FAST_CLEAN_EXPRESS": {
        "name": "Fast Clean Express",
        "duration": "1 hari",
        "variants": {
            "silver": ("Silver", 27000),
            "gold": ("Gold", 29000),
            "platinum": ("Platinum", 31000),
            "white": ("White Shoes", 33000),
        },
    },
    "UNYELLOWING": {
        "name": "Unyellowing",
        "duration": "4-6 hari",
        "variants": {
            "platinum": ("Platinum", 37000),
            "premium": ("Premium", 40000),
        },
    },
    "RECOLOUR": {
        "name": "Recolour",
        "duration": "7-10 hari",
        "variants": {
            "platinum": ("Platinum", 88000),
            "premium": ("Premium", 115000),
        },
    },
    "REPAINT": {
        "name": "Repaint",
        "duration": "7-10 hari",
        "variants": {
            "platinum": ("Platinum", 86000),
            "premium": ("Premium", 110000),
        },
    },
}


def build_catalog(raw: Mapping[str, Mapping]) -> Mapping[str, CatalogService]:
    """Freeze a raw {key: {name, duration, variants: {key: (name, price)}}} mapping."""
    services = {}
    for service_key, entry in raw.items():
        variants = {
            variant_key: CatalogVariant(name=name, price=int(price))
            for variant_key, (name, price) in entry["variants"].items()
        }
        services[service_key] = CatalogService(
            name=entry["name"],
            duration=entry["duration"],
            variants=MappingProxyType(variants),
        )
    return MappingProxyType(services)


SERVICES: Mapping[str, CatalogService] = build_catalog(_RAW_SERVICES)


def service_display_name(service_key: str) -> str:
    """Human name for a service key; unknown keys are shown as-is."""
    service = SERVICES.get(service_key)
    if service is None:
        return service_key
    return service.name


# Payment
PAYMENT_UNPAID = "unpaid"
PAYMENT_PAID = "paid"
PAYMENT_CANCELLED = "cancelled"
PAYMENT_STATUSES = (PAYMENT_UNPAID, PAYMENT_PAID, PAYMENT_CANCELLED)

METHOD_CASH = "cash"
METHOD_TRANSFER = "transfer"
METHOD_QRIS = "qris"
PAYMENT_METHODS = (METHOD_CASH, METHOD_TRANSFER, METHOD_QRIS)

# Users
ROLE_SUPERUSER = "superuser"
ROLE_ADMIN = "admin"
ROLE_CASHIER = "cashier"
USER_ROLES = (ROLE_SUPERUSER, ROLE_ADMIN, ROLE_CASHIER)

# Discounts and cash flow
DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_FIXED = "fixed"
DISCOUNT_KINDS = (DISCOUNT_PERCENTAGE, DISCOUNT_FIXED)

CASH_INCOME = "income"
CASH_EXPENSE = "expense"
CASH_FLOW_KINDS = (CASH_INCOME, CASH_EXPENSE)

ORDER_INCOME_CATEGORY = "Pesanan"

# Shoe workflow, in order
PROCESS_STATUSES: tuple[tuple[str, str], ...] = (
    ("received", "Diterima"),
    ("cleaning", "Sedang Disikat"),
    ("drying", "Sedang Dikeringkan"),
    ("finishing", "Finishing"),
    ("ready", "Siap Diambil"),
    ("picked_up", "Sudah Diambil"),
)
PROCESS_ORDER: tuple[str, ...] = tuple(value for value, _ in PROCESS_STATUSES)
PROCESS_LABELS: Mapping[str, str] = MappingProxyType(dict(PROCESS_STATUSES))
DEFAULT_PROCESS_STATUS = "received"

# Orders without a branch belong to the central store
CENTRAL_BRANCH_ID = ""
CENTRAL_BRANCH_NAME = "Pusat"

DEFAULT_SETTINGS: Mapping[str, object] = MappingProxyType({
    "name": "Dr.ShoezClean",
    "tagline": "@dr.shoezclean",
    "phone": "+62 812-1456-7890",
    "address": "Jl. Contoh Alamat No. 123, Jakarta",
    "email": "info@drshoezclean.com",
    "website": "www.drshoezclean.com",
    "bank_name": "BCA",
    "bank_account": "123-456-7890",
    "account_holder": "Dr.ShoezClean",
    "qr_payment": None,
    "logo": None,
    "whatsapp_notification_enabled": False,
    "sidebar_bg_color": "#1a1a2e",
    "sidebar_text_color": "#e2e8f0",
    "sidebar_hover_color": "#2d2d4a",
    "sidebar_active_color": "#6366f1",
})
