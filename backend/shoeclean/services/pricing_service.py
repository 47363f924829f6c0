"""
Pricing Engine

Pure functions over the static service catalog. No I/O and no store access.

- price_line_item: catalog lookup, raises CatalogMiss while the selection is
  incomplete (callers keep the price at 0 until both keys are chosen)
- apply_discount: percentage discounts truncate to whole rupiah; fixed
  discounts are NOT clamped to the unit price
- compute_order_totals: total = subtotal - discount, never floored at zero
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from ..catalog import (
    DEFAULT_PROCESS_STATUS,
    DISCOUNT_FIXED,
    DISCOUNT_PERCENTAGE,
    SERVICES,
    CatalogService,
)
from ..client.records import LineItem


class CatalogMiss(LookupError):
    """Service or variant key not (yet) in the catalog; the price is not computable."""

    def __init__(self, service_key: str | None, variant_key: str | None):
        super().__init__(f"No catalog price for service={service_key!r} variant={variant_key!r}")
        self.service_key = service_key
        self.variant_key = variant_key


@dataclass(frozen=True)
class OrderTotals:
    subtotal: int
    discount: int
    total: int


def price_line_item(
    service_key: str | None,
    variant_key: str | None,
    catalog: Mapping[str, CatalogService] = SERVICES,
) -> int:
    service = catalog.get(service_key) if service_key else None
    if service is None:
        raise CatalogMiss(service_key, variant_key)
    variant = service.variants.get(variant_key) if variant_key else None
    if variant is None:
        raise CatalogMiss(service_key, variant_key)
    return variant.price


def price_or_zero(
    service_key: str | None,
    variant_key: str | None,
    catalog: Mapping[str, CatalogService] = SERVICES,
) -> int:
    """Form helper: an incomplete selection prices at 0 instead of raising."""
    try:
        return price_line_item(service_key, variant_key, catalog)
    except CatalogMiss:
        return 0


def apply_discount(unit_price: int, discount) -> int:
    """
    Discount amount for one line item.

    `discount` is anything with `kind` and `value` attributes (a Discount
    record) or None. Unknown kinds yield 0.
    """
    if discount is None:
        return 0
    kind = getattr(discount, "kind", None)
    value = int(getattr(discount, "value", 0) or 0)
    if kind == DISCOUNT_PERCENTAGE:
        # floor division keeps whole rupiah
        return (unit_price * value) // 100
    if kind == DISCOUNT_FIXED:
        return value
    return 0


def compute_order_totals(line_items: Iterable) -> OrderTotals:
    items = list(line_items)
    subtotal = sum(int(item.unit_price or 0) for item in items)
    discount = sum(int(item.discount_amount or 0) for item in items)
    return OrderTotals(subtotal=subtotal, discount=discount, total=subtotal - discount)


def build_line_item(
    *,
    brand: str,
    service_key: str,
    variant_key: str,
    discount=None,
    item_id: Optional[str] = None,
    catalog: Mapping[str, CatalogService] = SERVICES,
):
    """
    Build a LineItem with its price and discount captured now.

    Raises CatalogMiss if the selection is incomplete; an inactive discount is
    ignored the same way the order form ignores it.
    """
    unit_price = price_line_item(service_key, variant_key, catalog)
    active = discount if discount is not None and getattr(discount, "is_active", True) else None
    return LineItem(
        id=item_id or str(uuid.uuid4()),
        brand=brand,
        service_key=service_key,
        variant_key=variant_key,
        unit_price=unit_price,
        discount_id=active.id if active is not None else None,
        discount_amount=apply_discount(unit_price, active),
        process_status=DEFAULT_PROCESS_STATUS,
    )
