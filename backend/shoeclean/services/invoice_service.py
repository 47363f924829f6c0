# Overview: Invoice helpers; invoice numbers, overall shoe workflow status and WhatsApp messages.

from __future__ import annotations

import random
import re
import string
from datetime import datetime
from typing import Iterable, Optional
from urllib.parse import quote

from ..catalog import (
    DEFAULT_PROCESS_STATUS,
    PAYMENT_PAID,
    PROCESS_LABELS,
    PROCESS_ORDER,
    service_display_name,
)
from ..time_utils import utcnow

_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
_NON_DIGITS = re.compile(r"\D")

RULE = "-" * 24


def generate_invoice_number(now: Optional[datetime] = None, rng: Optional[random.Random] = None) -> str:
    """
    INV-YYYYMMDD-XXXXX with an uppercase alphanumeric suffix.

    Not globally unique; two orders colliding on the same day is accepted.
    """
    now = now or utcnow()
    rng = rng or random.SystemRandom()
    suffix = "".join(rng.choice(_SUFFIX_ALPHABET) for _ in range(5))
    return f"INV-{now:%Y%m%d}-{suffix}"


def overall_process_status(statuses: Iterable[Optional[str]]) -> str:
    """
    The least advanced stage among an order's line items.

    Missing or unknown statuses count as "received". An order without line
    items is reported as "received".
    """
    lowest = None
    for status in statuses:
        index = PROCESS_ORDER.index(status) if status in PROCESS_ORDER else 0
        if lowest is None or index < lowest:
            lowest = index
    if lowest is None:
        return DEFAULT_PROCESS_STATUS
    return PROCESS_ORDER[lowest]


def order_process_status(order) -> str:
    return overall_process_status(item.process_status for item in order.line_items)


def process_label(status: str) -> str:
    return PROCESS_LABELS.get(status, status)


def is_ready_for_pickup(order) -> bool:
    return bool(order.line_items) and order_process_status(order) in ("ready", "picked_up")


def format_rupiah(amount: int) -> str:
    """Rp 35.000 style, whole rupiah, dot as thousands separator."""
    sign = "-" if amount < 0 else ""
    return f"{sign}Rp {abs(int(amount)):,}".replace(",", ".")


def whatsapp_phone(phone: str) -> str:
    """Digits only, local 0-prefix replaced by the 62 country code."""
    digits = _NON_DIGITS.sub("", phone or "")
    if digits.startswith("0"):
        return "62" + digits[1:]
    if not digits.startswith("62"):
        return "62" + digits
    return digits


def compose_invoice_message(order, settings) -> str:
    lines = [
        f"*INVOICE {settings.name}*",
        RULE,
        f"No. Invoice: *{order.invoice_number}*",
    ]
    if order.entry_date:
        lines.append(f"Tanggal: {order.entry_date:%d %b %Y}")
    if order.estimated_date:
        lines.append(f"Estimasi: {order.estimated_date:%d %b %Y}")
    lines += ["", "*Pelanggan:*", order.customer_name, order.customer_phone, "", "*Detail Sepatu:*"]
    for index, item in enumerate(order.line_items, start=1):
        lines.append(f"{index}. {item.brand}")
        lines.append(f"   {service_display_name(item.service_key)} - {format_rupiah(item.unit_price)}")
    lines += [RULE, f"Subtotal: {format_rupiah(order.subtotal)}"]
    if order.discount > 0:
        lines.append(f"Diskon: -{format_rupiah(order.discount)}")
    lines.append(f"*TOTAL: {format_rupiah(order.total)}*")
    lines.append("")
    lines.append("Status: " + ("LUNAS" if order.payment_status == PAYMENT_PAID else "BELUM BAYAR"))
    if order.payment_method:
        lines.append(f"Metode: {order.payment_method.upper()}")
    if settings.bank_name or settings.bank_account:
        lines += [
            RULE,
            "*Pembayaran:*",
            f"{settings.bank_name or ''} - {settings.bank_account or ''}",
            f"a.n. {settings.account_holder or ''}",
        ]
    lines += [RULE, f"Terima kasih telah menggunakan jasa *{settings.name}*!"]
    if settings.address:
        lines.append(settings.address)
    if settings.phone:
        lines.append(settings.phone)
    return "\n".join(lines)


def compose_ready_message(order, settings) -> str:
    return (
        f"Halo {order.customer_name}!\n\n"
        f"Sepatu Anda dengan nomor invoice *{order.invoice_number}* sudah selesai "
        f"dan siap diambil di {settings.name}.\n\n"
        "Terima kasih telah mempercayakan sepatu Anda kepada kami!"
    )


def whatsapp_link(phone: str, message: str) -> str:
    return f"https://wa.me/{whatsapp_phone(phone)}?text={quote(message, safe='')}"
