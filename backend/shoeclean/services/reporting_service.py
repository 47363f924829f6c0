# Overview: Read-side statistics for the dashboard and reports; pure functions over order and cash-flow records.

"""
Reporting

Every function here takes record sequences (a snapshot of the entity store)
and returns fresh values. Nothing is cached and nothing is mutated.

Timestamps are naive UTC, like the rest of the package. A window is
[start, end] inclusive; the previous window has the same length and ends
(exclusive) where the current one starts.

Branch filter: "all", "central" (orders without a branch) or a branch id.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional, Sequence

from ..catalog import (
    CASH_EXPENSE,
    CASH_INCOME,
    CENTRAL_BRANCH_NAME,
    METHOD_CASH,
    METHOD_QRIS,
    METHOD_TRANSFER,
    PAYMENT_PAID,
    PAYMENT_UNPAID,
    service_display_name,
)
from ..time_utils import utcnow

PERIOD_TODAY = "today"
PERIOD_WEEK = "week"
PERIOD_MONTH = "month"
PERIOD_YEAR = "year"
PERIOD_CUSTOM = "custom"
PERIODS = (PERIOD_TODAY, PERIOD_WEEK, PERIOD_MONTH, PERIOD_YEAR, PERIOD_CUSTOM)

BRANCH_ALL = "all"
BRANCH_CENTRAL = "central"

KPI_KINDS = ("revenue", "orders", "shoes", "paid", "unpaid", "cash", "transfer", "qris")


class ReportError(Exception):
    """Raised when report parameters are invalid."""
    pass


@dataclass(frozen=True)
class Window:
    start: datetime
    end: datetime

    @property
    def length(self) -> timedelta:
        return self.end - self.start

    def contains(self, moment: Optional[datetime]) -> bool:
        return moment is not None and self.start <= moment <= self.end

    def previous(self) -> "Window":
        return Window(start=self.start - self.length, end=self.start)


@dataclass(frozen=True)
class DashboardStats:
    revenue: int
    total_orders: int
    total_shoes: int
    paid_orders: int
    unpaid_orders: int
    cash: int
    transfer: int
    qris: int
    previous_revenue: int
    revenue_change: float

    @property
    def average_order_value(self) -> float:
        return self.revenue / self.total_orders if self.total_orders else 0.0


@dataclass(frozen=True)
class BranchStats:
    branch_id: str
    name: str
    orders: int
    revenue: int


@dataclass(frozen=True)
class SeriesPoint:
    label: str
    revenue: int
    orders: int


@dataclass(frozen=True)
class ServiceStats:
    service_key: str
    name: str
    count: int
    revenue: int


@dataclass(frozen=True)
class CashFlowSummary:
    income: int
    expense: int

    @property
    def profit(self) -> int:
        return self.income - self.expense


def resolve_window(
    period: str,
    now: Optional[datetime] = None,
    *,
    custom_start: Optional[date] = None,
    custom_end: Optional[date] = None,
) -> Window:
    now = now or utcnow()
    if period == PERIOD_TODAY:
        return Window(start=now - timedelta(days=1), end=now)
    if period == PERIOD_WEEK:
        monday = now.date() - timedelta(days=now.weekday())
        return Window(start=datetime.combine(monday, time.min), end=now)
    if period == PERIOD_MONTH:
        return Window(start=datetime.combine(now.date().replace(day=1), time.min), end=now)
    if period == PERIOD_YEAR:
        return Window(start=datetime(now.year, 1, 1), end=now)
    if period == PERIOD_CUSTOM:
        first = custom_start or now.date().replace(day=1)
        last = custom_end or now.date()
        if last < first:
            raise ReportError("custom_end must not be before custom_start")
        return Window(start=datetime.combine(first, time.min), end=datetime.combine(last, time.max))
    raise ReportError(f"period must be one of {', '.join(PERIODS)}")


def matches_branch(order, branch_filter: str = BRANCH_ALL) -> bool:
    if branch_filter == BRANCH_ALL:
        return True
    if branch_filter == BRANCH_CENTRAL:
        return not order.branch_id
    return order.branch_id == branch_filter


def filter_orders(orders: Iterable, window: Optional[Window] = None, branch_filter: str = BRANCH_ALL) -> list:
    return [
        o for o in orders
        if (window is None or window.contains(o.created_at)) and matches_branch(o, branch_filter)
    ]


def _paid(orders: Iterable) -> list:
    return [o for o in orders if o.payment_status == PAYMENT_PAID]


def revenue(orders: Iterable) -> int:
    return sum(o.total for o in _paid(orders))


def order_count(orders: Sequence) -> int:
    return len(orders)


def shoe_count(orders: Iterable) -> int:
    return sum(len(o.line_items) for o in orders)


def payment_split(orders: Iterable) -> dict[str, int]:
    split = {METHOD_CASH: 0, METHOD_TRANSFER: 0, METHOD_QRIS: 0}
    for order in _paid(orders):
        if order.payment_method in split:
            split[order.payment_method] += order.total
    return split


def percent_change(current: float, previous: float) -> float:
    """(curr - prev) / prev * 100, one decimal; 100 when only prev is zero."""
    if previous == 0:
        return 100.0 if current != 0 else 0.0
    return round((current - previous) / previous * 100, 1)


def revenue_in_previous_window(orders: Iterable, window: Window, branch_filter: str = BRANCH_ALL) -> int:
    prev = window.previous()
    return revenue(
        o for o in orders
        if o.created_at is not None
        and prev.start <= o.created_at < prev.end
        and matches_branch(o, branch_filter)
    )


def dashboard_stats(orders: Sequence, window: Window, branch_filter: str = BRANCH_ALL) -> DashboardStats:
    current = filter_orders(orders, window, branch_filter)
    curr_revenue = revenue(current)
    prev_revenue = revenue_in_previous_window(orders, window, branch_filter)
    split = payment_split(current)
    return DashboardStats(
        revenue=curr_revenue,
        total_orders=len(current),
        total_shoes=shoe_count(current),
        paid_orders=sum(1 for o in current if o.payment_status == PAYMENT_PAID),
        unpaid_orders=sum(1 for o in current if o.payment_status == PAYMENT_UNPAID),
        cash=split[METHOD_CASH],
        transfer=split[METHOD_TRANSFER],
        qris=split[METHOD_QRIS],
        previous_revenue=prev_revenue,
        revenue_change=percent_change(curr_revenue, prev_revenue),
    )


def branch_performance(orders: Iterable, branches: Iterable, window: Optional[Window] = None) -> list[BranchStats]:
    """
    Order count and paid revenue per branch, central first in the candidate set.

    Every order in the window counts; only paid ones add to revenue.
    Orders pointing at an unknown (deleted) branch are not counted anywhere.
    Only branches with at least one order are returned, by revenue descending.
    """
    names = {"": CENTRAL_BRANCH_NAME}
    for branch in branches:
        names[branch.id] = branch.name
    counts: dict[str, list[int]] = {key: [0, 0] for key in names}

    for order in filter_orders(orders, window):
        key = order.branch_id or ""
        if key not in counts:
            continue
        counts[key][0] += 1
        if order.payment_status == PAYMENT_PAID:
            counts[key][1] += order.total

    stats = [
        BranchStats(branch_id=key, name=names[key], orders=n, revenue=total)
        for key, (n, total) in counts.items()
        if n > 0
    ]
    stats.sort(key=lambda s: s.revenue, reverse=True)
    return stats


def daily_revenue(orders: Iterable, days: int = 30, now: Optional[datetime] = None) -> list[SeriesPoint]:
    """Paid revenue per calendar day, oldest first, ending today."""
    today = (now or utcnow()).date()
    buckets: dict[date, list[int]] = defaultdict(lambda: [0, 0])
    for order in _paid(orders):
        if order.created_at is not None:
            bucket = buckets[order.created_at.date()]
            bucket[0] += order.total
            bucket[1] += 1
    series = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        total, count = buckets.get(day, (0, 0))
        series.append(SeriesPoint(label=day.isoformat(), revenue=total, orders=count))
    return series


def hourly_revenue(orders: Iterable, now: Optional[datetime] = None) -> list[SeriesPoint]:
    """Paid revenue for each of the last 24 hours, counting only today's orders."""
    now = now or utcnow()
    buckets: dict[int, list[int]] = defaultdict(lambda: [0, 0])
    for order in _paid(orders):
        if order.created_at is not None and order.created_at.date() == now.date():
            bucket = buckets[order.created_at.hour]
            bucket[0] += order.total
            bucket[1] += 1
    series = []
    for offset in range(23, -1, -1):
        moment = now - timedelta(hours=offset)
        if moment.date() == now.date():
            total, count = buckets.get(moment.hour, (0, 0))
        else:
            total, count = 0, 0
        series.append(SeriesPoint(label=f"{moment:%H}:00", revenue=total, orders=count))
    return series


def monthly_revenue(orders: Iterable, months: int = 12, now: Optional[datetime] = None) -> list[SeriesPoint]:
    now = now or utcnow()
    buckets: dict[tuple[int, int], list[int]] = defaultdict(lambda: [0, 0])
    for order in _paid(orders):
        if order.created_at is not None:
            bucket = buckets[(order.created_at.year, order.created_at.month)]
            bucket[0] += order.total
            bucket[1] += 1
    series = []
    for offset in range(months - 1, -1, -1):
        year, month = divmod(now.year * 12 + (now.month - 1) - offset, 12)
        total, count = buckets.get((year, month + 1), (0, 0))
        series.append(SeriesPoint(label=f"{year:04d}-{month + 1:02d}", revenue=total, orders=count))
    return series


def top_services(orders: Iterable, limit: int = 5) -> list[ServiceStats]:
    """Line items grouped by service, by captured unit price; all payment states count."""
    counts: dict[str, list[int]] = defaultdict(lambda: [0, 0])
    for order in orders:
        for item in order.line_items:
            bucket = counts[item.service_key]
            bucket[0] += 1
            bucket[1] += item.unit_price
    stats = [
        ServiceStats(service_key=key, name=service_display_name(key), count=n, revenue=total)
        for key, (n, total) in counts.items()
    ]
    stats.sort(key=lambda s: s.revenue, reverse=True)
    return stats[:limit]


def cash_flow_summary(cash_flows: Iterable, window: Optional[Window] = None) -> CashFlowSummary:
    income = expense = 0
    for entry in cash_flows:
        if window is not None and not window.contains(entry.date):
            continue
        if entry.kind == CASH_INCOME:
            income += entry.amount
        elif entry.kind == CASH_EXPENSE:
            expense += entry.amount
    return CashFlowSummary(income=income, expense=expense)


def kpi_details(orders: Sequence, kind: str) -> list:
    """
    The records behind one dashboard KPI card.

    `orders` should already be window/branch filtered. For "shoes" the
    result is (order, line_item) pairs; otherwise orders.
    """
    if kind == "orders":
        return list(orders)
    if kind == "shoes":
        return [(o, item) for o in orders for item in o.line_items]
    if kind in ("revenue", "paid"):
        return _paid(orders)
    if kind == "unpaid":
        return [o for o in orders if o.payment_status == PAYMENT_UNPAID]
    if kind in (METHOD_CASH, METHOD_TRANSFER, METHOD_QRIS):
        return [o for o in _paid(orders) if o.payment_method == kind]
    raise ReportError(f"kind must be one of {', '.join(KPI_KINDS)}")


def recompute_customer_stats(orders: Iterable) -> dict[str, tuple[int, int]]:
    """
    customer_id -> (total_orders, total_spent) rebuilt from orders.

    Matches the running aggregates: every order counts, whatever its
    payment status. Orders without a customer id are skipped.
    """
    stats: dict[str, list[int]] = defaultdict(lambda: [0, 0])
    for order in orders:
        if order.customer_id:
            stats[order.customer_id][0] += 1
            stats[order.customer_id][1] += order.total
    return {key: (n, total) for key, (n, total) in stats.items()}
