"""Customer purchase patterns -- spend, cadence, preferences and retention.

Pure functions over order and user records. No store or network access.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

from order_insights.analysis.normalizer import normalize_records, parse_timestamp, safe_float
from order_insights.analysis.results import insufficient_data, ok
from order_insights.analysis.time_series import bucket_key, build_time_series, group_by

logger = logging.getLogger(__name__)

TOP_CUSTOMERS_LIMIT = 10

_SECONDS_PER_DAY = 86400

# (label, lowest order count, highest order count or None)
FREQUENCY_BANDS = (
    ("1 order", 1, 1),
    ("2-3 orders", 2, 3),
    ("4-6 orders", 4, 6),
    ("7-10 orders", 7, 10),
    ("10+ orders", 11, None),
)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _days(later: datetime, earlier: datetime) -> int:
    """Whole days between two timestamps, rounded half up."""
    return math.floor((later - earlier).total_seconds() / _SECONDS_PER_DAY + 0.5)


def _order_time(order: dict) -> datetime | None:
    return parse_timestamp(order.get("date") or order.get("created_at"))


def _as_text(value) -> str | None:
    """Render a field that may have been normalized to a number as text."""
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _most_common(values: list[str]) -> str:
    if not values:
        return "unknown"
    return Counter(values).most_common(1)[0][0]


def _share(count: int, total: int) -> float:
    return round(count / total * 100, 2) if total else 0.0


def _distribution(orders: list[dict], field: str, label: str) -> list[dict]:
    counts = Counter(str(o.get(field) or "unknown") for o in orders)
    total = len(orders)
    entries = [
        {label: value, "count": count, "percentage": _share(count, total)}
        for value, count in counts.items()
    ]
    entries.sort(key=lambda e: e["count"], reverse=True)
    return entries


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class CustomerMetric:
    """Order history summary for a single customer."""

    id: str
    name: str | None
    mobile: str | None
    order_count: int
    total_spent: float
    average_order_value: float
    first_order: str | None
    last_order: str | None
    days_since_last_order: int | None
    customer_age_days: int
    avg_days_between_orders: float
    preferred_delivery_mode: str
    preferred_payment_method: str


@dataclass
class RetentionCohort:
    """Customers whose first order fell in the same calendar month."""

    cohort: str
    new_customers: int
    repeat_customers: int
    retention_rate: float


@dataclass
class FrequencyBand:
    frequency: str
    count: int
    percentage: float


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def build_customer_metric(
    user_id: str,
    orders: list[dict],
    user: dict | None = None,
    now: datetime | None = None,
) -> tuple[CustomerMetric, datetime | None]:
    """Summarize one customer's normalized orders.

    Returns the metric and the timestamp of the customer's first order.
    """
    now = now or datetime.now(timezone.utc)
    user = user or {}

    total_spent = sum(safe_float(o.get("amount")) or 0.0 for o in orders)
    dates = sorted(d for d in (_order_time(o) for o in orders) if d is not None)

    gaps = [_days(dates[i], dates[i - 1]) for i in range(1, len(dates))]
    avg_gap = sum(gaps) / len(gaps) if gaps else 0.0

    name = orders[0].get("user_name") or user.get("name")
    mobile = orders[0].get("user_mobile") or user.get("mobile")

    metric = CustomerMetric(
        id=user_id,
        name=_as_text(name),
        mobile=_as_text(mobile),
        order_count=len(orders),
        total_spent=round(total_spent, 2),
        average_order_value=round(total_spent / len(orders), 2),
        first_order=dates[0].isoformat() if dates else None,
        last_order=dates[-1].isoformat() if dates else None,
        days_since_last_order=_days(now, dates[-1]) if dates else None,
        customer_age_days=_days(dates[-1], dates[0]) if len(dates) > 1 else 0,
        avg_days_between_orders=round(avg_gap, 2),
        preferred_delivery_mode=_most_common([str(o.get("delivery_mode") or "unknown") for o in orders]),
        preferred_payment_method=_most_common([str(o.get("payment_method") or "unknown") for o in orders]),
    )
    return metric, (dates[0] if dates else None)


def compute_retention_cohorts(
    first_orders: list[tuple[CustomerMetric, datetime]],
) -> list[RetentionCohort]:
    """Group customers by first-order month and measure repeat purchasing."""
    cohorts: dict[str, list[CustomerMetric]] = {}
    for metric, first in first_orders:
        cohorts.setdefault(bucket_key(first, "month"), []).append(metric)

    result = []
    for month in sorted(cohorts):
        members = cohorts[month]
        repeat = sum(1 for m in members if m.order_count > 1)
        result.append(RetentionCohort(
            cohort=month,
            new_customers=len(members),
            repeat_customers=repeat,
            retention_rate=_share(repeat, len(members)),
        ))
    return result


def compute_frequency_bands(metrics: list[CustomerMetric]) -> list[FrequencyBand]:
    """Histogram of customers by number of orders placed."""
    counts = {label: 0 for label, _, _ in FREQUENCY_BANDS}
    for metric in metrics:
        for label, low, high in FREQUENCY_BANDS:
            if metric.order_count >= low and (high is None or metric.order_count <= high):
                counts[label] += 1
                break
    total = len(metrics)
    return [
        FrequencyBand(frequency=label, count=count, percentage=_share(count, total))
        for label, count in counts.items()
    ]


def summarize_orders(orders: list[dict]) -> dict:
    """Order totals, status mix and per-day sales for normalized orders.

    Orders dated only by created_at are bucketed by that field.
    """
    dated = []
    for order in orders:
        moment = _order_time(order)
        if moment is not None:
            dated.append({"date": moment, "amount": order.get("amount")})
    sales_by_day = build_time_series(dated, "date", "amount", "day")
    return {
        "total_orders": len(orders),
        "total_revenue": round(sum(safe_float(o.get("amount")) or 0.0 for o in orders), 2),
        "orders_by_status": _distribution(orders, "status", "status"),
        "sales_by_day": [
            {"date": b.date, "total": round(b.sum, 2), "count": b.count}
            for b in sales_by_day
        ],
    }


def analyze_customer_patterns(
    orders: list[dict],
    users: list[dict] | None = None,
    now: datetime | None = None,
    top_limit: int = TOP_CUSTOMERS_LIMIT,
) -> dict:
    """Analyze customer purchasing patterns.

    Args:
        orders: Order records.
        users: Optional user records, used for names, phone numbers and
            sign-up counts.
        now: Reference time for recency; defaults to the current UTC time.
        top_limit: Number of highest-spending customers to return.

    Returns:
        Result dict or an insufficient-data marker when there are no orders.
    """
    normalized_orders = normalize_records(orders)
    normalized_users = normalize_records(users)
    if not normalized_orders:
        logger.warning("Customer pattern analysis skipped: no orders")
        return insufficient_data("Insufficient order data for analysis")

    now = parse_timestamp(now) if now is not None else datetime.now(timezone.utc)
    logger.info("Analyzing customer patterns over %d orders", len(normalized_orders))

    users_by_id = {uid: rows[0] for uid, rows in group_by(normalized_users, "user_id").items()}
    orders_by_user = group_by(normalized_orders, "user_id")

    metrics: list[CustomerMetric] = []
    first_orders: list[tuple[CustomerMetric, datetime]] = []
    for user_id, user_orders in orders_by_user.items():
        metric, first = build_customer_metric(user_id, user_orders, users_by_id.get(user_id), now)
        metrics.append(metric)
        if first is not None:
            first_orders.append((metric, first))

    top_customers = sorted(metrics, key=lambda m: m.total_spent, reverse=True)[:top_limit]
    new_users = build_time_series(normalized_users, "created_at", "count", "day")

    return ok(
        total_customers=len(metrics),
        top_customers=[asdict(m) for m in top_customers],
        delivery_preferences=_distribution(normalized_orders, "delivery_mode", "mode"),
        payment_preferences=_distribution(normalized_orders, "payment_method", "method"),
        customer_retention=[asdict(c) for c in compute_retention_cohorts(first_orders)],
        purchase_frequency=[asdict(b) for b in compute_frequency_bands(metrics)],
        new_users=[{"date": b.date, "count": b.count} for b in new_users],
        **summarize_orders(normalized_orders),
    )
