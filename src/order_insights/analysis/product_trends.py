"""Product trend detection -- growth, decline, price movement and top sellers.

For each product with enough history, a monthly quantity series is fitted
with a least-squares line. A product counts as growing when the slope is
positive and quantity grew more than the threshold between the first and
last month, and as declining in the mirror case. Products that meet
neither condition are left out of both lists; there is no "stable" list,
and consumers rely on that two-list shape.
"""

from __future__ import annotations

import logging
import statistics
from dataclasses import asdict, dataclass

from order_insights.analysis.normalizer import normalize_records
from order_insights.analysis.product_features import index_orders, item_price, item_quantity
from order_insights.analysis.results import insufficient_data, ok
from order_insights.analysis.time_series import TimeBucket, build_time_series, group_by

logger = logging.getLogger(__name__)

MIN_PRODUCT_RECORDS = 5
MIN_TREND_MONTHS = 3
TREND_THRESHOLD_PCT = 10.0
PRICE_CHANGE_THRESHOLD_PCT = 5.0
TREND_LIST_LIMIT = 5
TOP_PRODUCTS_LIMIT = 10


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass
class TopProduct:
    """Sales totals for one product."""
    id: str
    name: str
    total_quantity: float
    total_revenue: float
    average_price: float
    order_count: int


@dataclass
class ProductTrend:
    """A product classified as growing or declining."""
    id: str
    name: str
    growth_rate: float  # percent, signed
    slope: float
    monthly_sales: list[TimeBucket]


@dataclass
class PriceTrend:
    """A product whose average monthly price moved noticeably."""
    id: str
    name: str
    price_change_percent: float
    price_series: list[TimeBucket]


# ---------------------------------------------------------------------------
# Math helpers
# ---------------------------------------------------------------------------


def linear_slope(values: list[float]) -> float:
    """Least-squares slope of *values* against their index 0..n-1."""
    n = len(values)
    if n < 2:
        return 0.0
    x_mean = (n - 1) / 2
    y_mean = statistics.mean(values)

    numerator = sum((i - x_mean) * (v - y_mean) for i, v in enumerate(values))
    denominator = sum((i - x_mean) ** 2 for i in range(n))
    if denominator == 0:
        return 0.0
    return numerator / denominator


def percent_change(first: float, last: float) -> float | None:
    """(last / first - 1) * 100, or None when *first* is zero."""
    if first == 0:
        return None
    return (last / first - 1) * 100


def growth_rate(series: list[TimeBucket]) -> float | None:
    """Percent change of the bucket sum from the first to the last bucket."""
    if len(series) < 2:
        return None
    return percent_change(series[0].sum, series[-1].sum)


def classify_trend(
    slope: float,
    rate: float | None,
    threshold: float = TREND_THRESHOLD_PCT,
) -> str | None:
    """Return "growing", "declining" or None when neither applies."""
    if rate is None:
        return None
    if slope > 0 and rate > threshold:
        return "growing"
    if slope < 0 and rate < -threshold:
        return "declining"
    return None


# ---------------------------------------------------------------------------
# Internal
# ---------------------------------------------------------------------------


def _prepare_items(items: list[dict], orders: list[dict]) -> list[dict]:
    """Apply quantity/price defaults and inherit dates from owning orders."""
    order_index = index_orders(orders)
    prepared = []
    for row in items:
        row = dict(row)
        row["quantity"] = item_quantity(row)
        row["price"] = item_price(row)
        if row.get("date") in (None, ""):
            order = order_index.get(str(row.get("order_id")))
            if order is not None:
                row["date"] = order.get("date") or order.get("created_at")
        prepared.append(row)
    return prepared


def _top_products(items_by_product: dict[str, list[dict]], limit: int) -> list[TopProduct]:
    totals = []
    for product_id, rows in items_by_product.items():
        total_quantity = sum(r["quantity"] for r in rows)
        total_revenue = sum(r["price"] * r["quantity"] for r in rows)
        totals.append(TopProduct(
            id=product_id,
            name=str(rows[0].get("item_name") or product_id),
            total_quantity=total_quantity,
            total_revenue=round(total_revenue, 2),
            average_price=round(total_revenue / total_quantity, 2) if total_quantity else 0.0,
            order_count=len({str(r.get("order_id")) for r in rows if r.get("order_id") is not None}),
        ))
    totals.sort(key=lambda t: t.total_quantity, reverse=True)
    return totals[:limit]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def analyze_product_trends(
    items: list[dict],
    orders: list[dict],
    *,
    min_records: int = MIN_PRODUCT_RECORDS,
    min_months: int = MIN_TREND_MONTHS,
    trend_threshold: float = TREND_THRESHOLD_PCT,
    price_threshold: float = PRICE_CHANGE_THRESHOLD_PCT,
    list_limit: int = TREND_LIST_LIMIT,
    top_limit: int = TOP_PRODUCTS_LIMIT,
) -> dict:
    """Analyze product sales trends.

    Args:
        items: Item records.
        orders: Order records; used to date items that carry no date.
        min_records: Products with fewer item rows are not trend-analyzed.
        min_months: Minimum monthly buckets required to fit a trend.
        trend_threshold: Growth rate (percent) a trend must exceed.
        price_threshold: Price change (percent) a price trend must exceed.
        list_limit: Cap for the growing, declining and price lists.
        top_limit: Cap for the top products ranking.

    Returns:
        Result dict with top_products, growing_products, declining_products
        and price_trends, or an insufficient-data marker.
    """
    normalized_items = normalize_records(items)
    normalized_orders = normalize_records(orders)
    if not normalized_items or not normalized_orders:
        logger.warning("Product trend analysis skipped: no items or orders")
        return insufficient_data("Insufficient data for analysis")

    logger.info(
        "Analyzing product trends over %d items and %d orders",
        len(normalized_items), len(normalized_orders),
    )
    prepared = _prepare_items(normalized_items, normalized_orders)
    items_by_product = group_by(prepared, "item_id")

    growing: list[ProductTrend] = []
    declining: list[ProductTrend] = []
    price_trends: list[PriceTrend] = []

    for product_id, rows in items_by_product.items():
        if len(rows) < min_records:
            continue
        name = str(rows[0].get("item_name") or product_id)

        monthly_sales = build_time_series(rows, "date", "quantity", "month")
        if len(monthly_sales) < min_months:
            continue

        slope = linear_slope([bucket.sum for bucket in monthly_sales])
        rate = growth_rate(monthly_sales)
        classification = classify_trend(slope, rate, trend_threshold)
        if classification is not None:
            trend = ProductTrend(
                id=product_id,
                name=name,
                growth_rate=round(rate, 2),
                slope=round(slope, 4),
                monthly_sales=monthly_sales,
            )
            (growing if classification == "growing" else declining).append(trend)

        price_series = build_time_series(rows, "date", "price", "month")
        if len(price_series) > 1:
            change = percent_change(price_series[0].average, price_series[-1].average)
            if change is not None and abs(change) > price_threshold:
                price_trends.append(PriceTrend(
                    id=product_id,
                    name=name,
                    price_change_percent=round(change, 2),
                    price_series=price_series,
                ))

    growing.sort(key=lambda t: t.growth_rate, reverse=True)
    declining.sort(key=lambda t: t.growth_rate)
    price_trends.sort(key=lambda t: abs(t.price_change_percent), reverse=True)

    logger.info(
        "Product trends: %d growing, %d declining, %d price movements",
        len(growing), len(declining), len(price_trends),
    )
    return ok(
        top_products=[asdict(t) for t in _top_products(items_by_product, top_limit)],
        growing_products=[asdict(t) for t in growing[:list_limit]],
        declining_products=[asdict(t) for t in declining[:list_limit]],
        price_trends=[asdict(t) for t in price_trends[:list_limit]],
    )
