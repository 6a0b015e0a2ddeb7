"""Insight engine -- pulls records from a source and runs every analysis."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from order_insights.analysis.customer_patterns import analyze_customer_patterns
from order_insights.analysis.normalizer import parse_timestamp
from order_insights.analysis.product_features import create_product_features
from order_insights.analysis.product_trends import analyze_product_trends
from order_insights.analysis.recommendations import generate_recommendations
from order_insights.analysis.results import is_insufficient

if TYPE_CHECKING:
    from order_insights.ingestion.record_source import RecordSource

logger = logging.getLogger(__name__)


def _elapsed_ms(t0: float) -> int:
    return int((time.monotonic() - t0) * 1000)


def _load_settings(settings):
    if settings is not None:
        return settings
    from config.settings import settings as default_settings
    return default_settings


def _window(
    now: datetime,
    days: int,
    start: datetime | None = None,
    end: datetime | None = None,
) -> tuple[datetime, datetime]:
    end = parse_timestamp(end) if end is not None else now
    start = parse_timestamp(start) if start is not None else end - timedelta(days=days)
    return start, end


def generate_insights(
    source: RecordSource,
    start: datetime | None = None,
    end: datetime | None = None,
    now: datetime | None = None,
    settings=None,
) -> dict:
    """Run product, customer and recommendation analyses over a date window.

    Args:
        source: Where orders, items and users are read from.
        start: Window start; defaults to ``analysis_window_days`` before end.
        end: Window end; defaults to now.
        now: Reference time; defaults to the current UTC time.
        settings: Settings object; defaults to ``config.settings.settings``.

    Returns:
        Combined insight dict, ready to serialize.
    """
    settings = _load_settings(settings)
    now = parse_timestamp(now) if now is not None else datetime.now(timezone.utc)
    start, end = _window(now, settings.analysis_window_days, start, end)

    t0 = time.monotonic()
    orders = source.fetch("orders", start, end)
    items = source.fetch("items", start, end)
    users = source.fetch("users", start, end)
    logger.info(
        "Insights: loaded %d orders, %d items, %d users in %dms",
        len(orders), len(items), len(users), _elapsed_ms(t0),
    )

    t0 = time.monotonic()
    product_trends = analyze_product_trends(
        items,
        orders,
        min_records=settings.min_product_records,
        min_months=settings.min_trend_months,
        trend_threshold=settings.trend_threshold_pct,
        price_threshold=settings.price_change_threshold_pct,
        list_limit=settings.trend_list_limit,
        top_limit=settings.top_products_limit,
    )
    customer_patterns = analyze_customer_patterns(
        orders, users, now=now, top_limit=settings.top_customers_limit,
    )
    product_features = create_product_features(items, orders)
    recommendations = generate_recommendations(
        product_features, orders, limit=settings.recommendation_limit,
    )
    logger.info("Insights: analyses finished in %dms", _elapsed_ms(t0))
    for name, result in (
        ("product_trends", product_trends),
        ("customer_patterns", customer_patterns),
        ("top_recommendations", recommendations),
    ):
        if is_insufficient(result):
            logger.warning("Insights: %s has insufficient data (%s)", name, result["error"])

    return {
        "timestamp": now.isoformat(),
        "date_range": {"start": start.isoformat(), "end": end.isoformat()},
        "product_trends": product_trends,
        "customer_patterns": customer_patterns,
        "top_recommendations": recommendations,
        "data_points": {
            "orders": len(orders),
            "items": len(items),
            "users": len(users),
        },
    }


def get_user_recommendations(
    source: RecordSource,
    user_id: str,
    now: datetime | None = None,
    settings=None,
) -> dict:
    """Recommend products for one customer from recent order history."""
    settings = _load_settings(settings)
    now = parse_timestamp(now) if now is not None else datetime.now(timezone.utc)
    start, end = _window(now, settings.recommendation_window_days)

    orders = source.fetch("orders", start, end)
    items = source.fetch("items", start, end)
    logger.info(
        "Recommendations for %s: %d orders, %d items in window",
        user_id, len(orders), len(items),
    )

    product_features = create_product_features(items, orders)
    recommendations = generate_recommendations(
        product_features,
        orders,
        user_id=user_id,
        items=items,
        personalized=settings.personalized_recommendations,
        limit=settings.recommendation_limit,
    )
    return {
        "user_id": user_id,
        "recommendations": recommendations,
        "timestamp": now.isoformat(),
    }
