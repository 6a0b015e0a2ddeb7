"""Product recommendations from the product feature table.

Two modes: popularity ranking for anonymous or history-less customers,
and co-purchase affinity against what a known customer already bought.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from order_insights.analysis.normalizer import normalize_records
from order_insights.analysis.results import insufficient_data, ok

logger = logging.getLogger(__name__)

RECOMMENDATION_LIMIT = 5

MODE_PERSONALIZED = "personalized"
MODE_POPULAR = "popular"


@dataclass
class Recommendation:
    """A single recommended product."""
    id: str
    name: str
    score: float
    reason: str


def _customer_products(
    user_id: str,
    recent_orders: list[dict],
    items: list[dict] | None,
) -> tuple[int, dict[str, None]]:
    """Return the customer's order count and bought products in first-seen order."""
    user_orders = [o for o in recent_orders if str(o.get("user_id")) == user_id]
    order_ids = {str(o["order_id"]) for o in user_orders if o.get("order_id") is not None}

    products: dict[str, None] = {}
    for order in user_orders:
        for line in order.get("items") or ():
            product_id = line.get("item_id") or line.get("_id")
            if product_id is not None:
                products[str(product_id)] = None
    for row in items or ():
        if str(row.get("order_id")) in order_ids and row.get("item_id") is not None:
            products[str(row["item_id"])] = None
    return len(user_orders), products


def popular_recommendations(
    product_features: dict[str, dict],
    limit: int = RECOMMENDATION_LIMIT,
) -> list[Recommendation]:
    """Rank products by raw purchase count."""
    ranked = sorted(
        product_features.values(),
        key=lambda f: f.get("purchase_count", 0),
        reverse=True,
    )
    return [
        Recommendation(
            id=str(f["id"]),
            name=str(f.get("name") or f["id"]),
            score=f.get("purchase_count", 0),
            reason="Popular product",
        )
        for f in ranked[:limit]
    ]


def personalized_recommendations(
    product_features: dict[str, dict],
    purchased: dict[str, None] | set[str],
    limit: int = RECOMMENDATION_LIMIT,
) -> list[Recommendation]:
    """Co-purchases of the customer's products they have not bought yet."""
    candidates: list[Recommendation] = []
    for product_id in purchased:
        feature = product_features.get(product_id)
        if not feature:
            continue
        for related in feature.get("common_purchases") or ():
            related_id = str(related["id"])
            if related_id in purchased:
                continue
            candidates.append(Recommendation(
                id=related_id,
                name=str(related.get("name") or related_id),
                score=related.get("count", 0),
                reason=f"Frequently bought with {feature.get('name') or product_id}",
            ))

    candidates.sort(key=lambda r: r.score, reverse=True)
    seen: set[str] = set()
    unique: list[Recommendation] = []
    for rec in candidates:
        if rec.id in seen:
            continue
        seen.add(rec.id)
        unique.append(rec)
    return unique[:limit]


def generate_recommendations(
    product_features: dict[str, dict],
    recent_orders: list[dict],
    user_id: str | None = None,
    items: list[dict] | None = None,
    personalized: bool = True,
    limit: int = RECOMMENDATION_LIMIT,
) -> dict:
    """Generate product recommendations.

    Args:
        product_features: Table from create_product_features.
        recent_orders: Order records to look up the customer's history.
        user_id: Customer to personalize for; None for popularity ranking.
            A customer whose purchased products cannot be found, in
            *items* or embedded in their orders, is ranked by popularity.
        items: Item records joined to the orders by order_id.
        personalized: When False, always rank by popularity.
        limit: Maximum number of recommendations.

    Returns:
        Result dict with mode and recommendations, or an insufficient-data
        marker when there are no product features.
    """
    if not product_features:
        logger.warning("Recommendations skipped: no product features")
        return insufficient_data("Insufficient product data for recommendations")

    if user_id is not None and personalized:
        user_id = str(user_id)
        order_count, purchased = _customer_products(
            user_id, normalize_records(recent_orders), normalize_records(items),
        )
        if purchased:
            recs = personalized_recommendations(product_features, purchased, limit)
            logger.info(
                "Generated %d personalized recommendations for user %s from %d products",
                len(recs), user_id, len(purchased),
            )
            return ok(mode=MODE_PERSONALIZED, recommendations=[asdict(r) for r in recs])
        if order_count:
            logger.info(
                "No purchased products known for user %s across %d orders, falling back to popular products",
                user_id, order_count,
            )
        else:
            logger.info("User %s has no order history, falling back to popular products", user_id)

    recs = popular_recommendations(product_features, limit)
    return ok(mode=MODE_POPULAR, recommendations=[asdict(r) for r in recs])
