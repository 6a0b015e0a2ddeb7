"""Product feature table -- purchase stats and co-purchase rankings.

Builds, per product, how often it was bought, how much of it, at what
average price, in how many orders, and which other products most often
share an order with it.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import asdict, dataclass, field

from order_insights.analysis.normalizer import normalize_records, safe_float

logger = logging.getLogger(__name__)

COMMON_PURCHASES_LIMIT = 5


# ---------------------------------------------------------------------------
# Item helpers
# ---------------------------------------------------------------------------


def item_quantity(row: dict) -> float:
    """Quantity of an item row; missing or zero means a single unit."""
    return safe_float(row.get("quantity")) or 1.0


def item_price(row: dict) -> float:
    return safe_float(row.get("price")) or 0.0


def index_orders(orders: list[dict]) -> dict[str, dict]:
    """Map order_id -> order for normalized orders that carry an id."""
    index: dict[str, dict] = {}
    for order in orders:
        order_id = order.get("order_id")
        if order_id is None or order_id == "":
            continue
        index[str(order_id)] = order
    return index


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass
class CoPurchase:
    """A product bought in the same order as another one."""
    id: str
    name: str
    count: int


@dataclass
class ProductFeature:
    """Derived purchase statistics for a single product."""
    id: str
    name: str
    external_id: str | None = None
    purchase_count: int = 0
    total_quantity: float = 0.0
    average_price: float = 0.0
    order_count: int = 0
    common_purchases: list[CoPurchase] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def create_product_features(
    items: list[dict],
    orders: list[dict] | None = None,
    limit: int = COMMON_PURCHASES_LIMIT,
) -> dict[str, dict]:
    """Build the product feature table.

    Args:
        items: Item records (one row per product line of an order).
        orders: Order records. When given, only items whose order_id
            references one of these orders count towards co-purchases.
            When None, items are grouped by their own order_id.
        limit: Maximum number of co-purchases kept per product.

    Returns:
        Mapping of product id -> feature dict. Empty when there are no
        usable items.
    """
    rows = normalize_records(items)
    if not rows:
        return {}

    known_orders: set[str] | None = None
    if orders is not None:
        known_orders = set(index_orders(normalize_records(orders)))

    features: dict[str, ProductFeature] = {}
    price_sums: Counter[str] = Counter()
    product_orders: dict[str, set[str]] = {}
    # order_id -> distinct product ids, in first-seen order
    order_products: dict[str, dict[str, None]] = {}

    for row in rows:
        product_id = row.get("item_id")
        if product_id is None or product_id == "":
            logger.debug("Skipping item row without item_id")
            continue
        product_id = str(product_id)

        feature = features.get(product_id)
        if feature is None:
            external_id = row.get("external_id")
            feature = ProductFeature(
                id=product_id,
                name=str(row.get("item_name") or product_id),
                external_id=str(external_id) if external_id not in (None, "") else None,
            )
            features[product_id] = feature

        feature.purchase_count += 1
        feature.total_quantity += item_quantity(row)
        price_sums[product_id] += item_price(row)

        order_id = row.get("order_id")
        if order_id is None or order_id == "":
            continue
        order_id = str(order_id)
        product_orders.setdefault(product_id, set()).add(order_id)
        if known_orders is None or order_id in known_orders:
            order_products.setdefault(order_id, {})[product_id] = None

    co_counts: dict[str, Counter[str]] = {pid: Counter() for pid in features}
    for products in order_products.values():
        if len(products) < 2:
            continue
        for product_id in products:
            for other_id in products:
                if other_id != product_id:
                    co_counts[product_id][other_id] += 1

    table: dict[str, dict] = {}
    for product_id, feature in features.items():
        feature.average_price = price_sums[product_id] / feature.purchase_count
        feature.order_count = len(product_orders.get(product_id, ()))
        ranked = sorted(co_counts[product_id].items(), key=lambda kv: kv[1], reverse=True)
        feature.common_purchases = [
            CoPurchase(
                id=other_id,
                name=features[other_id].name if other_id in features else other_id,
                count=count,
            )
            for other_id, count in ranked[:limit]
        ]
        table[product_id] = asdict(feature)

    logger.info(
        "Built features for %d products from %d item rows (%d orders)",
        len(table), len(rows), len(order_products),
    )
    return table
