"""Analysis engine over order, item and user records.

Public API:
    analyze_product_trends(items, orders)
    analyze_customer_patterns(orders, users)
    create_product_features(items, orders)
    generate_recommendations(product_features, recent_orders, user_id=None)
    generate_insights(source) / get_user_recommendations(source, user_id)
"""

from order_insights.analysis.customer_patterns import analyze_customer_patterns
from order_insights.analysis.engine import generate_insights, get_user_recommendations
from order_insights.analysis.product_features import create_product_features
from order_insights.analysis.product_trends import analyze_product_trends
from order_insights.analysis.recommendations import generate_recommendations

__all__ = [
    "analyze_customer_patterns",
    "analyze_product_trends",
    "create_product_features",
    "generate_insights",
    "generate_recommendations",
    "get_user_recommendations",
]
