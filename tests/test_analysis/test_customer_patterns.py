"""Tests for customer pattern analysis."""

from datetime import datetime, timedelta, timezone

from order_insights.analysis.customer_patterns import (
    FREQUENCY_BANDS,
    CustomerMetric,
    analyze_customer_patterns,
    build_customer_metric,
    compute_frequency_bands,
    compute_retention_cohorts,
    summarize_orders,
)
from order_insights.analysis.results import STATUS_INSUFFICIENT_DATA, STATUS_OK

NOW = datetime(2024, 7, 1, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------


def _order(order_id, user_id, when, amount="100", delivery="home", payment="upi", name=None):
    row = {
        "order_id": order_id,
        "user_id": user_id,
        "date": when.isoformat(),
        "amount": amount,
        "delivery_mode": delivery,
        "payment_method": payment,
    }
    if name is not None:
        row["user_name"] = name
    return row


def _make_orders():
    base = datetime(2024, 1, 10, 12, tzinfo=timezone.utc)
    return [
        _order("o1", "alice", base, "200", name="Alice"),
        _order("o2", "alice", base + timedelta(days=30), "100", delivery="pickup", name="Alice"),
        _order("o3", "alice", base + timedelta(days=60), "300", name="Alice"),
        _order("o4", "bob", base + timedelta(days=5), "50", payment="cash", name="Bob"),
        _order("o5", "carol", base + timedelta(days=40), "80", payment="card"),
        _order("o6", "carol", base + timedelta(days=45), "20", payment="card"),
    ]


def _metric(order_count):
    return CustomerMetric(
        id="x", name=None, mobile=None, order_count=order_count, total_spent=0.0,
        average_order_value=0.0, first_order=None, last_order=None,
        days_since_last_order=None, customer_age_days=0, avg_days_between_orders=0.0,
        preferred_delivery_mode="unknown", preferred_payment_method="unknown",
    )


# ---------------------------------------------------------------------------
# build_customer_metric
# ---------------------------------------------------------------------------


class TestBuildCustomerMetric:
    def test_two_orders_thirty_days_apart(self):
        start = datetime(2024, 5, 1, tzinfo=timezone.utc)
        orders = [
            {"order_id": "a", "user_id": "u", "date": start, "amount": 10.0},
            {"order_id": "b", "user_id": "u", "date": start + timedelta(days=30), "amount": 30.0},
        ]
        metric, first = build_customer_metric("u", orders, now=NOW)
        assert metric.order_count == 2
        assert metric.avg_days_between_orders == 30
        assert metric.customer_age_days == 30
        assert metric.total_spent == 40.0
        assert metric.average_order_value == 20.0
        assert metric.days_since_last_order == 31
        assert first == start

    def test_single_order(self):
        orders = [{"order_id": "a", "user_id": "u", "date": NOW - timedelta(days=3), "amount": 5.0}]
        metric, _ = build_customer_metric("u", orders, now=NOW)
        assert metric.avg_days_between_orders == 0
        assert metric.customer_age_days == 0
        assert metric.days_since_last_order == 3

    def test_unsorted_dates(self):
        orders = [
            {"order_id": "b", "date": NOW - timedelta(days=10)},
            {"order_id": "a", "date": NOW - timedelta(days=30)},
            {"order_id": "c", "date": NOW - timedelta(days=20)},
        ]
        metric, first = build_customer_metric("u", orders, now=NOW)
        assert first == NOW - timedelta(days=30)
        assert metric.avg_days_between_orders == 10
        assert metric.days_since_last_order == 10

    def test_preference_ties_keep_first_seen(self):
        orders = [
            {"order_id": "a", "delivery_mode": "pickup", "payment_method": "cash"},
            {"order_id": "b", "delivery_mode": "home", "payment_method": "upi"},
        ]
        metric, first = build_customer_metric("u", orders, now=NOW)
        assert metric.preferred_delivery_mode == "pickup"
        assert metric.preferred_payment_method == "cash"
        assert first is None
        assert metric.days_since_last_order is None

    def test_missing_preferences_are_unknown(self):
        metric, _ = build_customer_metric("u", [{"order_id": "a"}], now=NOW)
        assert metric.preferred_delivery_mode == "unknown"
        assert metric.preferred_payment_method == "unknown"

    def test_name_from_user_record(self):
        metric, _ = build_customer_metric(
            "u", [{"order_id": "a"}], user={"name": "Uma", "mobile": "98765"}, now=NOW,
        )
        assert metric.name == "Uma"
        assert metric.mobile == "98765"


# ---------------------------------------------------------------------------
# Cohorts and frequency bands
# ---------------------------------------------------------------------------


class TestRetentionCohorts:
    def test_rates(self):
        jan = datetime(2024, 1, 5, tzinfo=timezone.utc)
        feb = datetime(2024, 2, 5, tzinfo=timezone.utc)
        cohorts = compute_retention_cohorts([
            (_metric(3), jan), (_metric(1), jan), (_metric(1), jan), (_metric(2), feb),
        ])
        assert [c.cohort for c in cohorts] == ["2024-01", "2024-02"]
        assert cohorts[0].new_customers == 3
        assert cohorts[0].repeat_customers == 1
        assert cohorts[0].retention_rate == 33.33
        assert cohorts[1].retention_rate == 100.0

    def test_rate_bounds(self):
        jan = datetime(2024, 1, 5, tzinfo=timezone.utc)
        cohorts = compute_retention_cohorts([(_metric(n), jan) for n in (1, 1, 4, 9)])
        for cohort in cohorts:
            assert 0 <= cohort.retention_rate <= 100
            assert cohort.retention_rate == round(cohort.repeat_customers / cohort.new_customers * 100, 2)


class TestFrequencyBands:
    def test_band_edges(self):
        metrics = [_metric(n) for n in (1, 2, 3, 4, 6, 7, 10, 11, 25)]
        bands = {b.frequency: b.count for b in compute_frequency_bands(metrics)}
        assert bands == {
            "1 order": 1,
            "2-3 orders": 2,
            "4-6 orders": 2,
            "7-10 orders": 2,
            "10+ orders": 2,
        }

    def test_percentages(self):
        bands = compute_frequency_bands([_metric(1), _metric(1), _metric(5)])
        assert bands[0].percentage == 66.67
        assert bands[2].percentage == 33.33

    def test_all_bands_reported(self):
        bands = compute_frequency_bands([])
        assert [b.frequency for b in bands] == [label for label, _, _ in FREQUENCY_BANDS]
        assert all(b.percentage == 0.0 for b in bands)


# ---------------------------------------------------------------------------
# analyze_customer_patterns
# ---------------------------------------------------------------------------


class TestSummarizeOrders:
    def _make_orders(self):
        day = datetime(2024, 3, 1, 9, tzinfo=timezone.utc)
        return [
            {"order_id": "o1", "status": "delivered", "amount": 120.0, "date": day},
            {"order_id": "o2", "status": "delivered", "amount": 30.5, "date": day + timedelta(hours=5)},
            {"order_id": "o3", "status": "cancelled", "amount": 10.0, "created_at": day + timedelta(days=1)},
            {"order_id": "o4", "amount": 5.0},
        ]

    def test_totals(self):
        summary = summarize_orders(self._make_orders())
        assert summary["total_orders"] == 4
        assert summary["total_revenue"] == 165.5

    def test_orders_by_status(self):
        summary = summarize_orders(self._make_orders())
        assert summary["orders_by_status"][0] == {"status": "delivered", "count": 2, "percentage": 50.0}
        assert {e["status"] for e in summary["orders_by_status"]} == {"delivered", "cancelled", "unknown"}

    def test_sales_by_day_uses_created_at_fallback(self):
        summary = summarize_orders(self._make_orders())
        assert summary["sales_by_day"] == [
            {"date": "2024-03-01", "total": 150.5, "count": 2},
            {"date": "2024-03-02", "total": 10.0, "count": 1},
        ]

    def test_empty(self):
        summary = summarize_orders([])
        assert summary["total_orders"] == 0
        assert summary["total_revenue"] == 0.0
        assert summary["orders_by_status"] == []
        assert summary["sales_by_day"] == []


class TestAnalyzeCustomerPatterns:
    def test_top_customers(self):
        result = analyze_customer_patterns(_make_orders(), [], now=NOW)
        assert result["status"] == STATUS_OK
        assert result["total_customers"] == 3
        top = result["top_customers"]
        assert [c["id"] for c in top] == ["alice", "carol", "bob"]
        alice = top[0]
        assert alice["order_count"] == 3
        assert alice["total_spent"] == 600.0
        assert alice["average_order_value"] == 200.0
        assert alice["avg_days_between_orders"] == 30
        assert alice["preferred_delivery_mode"] == "home"
        assert alice["name"] == "Alice"
        assert alice["first_order"].startswith("2024-01-10")

    def test_delivery_and_payment_distribution(self):
        result = analyze_customer_patterns(_make_orders(), [], now=NOW)
        delivery = result["delivery_preferences"]
        assert delivery[0] == {"mode": "home", "count": 5, "percentage": 83.33}
        assert delivery[1] == {"mode": "pickup", "count": 1, "percentage": 16.67}
        payment = {p["method"]: p["count"] for p in result["payment_preferences"]}
        assert payment == {"upi": 3, "cash": 1, "card": 2}

    def test_retention(self):
        result = analyze_customer_patterns(_make_orders(), [], now=NOW)
        assert result["customer_retention"] == [
            {"cohort": "2024-01", "new_customers": 2, "repeat_customers": 1, "retention_rate": 50.0},
            {"cohort": "2024-02", "new_customers": 1, "repeat_customers": 1, "retention_rate": 100.0},
        ]

    def test_purchase_frequency(self):
        result = analyze_customer_patterns(_make_orders(), [], now=NOW)
        bands = {b["frequency"]: b["count"] for b in result["purchase_frequency"]}
        assert bands["1 order"] == 1
        assert bands["2-3 orders"] == 2

    def test_users_fill_names_and_sign_ups(self):
        users = [
            {"user_id": "carol", "name": "Carol", "mobile": "555", "created_at": "2024-02-01T08:00:00Z"},
            {"user_id": "dan", "name": "Dan", "created_at": "2024-02-01T09:00:00Z"},
            {"user_id": "eve", "name": "Eve", "created_at": "2024-02-03"},
        ]
        result = analyze_customer_patterns(_make_orders(), users, now=NOW)
        carol = next(c for c in result["top_customers"] if c["id"] == "carol")
        assert carol["name"] == "Carol"
        assert carol["mobile"] == "555"
        assert result["new_users"] == [
            {"date": "2024-02-01", "count": 2},
            {"date": "2024-02-03", "count": 1},
        ]

    def test_order_summary_included(self):
        result = analyze_customer_patterns(_make_orders(), None, now=NOW)
        assert result["total_orders"] == 6
        assert result["total_revenue"] == 750.0
        assert len(result["sales_by_day"]) == 6
        assert result["sales_by_day"][0] == {"date": "2024-01-10", "total": 200.0, "count": 1}
        assert result["orders_by_status"] == [{"status": "unknown", "count": 6, "percentage": 100.0}]

    def test_string_amounts_are_summed(self):
        orders = [_order("o1", "u", NOW - timedelta(days=1), "12.50"), _order("o2", "u", NOW, "7.5")]
        result = analyze_customer_patterns(orders, None, now=NOW)
        assert result["top_customers"][0]["total_spent"] == 20.0

    def test_empty_orders_insufficient(self):
        result = analyze_customer_patterns([], [{"user_id": "u"}])
        assert result["status"] == STATUS_INSUFFICIENT_DATA
        assert "error" in result

    def test_inputs_not_mutated(self):
        orders = _make_orders()
        snapshot = [dict(o) for o in orders]
        analyze_customer_patterns(orders, [], now=NOW)
        assert orders == snapshot
