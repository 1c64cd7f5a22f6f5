"""
Tests for profit aggregation and the back-office summaries.
"""

from datetime import datetime

import pytest

from storefront.errors import ValidationError
from storefront.services.reporting import (
    ReportingService,
    bucket_key,
    calculate_profit_data,
    get_profit_summary,
    rank_popular_products,
    summarize_customers,
)

START = datetime(2024, 1, 1)
END = datetime(2024, 1, 31, 23, 59, 59)


@pytest.fixture
def two_realized_orders(order_factory):
    return [
        order_factory([(700, 1000, 1)], created_at=datetime(2024, 1, 10, 9, 0)),
        order_factory([(600, 800, 1)], created_at=datetime(2024, 1, 20, 18, 30)),
    ]


class TestProfitSummary:

    def test_revenue_cost_profit(self, two_realized_orders):
        summary = get_profit_summary(two_realized_orders, START, END)

        assert summary.total_revenue == 1800
        assert summary.total_cost == 1300
        assert summary.total_profit == 500
        assert summary.total_orders == 2
        assert summary.average_order_value == 900
        assert summary.profit_margin == pytest.approx(27.78, abs=0.01)

    def test_only_captured_and_delivered_orders_count(self, order_factory, two_realized_orders):
        orders = two_realized_orders + [
            order_factory([(100, 5000, 1)], payment_status="authorized", order_status="delivered"),
            order_factory([(100, 5000, 1)], payment_status="captured", order_status="shipped"),
            order_factory([(100, 5000, 1)], payment_status="cancelled", order_status="cancelled"),
        ]

        summary = get_profit_summary(orders, START, END)

        assert summary.total_revenue == 1800
        assert summary.total_orders == 2

    def test_date_range_is_inclusive(self, order_factory):
        orders = [
            order_factory([(1, 2, 1)], created_at=START),
            order_factory([(1, 2, 1)], created_at=END),
            order_factory([(1, 2, 1)], created_at=datetime(2024, 2, 1)),
        ]

        assert get_profit_summary(orders, START, END).total_orders == 2

    def test_empty_range_has_zero_ratios(self):
        summary = get_profit_summary([], START, END)

        assert summary.total_revenue == 0
        assert summary.average_order_value == 0
        assert summary.profit_margin == 0

    def test_shipping_counts_as_revenue(self, order_factory):
        orders = [order_factory([(700, 1000, 1)], shipping_fee=200)]

        summary = get_profit_summary(orders, START, END)

        assert summary.total_revenue == 1200
        assert summary.total_profit == 500

    def test_start_after_end_rejected(self):
        with pytest.raises(ValidationError):
            get_profit_summary([], END, START)


class TestProfitData:

    def test_daily_buckets_sorted(self, two_realized_orders):
        data = calculate_profit_data(list(reversed(two_realized_orders)), START, END, "day")

        assert [d.date for d in data] == ["2024-01-10", "2024-01-20"]
        assert data[0].total_profit == 300
        assert data[1].total_profit == 200

    def test_monthly_bucket_collapses(self, two_realized_orders):
        data = calculate_profit_data(two_realized_orders, START, END, "month")

        assert len(data) == 1
        assert data[0].date == "2024-01-01"
        assert data[0].order_count == 2
        assert data[0].average_order_value == 900

    def test_weeks_start_on_sunday(self):
        # 2024-01-10 is a Wednesday, 2024-01-07 the Sunday before it
        assert bucket_key(datetime(2024, 1, 10), "week") == "2024-01-07"
        assert bucket_key(datetime(2024, 1, 7), "week") == "2024-01-07"
        assert bucket_key(datetime(2024, 1, 13), "week") == "2024-01-07"

    def test_invalid_grouping(self, two_realized_orders):
        with pytest.raises(ValidationError):
            calculate_profit_data(two_realized_orders, START, END, "year")


class TestBackOfficeSummaries:

    def test_customers_grouped_by_email(self, order_factory):
        orders = [
            order_factory([(700, 1000, 1)], email="a@example.com", created_at=datetime(2024, 1, 1)),
            order_factory([(700, 1000, 2)], email="a@example.com", created_at=datetime(2024, 1, 5)),
            order_factory([(700, 1000, 1)], email="b@example.com"),
        ]

        customers = {c["email"]: c for c in summarize_customers(orders)}

        assert customers["a@example.com"]["order_count"] == 2
        assert customers["a@example.com"]["total_spent"] == 3000
        assert customers["a@example.com"]["last_order_date"].startswith("2024-01-05")
        assert customers["b@example.com"]["order_count"] == 1

    def test_popular_products_ranked_by_purchase_count(self, order_factory):
        orders = [
            order_factory([(100, 120, 1)]),                # p_0
            order_factory([(100, 120, 3), (50, 60, 1)]),   # p_0, p_1
        ]

        ranked = rank_popular_products(orders)

        assert ranked[0]["product_id"] == "p_0"
        assert ranked[0]["purchase_count"] == 2
        assert ranked[0]["total_quantity"] == 4
        assert ranked[0]["total_revenue"] == 480
        assert ranked[1]["product_id"] == "p_1"
        assert len(rank_popular_products(orders, limit=1)) == 1


class TestReportingService:

    @pytest.mark.asyncio
    async def test_profit_report_from_database(self, db_session, two_realized_orders):
        for order in two_realized_orders:
            db_session.add(order)
        await db_session.flush()

        report = await ReportingService(db_session, order_limit=100).profit_report(START, END, "month")

        assert report["summary"].total_profit == 500
        assert report["data"][0].order_count == 2

    @pytest.mark.asyncio
    async def test_profit_report_is_not_truncated(self, db_session, order_factory):
        realized = [
            order_factory([(100, 120, 1)], created_at=datetime(2024, 1, day, 12, 0))
            for day in range(1, 6)
        ]
        open_orders = [
            order_factory([(100, 120, 1)], payment_status="authorized", order_status="confirmed",
                          created_at=datetime(2024, 1, 31, 12, 0))
            for _ in range(3)
        ]
        db_session.add_all(realized + open_orders)
        await db_session.flush()

        report = await ReportingService(db_session, order_limit=2).profit_report(START, END, "month")

        assert report["summary"].total_orders == 5
        assert report["summary"].total_revenue == 600
