# storefront/services/reporting.py
"""
Profit & back-office reporting.

The aggregation functions are pure transforms over orders already loaded
in memory; ReportingService only loads the orders for a date range.

Profit only counts realized orders: payment captured AND order delivered.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Literal, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import get_settings
from storefront.errors import ValidationError
from storefront.models import Order
from storefront.services.orders import OrderService

logger = logging.getLogger(__name__)

GroupBy = Literal["day", "week", "month"]
GROUPINGS = ("day", "week", "month")


@dataclass
class ProfitData:
    """Profit figures for one time bucket."""
    date: str  # YYYY-MM-DD, first day of the bucket
    total_revenue: int
    total_cost: int
    total_profit: int
    order_count: int
    average_order_value: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ProfitSummary:
    """Profit figures collapsed over a whole date range."""
    total_revenue: int
    total_cost: int
    total_profit: int
    total_orders: int
    average_order_value: float
    profit_margin: float  # percent of revenue

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def is_realized(order: Order) -> bool:
    """Captured and delivered orders are the only ones with realized revenue."""
    return order.payment_status == "captured" and order.order_status == "delivered"


def select_realized(orders: Iterable[Order], start: datetime, end: datetime) -> List[Order]:
    if start > end:
        raise ValidationError("start must not be after end", field="start")
    return [o for o in orders if is_realized(o) and start <= o.created_at <= end]


def bucket_key(moment: datetime, group_by: str) -> str:
    """Bucket label: the day, the Sunday starting the week, or the first of the month."""
    if group_by == "day":
        return moment.strftime("%Y-%m-%d")
    if group_by == "week":
        # weekday(): Monday=0 ... Sunday=6
        days_since_sunday = (moment.weekday() + 1) % 7
        return (moment - timedelta(days=days_since_sunday)).strftime("%Y-%m-%d")
    if group_by == "month":
        return moment.strftime("%Y-%m-01")
    raise ValidationError(f"Invalid grouping: {group_by}", field="group_by")


def calculate_profit_data(
    orders: Iterable[Order],
    start: datetime,
    end: datetime,
    group_by: GroupBy = "day",
) -> List[ProfitData]:
    """Per-bucket revenue, cost and profit for realized orders in ``[start, end]``."""
    if group_by not in GROUPINGS:
        raise ValidationError(f"Invalid grouping: {group_by}", field="group_by")

    groups: Dict[str, Dict[str, int]] = {}
    for order in select_realized(orders, start, end):
        group = groups.setdefault(
            bucket_key(order.created_at, group_by),
            {"revenue": 0, "cost": 0, "count": 0},
        )
        group["revenue"] += order.total or 0
        group["cost"] += order.items_cost
        group["count"] += 1

    return [
        ProfitData(
            date=date,
            total_revenue=data["revenue"],
            total_cost=data["cost"],
            total_profit=data["revenue"] - data["cost"],
            order_count=data["count"],
            average_order_value=data["revenue"] / data["count"] if data["count"] else 0,
        )
        for date, data in sorted(groups.items())
    ]


def get_profit_summary(orders: Iterable[Order], start: datetime, end: datetime) -> ProfitSummary:
    """Single-bucket version of calculate_profit_data plus the profit margin."""
    realized = select_realized(orders, start, end)

    revenue = sum(order.total or 0 for order in realized)
    cost = sum(order.items_cost for order in realized)
    profit = revenue - cost

    return ProfitSummary(
        total_revenue=revenue,
        total_cost=cost,
        total_profit=profit,
        total_orders=len(realized),
        average_order_value=revenue / len(realized) if realized else 0,
        profit_margin=(profit / revenue) * 100 if revenue > 0 else 0,
    )


def summarize_customers(orders: Iterable[Order]) -> List[Dict[str, Any]]:
    """Customers keyed by email with order count, spend and last order date."""
    customers: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    for order in orders:
        created = order.created_at.isoformat() if order.created_at else None
        customer = customers.get(order.email)
        if customer is None:
            customers[order.email] = {
                "name": f"{order.first_name} {order.last_name}",
                "email": order.email,
                "phone": order.phone,
                "order_count": 1,
                "total_spent": order.total or 0,
                "last_order_date": created,
            }
            continue

        customer["order_count"] += 1
        customer["total_spent"] += order.total or 0
        if created and (customer["last_order_date"] is None or created > customer["last_order_date"]):
            customer["last_order_date"] = created

    return list(customers.values())


def rank_popular_products(orders: Iterable[Order], limit: int = 50) -> List[Dict[str, Any]]:
    """Products ordered by how many order lines they appear on."""
    stats: Dict[str, Dict[str, Any]] = {}
    for order in orders:
        for item in order.items or []:
            entry = stats.get(item.product_id)
            if entry is None:
                stats[item.product_id] = {
                    "product_id": item.product_id,
                    "title": item.title,
                    "purchase_count": 1,
                    "total_quantity": item.quantity,
                    "total_revenue": item.price * item.quantity,
                    "image_url": item.image_url,
                    "source_url": item.source_url,
                }
            else:
                entry["purchase_count"] += 1
                entry["total_quantity"] += item.quantity
                entry["total_revenue"] += item.price * item.quantity

    ranked = sorted(stats.values(), key=lambda s: s["purchase_count"], reverse=True)
    return ranked[:limit]


class ReportingService:
    """Loads orders from the database and feeds the aggregations above."""

    def __init__(self, session: AsyncSession, order_limit: Optional[int] = None):
        self.orders = OrderService(session)
        self.order_limit = order_limit or get_settings().REPORT_ORDER_LIMIT

    async def profit_report(self, start: datetime, end: datetime, group_by: GroupBy = "day") -> Dict[str, Any]:
        orders = await self.orders.list_realized_between(start, end)
        data = calculate_profit_data(orders, start, end, group_by)
        summary = get_profit_summary(orders, start, end)
        logger.info(f"Profit report {start.date()}..{end.date()} by {group_by}: {summary.total_orders} orders")
        return {"data": data, "summary": summary}

    async def customers(self) -> List[Dict[str, Any]]:
        return summarize_customers(await self.orders.list_orders(limit=self.order_limit))

    async def popular_products(self, limit: int = 50) -> List[Dict[str, Any]]:
        return rank_popular_products(await self.orders.list_orders(limit=500), limit=limit)
