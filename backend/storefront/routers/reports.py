"""
Reports API Router.

Profit management and admin usage analytics for the back office.
"""

from datetime import date, datetime, time, timedelta
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database import get_db
from storefront.models import AdminUser
from storefront.routers.dependencies import require_permission
from storefront.schemas import CamelModel
from storefront.services.analytics import AnalyticsTracker, summarize_events
from storefront.services.reporting import ReportingService

router = APIRouter()


class ProfitDataResponse(CamelModel):
    date: str
    total_revenue: int
    total_cost: int
    total_profit: int
    order_count: int
    average_order_value: float


class ProfitSummaryResponse(CamelModel):
    total_revenue: int
    total_cost: int
    total_profit: int
    total_orders: int
    average_order_value: float
    profit_margin: float


class ProfitReportResponse(CamelModel):
    start_date: date
    end_date: date
    group_by: str
    data: List[ProfitDataResponse]
    summary: ProfitSummaryResponse


class PageViewResponse(CamelModel):
    page: str
    count: int
    unique_users: int


class FeatureUsageResponse(CamelModel):
    feature: str
    count: int


class UserActivityResponse(CamelModel):
    user_id: str
    user_role: str
    events: int


class AnalyticsReportResponse(CamelModel):
    page_views: List[PageViewResponse]
    feature_usage: List[FeatureUsageResponse]
    user_activity: List[UserActivityResponse]
    total_events: int


def _date_range(start_date: Optional[date], end_date: Optional[date], default_days: int = 30):
    """Whole days, inclusive at both ends. Defaults to the last ``default_days`` days."""
    end_date = end_date or datetime.utcnow().date()
    start_date = start_date or end_date - timedelta(days=default_days)
    return (
        start_date,
        end_date,
        datetime.combine(start_date, time.min),
        datetime.combine(end_date, time.max),
    )


@router.get("/profit", response_model=ProfitReportResponse)
async def profit_report(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    group_by: Literal["day", "week", "month"] = Query("day", alias="groupBy"),
    admin: AdminUser = Depends(require_permission("analytics.profit.view")),
    db: AsyncSession = Depends(get_db),
):
    """Revenue, cost and profit of captured and delivered orders."""
    start_date, end_date, start, end = _date_range(start_date, end_date)
    report = await ReportingService(db).profit_report(start, end, group_by)
    return ProfitReportResponse(
        start_date=start_date,
        end_date=end_date,
        group_by=group_by,
        data=[ProfitDataResponse(**d.to_dict()) for d in report["data"]],
        summary=ProfitSummaryResponse(**report["summary"].to_dict()),
    )


@router.get("/analytics", response_model=AnalyticsReportResponse)
async def analytics_report(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    user_role: Optional[str] = Query(None, alias="userRole"),
    page: Optional[str] = Query(None),
    event_type: Optional[str] = Query(None, alias="eventType"),
    admin: AdminUser = Depends(require_permission("analytics.view")),
    db: AsyncSession = Depends(get_db),
):
    """Admin console usage for a date range."""
    _, _, start, end = _date_range(start_date, end_date, default_days=7)
    events = await AnalyticsTracker.load_events(
        db, start, end, user_role=user_role, page=page, event_type=event_type,
    )
    return AnalyticsReportResponse(**summarize_events(events))
