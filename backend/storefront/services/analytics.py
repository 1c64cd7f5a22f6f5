"""
Back-office Analytics
=====================

Usage tracking for the admin console: page views, actions and feature use.

Usage:
    from storefront.services.analytics import AnalyticsTracker

    await AnalyticsTracker.track_event(
        user_id="uid",
        event_type="feature_usage",
        page="/admin/orders",
        session_id="session_...",
        feature="capture_payment",
    )

Events are written in their own session so that tracking never shares a
transaction with the request that triggered it.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.errors import ValidationError
from storefront.models import AnalyticsEvent
from storefront.models.analytics import EVENT_TYPES

logger = logging.getLogger(__name__)


def _default_session_factory():
    from storefront.database import async_session_maker
    return async_session_maker


def clean_metadata(metadata: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Drop null values; an empty result is stored as no metadata."""
    if not metadata:
        return None
    cleaned = {k: v for k, v in metadata.items() if v is not None}
    return cleaned or None


def summarize_events(events: Iterable[AnalyticsEvent]) -> Dict[str, Any]:
    """
    Page views (with unique users), feature usage counts and per-user
    activity, each sorted by count descending.
    """
    events = list(events)

    page_counts: Dict[str, int] = {}
    page_users: Dict[str, set] = {}
    feature_counts: Dict[str, int] = {}
    activity: Dict[tuple, Dict[str, Any]] = {}

    for event in events:
        if event.event_type == "page_view":
            page_counts[event.page] = page_counts.get(event.page, 0) + 1
            page_users.setdefault(event.page, set()).add(event.user_id)
        elif event.event_type == "feature_usage":
            feature = event.feature or "unknown"
            feature_counts[feature] = feature_counts.get(feature, 0) + 1

        key = (event.user_id, event.user_role)
        entry = activity.setdefault(key, {
            "user_id": event.user_id,
            "user_role": event.user_role or "unknown",
            "events": 0,
        })
        entry["events"] += 1

    page_views = sorted(
        (
            {"page": page, "count": count, "unique_users": len(page_users[page])}
            for page, count in page_counts.items()
        ),
        key=lambda p: p["count"],
        reverse=True,
    )
    feature_usage = sorted(
        ({"feature": f, "count": c} for f, c in feature_counts.items()),
        key=lambda f: f["count"],
        reverse=True,
    )
    user_activity = sorted(activity.values(), key=lambda u: u["events"], reverse=True)

    return {
        "page_views": page_views,
        "feature_usage": feature_usage,
        "user_activity": user_activity,
        "total_events": len(events),
    }


class AnalyticsTracker:
    """Records and reads admin usage events."""

    @staticmethod
    async def track_event(
        user_id: str,
        event_type: str,
        page: str,
        session_id: str,
        user_role: Optional[str] = None,
        feature: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        session_factory: Optional[Callable[[], AsyncSession]] = None,
    ) -> Optional[AnalyticsEvent]:
        """
        Store one event. Tracking must never break the caller: any failure
        is logged and None is returned.
        """
        factory = session_factory or _default_session_factory()
        try:
            if event_type not in EVENT_TYPES:
                raise ValidationError(f"Invalid event type: {event_type}", field="event_type")

            async with factory() as session:
                event = AnalyticsEvent(
                    user_id=user_id,
                    user_role=user_role,
                    event_type=event_type,
                    page=page,
                    feature=feature or None,
                    event_metadata=clean_metadata(metadata),
                    session_id=session_id,
                    timestamp=datetime.utcnow(),
                )
                session.add(event)
                await session.commit()

            logger.debug(f"Analytics event: {event_type} {page} by {user_id}")
            return event
        except Exception as e:
            logger.error(f"Error tracking analytics event {event_type} on {page}: {e}")
            return None

    @staticmethod
    async def load_events(
        session: AsyncSession,
        start: datetime,
        end: datetime,
        user_role: Optional[str] = None,
        page: Optional[str] = None,
        event_type: Optional[str] = None,
    ) -> List[AnalyticsEvent]:
        if start > end:
            raise ValidationError("start must not be after end", field="start")

        query = select(AnalyticsEvent).where(
            AnalyticsEvent.timestamp >= start,
            AnalyticsEvent.timestamp <= end,
        )
        if user_role:
            query = query.where(AnalyticsEvent.user_role == user_role)
        if page:
            query = query.where(AnalyticsEvent.page == page)
        if event_type:
            query = query.where(AnalyticsEvent.event_type == event_type)

        result = await session.execute(query.order_by(AnalyticsEvent.timestamp))
        return list(result.scalars().all())
