"""
Analytics models - back-office usage events.
"""

from datetime import datetime
from typing import Optional, Dict, Any

from sqlalchemy import String, DateTime, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column

from storefront.models.base import Base, UUIDMixin


EVENT_TYPES = ("page_view", "action", "feature_usage")


class AnalyticsEvent(Base, UUIDMixin):
    """A single page view or feature use by an admin user."""
    __tablename__ = "analytics_events"

    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    user_role: Mapped[Optional[str]] = mapped_column(String(20))
    event_type: Mapped[str] = mapped_column(String(20), nullable=False)  # see EVENT_TYPES
    page: Mapped[str] = mapped_column(String(255), nullable=False)
    feature: Mapped[Optional[str]] = mapped_column(String(100))
    event_metadata: Mapped[Optional[Dict[str, Any]]] = mapped_column("metadata", JSON)
    session_id: Mapped[str] = mapped_column(String(100), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_analytics_timestamp", "timestamp"),
    )
