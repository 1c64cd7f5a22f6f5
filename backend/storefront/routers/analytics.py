"""
Analytics API Router.

Receives usage events from the admin console.
"""

from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends

from storefront.models import AdminUser
from storefront.routers.dependencies import require_admin
from storefront.schemas import CamelModel
from storefront.services.analytics import AnalyticsTracker

router = APIRouter()


class AnalyticsEventRequest(CamelModel):
    event_type: Literal["page_view", "action", "feature_usage"]
    page: str
    session_id: str
    feature: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


@router.post("/events", status_code=202)
async def track_event(
    request: AnalyticsEventRequest,
    admin: AdminUser = Depends(require_admin),
):
    """
    Record an event for the calling admin. Tracking failures are logged
    and never reported to the console.
    """
    event = await AnalyticsTracker.track_event(
        user_id=admin.uid,
        user_role=admin.role,
        event_type=request.event_type,
        page=request.page,
        session_id=request.session_id,
        feature=request.feature,
        metadata=request.metadata,
    )
    return {"tracked": event is not None}
