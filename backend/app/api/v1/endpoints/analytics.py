"""
Analytics Endpoints
Lead volume, breakdowns, funnel and insights for the analytics page
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query

from app.api.v1.dependencies import get_lead_service, get_current_user, CurrentUser
from app.core.config import get_settings
from app.domain.models.analytics import AnalyticsData
from app.domain.models.lead import AnalyticsFilters
from app.services.lead_service import LeadService

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/leads", response_model=AnalyticsData)
async def get_lead_analytics(
    date_from: Optional[datetime] = Query(None, alias="from", description="Window start (ISO date)"),
    date_to: Optional[datetime] = Query(None, alias="to", description="Window end (ISO date)"),
    city: Optional[str] = Query(None),
    service: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
    service_layer: LeadService = Depends(get_lead_service)
):
    """
    Get lead analytics for a window.

    Used by: /dashboard/analytics page.

    Query params:
        - from / to: created_at bounds, both optional
        - city: exact city match
        - service: exact service match
    """
    filters = AnalyticsFilters(date_from=date_from, date_to=date_to, city=city, service=service)

    try:
        data = await service_layer.get_analytics(
            filters,
            fallback_days=get_settings().analytics_fallback_days,
        )
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch analytics: {str(e)}"
        )

    return data
