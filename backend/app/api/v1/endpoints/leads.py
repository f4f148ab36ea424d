"""
Lead Endpoints
Unified lead list over both lead tables, with per-lead actions
routed back to the table the lead came from
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional, Union

from fastapi import APIRouter, HTTPException, Depends, Query, status
from pydantic import BaseModel

from app.api.v1.dependencies import get_lead_service, get_current_user, CurrentUser
from app.core.config import get_settings
from app.domain.models.analytics import LeadStats
from app.domain.models.lead import (
    DateRange,
    Lead,
    LeadCreate,
    LeadFilterParams,
    LeadStatus,
    LeadUpdate,
    SourceTable,
)
from app.domain.services.lead_scoring import LeadScorer, get_lead_scorer
from app.services.lead_service import LeadNotFoundError, LeadService, LeadUpdateError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/leads", tags=["leads"])


# ============================================
# Request/Response Models
# ============================================

class ScoredLead(Lead):
    """Lead as shown in the table, with its computed score"""
    score: Union[int, float] = 0
    score_class: str = "cold"


class LeadListResponse(BaseModel):
    """One page of leads plus KPIs over all matches"""
    data: List[ScoredLead]
    count: int
    page: int
    page_size: int
    stats: LeadStats


class FilterOptionsResponse(BaseModel):
    cities: List[str]
    sources: List[str]
    services: List[str]


class StatusChangeRequest(BaseModel):
    status: LeadStatus


class AssignRequest(BaseModel):
    """Assign to an agent; null or empty unassigns"""
    assigned_to: Optional[str] = None


class LeadActionResponse(BaseModel):
    """Mutation result with the message the dashboard shows as a toast"""
    lead: ScoredLead
    message: str


def _scored(lead: Lead, scorer: LeadScorer) -> ScoredLead:
    score = scorer.score(lead)
    return ScoredLead(
        **lead.model_dump(exclude={"score"}),
        score=score,
        score_class=scorer.classify(lead),
    )


# ============================================
# Reads
# ============================================

@router.get("/", response_model=LeadListResponse)
async def list_leads(
    page: int = Query(0, ge=0, description="Zero-based page index"),
    page_size: Optional[int] = Query(None, ge=1, description="Rows per page"),
    status_filter: List[str] = Query([], alias="status"),
    search: Optional[str] = Query(None, description="Matches name, email, phone or city"),
    city: List[str] = Query([]),
    source: List[str] = Query([]),
    service: List[str] = Query([]),
    assigned_to: List[str] = Query([]),
    priority: List[str] = Query([]),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    overdue: bool = Query(False),
    attention: bool = Query(False, description="Overdue, or High priority and unassigned"),
    current_user: CurrentUser = Depends(get_current_user),
    service_layer: LeadService = Depends(get_lead_service),
):
    """
    Filtered, newest-first page of leads from both tables.

    Used by: /dashboard/leads table and KPI cards.
    """
    settings = get_settings()
    page_size = page_size or settings.leads_page_size
    if page_size > settings.max_page_size:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"page_size must be at most {settings.max_page_size}"
        )

    filters = LeadFilterParams(
        status=status_filter,
        search=search,
        city=city,
        source=source,
        service_required=service,
        assigned_to=assigned_to,
        priority=priority,
        date_range=DateRange(date_from=date_from, date_to=date_to) if (date_from or date_to) else None,
        overdue=overdue,
        attention=attention,
    )

    try:
        lead_page, stats = await service_layer.list_leads(filters, page, page_size)
    except Exception as e:
        logger.error(f"Failed to fetch leads: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch leads: {str(e)}"
        )

    scorer = get_lead_scorer()
    return LeadListResponse(
        data=[_scored(lead, scorer) for lead in lead_page.data],
        count=lead_page.count,
        page=page,
        page_size=page_size,
        stats=stats,
    )


@router.get("/filter-options", response_model=FilterOptionsResponse)
async def get_filter_options(
    current_user: CurrentUser = Depends(get_current_user),
    service_layer: LeadService = Depends(get_lead_service),
):
    """Distinct cities, sources and services for the filter dropdowns."""
    try:
        options: Dict[str, List[str]] = await service_layer.get_filter_options()
        return FilterOptionsResponse(**options)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch filter options: {str(e)}"
        )


@router.get("/{source_table}/{lead_id}", response_model=ScoredLead)
async def get_lead(
    source_table: SourceTable,
    lead_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service_layer: LeadService = Depends(get_lead_service),
):
    try:
        lead = await service_layer.get_lead(source_table, lead_id)
        return _scored(lead, get_lead_scorer())
    except LeadNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch lead: {str(e)}"
        )


# ============================================
# Writes
# ============================================

async def _apply(action, failure: str, success: str) -> LeadActionResponse:
    """Await a LeadService mutation and map its errors to HTTP responses."""
    try:
        lead = await action
    except LeadNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except LeadUpdateError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{failure}: {e.message}")
    except Exception as e:
        logger.error(f"{failure}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"{failure}: {str(e)}"
        )
    return LeadActionResponse(lead=_scored(lead, get_lead_scorer()), message=success)


@router.post("/", response_model=LeadActionResponse, status_code=status.HTTP_201_CREATED)
async def create_lead(
    request: LeadCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service_layer: LeadService = Depends(get_lead_service),
):
    """Add a lead by hand. Always stored in the `leads` table."""
    return await _apply(
        service_layer.create_lead(request),
        failure="Failed to create lead",
        success="Lead created",
    )


@router.patch("/{source_table}/{lead_id}", response_model=LeadActionResponse)
async def update_lead(
    source_table: SourceTable,
    lead_id: str,
    request: LeadUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    service_layer: LeadService = Depends(get_lead_service),
):
    """
    Partial update from the edit and comments dialogs.

    Only fields present in the body are written.
    """
    return await _apply(
        service_layer.update_lead(source_table, lead_id, request),
        failure="Failed to update lead",
        success="Lead updated successfully",
    )


@router.post("/{source_table}/{lead_id}/status", response_model=LeadActionResponse)
async def change_status(
    source_table: SourceTable,
    lead_id: str,
    request: StatusChangeRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service_layer: LeadService = Depends(get_lead_service),
):
    new_status = LeadStatus(request.status).value
    return await _apply(
        service_layer.change_status(source_table, lead_id, new_status),
        failure="Failed to update status",
        success=f"Status updated to {new_status}",
    )


@router.post("/{source_table}/{lead_id}/assign", response_model=LeadActionResponse)
async def assign_lead(
    source_table: SourceTable,
    lead_id: str,
    request: AssignRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service_layer: LeadService = Depends(get_lead_service),
):
    assignee = request.assigned_to or None
    return await _apply(
        service_layer.assign(source_table, lead_id, assignee),
        failure="Failed to assign lead",
        success=f"Assigned to {assignee}" if assignee else "Lead unassigned",
    )


@router.post("/{source_table}/{lead_id}/contacted", response_model=LeadActionResponse)
async def mark_contacted(
    source_table: SourceTable,
    lead_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service_layer: LeadService = Depends(get_lead_service),
):
    """Set status Contacted and stamp last_contacted_at."""
    return await _apply(
        service_layer.mark_contacted(source_table, lead_id),
        failure="Failed to update status",
        success="Marked as contacted",
    )
