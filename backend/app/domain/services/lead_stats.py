"""
Lead KPI aggregation
"""
import math
from datetime import datetime, timedelta
from typing import Optional, Sequence

from app.domain.models.analytics import LeadStats
from app.domain.models.lead import Lead, LeadStatus
from app.domain.services.lead_filter import is_overdue
from app.utils.timestamps import utcnow

NEW_LEAD_WINDOW = timedelta(days=7)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_lead_stats(
    leads: Optional[Sequence[Lead]],
    total_count: int,
    now: Optional[datetime] = None,
) -> LeadStats:
    """
    KPIs for the lead list.

    Args:
        leads: Leads to inspect (a page or the full filtered set)
        total_count: Authoritative number of matching leads
        now: Reference time, defaults to the current UTC time

    Returns:
        LeadStats; all zeros when there are no leads
    """
    if not leads:
        return LeadStats()

    now = now or utcnow()
    window_start = now - NEW_LEAD_WINDOW

    new_leads = sum(1 for lead in leads if lead.created_at is not None and lead.created_at >= window_start)
    unassigned = sum(1 for lead in leads if not lead.assigned_to)
    overdue = sum(1 for lead in leads if is_overdue(lead, now))
    converted = sum(1 for lead in leads if lead.status == LeadStatus.CONVERTED.value)

    conversion_rate = _round_half_up(converted * 100 / total_count) if total_count > 0 else 0

    return LeadStats(
        total_leads=total_count,
        new_leads=new_leads,
        unassigned=unassigned,
        overdue=overdue,
        conversion_rate=conversion_rate,
    )
