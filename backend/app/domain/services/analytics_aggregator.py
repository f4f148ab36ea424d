"""
Analytics Aggregator
Buckets leads into chart series and generates plain-text insights
"""
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from app.domain.models.analytics import AnalyticsData, FunnelStep, NameValue, VolumePoint
from app.domain.models.lead import AnalyticsFilters, Lead, LeadStatus
from app.domain.services.lead_filter import is_overdue
from app.utils.timestamps import parse_timestamp, utcnow

DEFAULT_FALLBACK_DAYS = 30

# (label, status) in display order; counts are per status, not cumulative
FUNNEL_STEPS = (
    ("New", LeadStatus.NEW.value),
    ("Contacted", LeadStatus.CONTACTED.value),
    ("Qualified", LeadStatus.QUALIFIED.value),
    ("Trial", LeadStatus.TRIAL_SCHEDULED.value),
    ("Converted", LeadStatus.CONVERTED.value),
)


def apply_window(leads: Iterable[Lead], filters: Optional[AnalyticsFilters]) -> List[Lead]:
    """Restrict leads to the analytics toolbar window (dates, city, service)."""
    leads = list(leads)
    if filters is None:
        return leads

    date_from = parse_timestamp(filters.date_from)
    date_to = parse_timestamp(filters.date_to)

    windowed = []
    for lead in leads:
        if date_from is not None and (lead.created_at is None or lead.created_at < date_from):
            continue
        if date_to is not None and (lead.created_at is None or lead.created_at > date_to):
            continue
        if filters.city and lead.city != filters.city:
            continue
        if filters.service and lead.service_required != filters.service:
            continue
        windowed.append(lead)
    return windowed


def _day_key(day: date) -> str:
    return day.strftime("%Y-%m-%d")


def build_volume_trend(
    leads: Sequence[Lead],
    today: date,
    fallback_days: int = DEFAULT_FALLBACK_DAYS,
) -> List[VolumePoint]:
    """
    Daily lead counts from the earliest lead's day through today.

    Days without leads are present with a zero count. With no dated leads
    the series covers the last `fallback_days` days.
    """
    days = [lead.created_at.date() for lead in leads if lead.created_at is not None]

    volume: Dict[str, int] = {}
    if days:
        current = min(days)
        while current <= today:
            volume[_day_key(current)] = 0
            current += timedelta(days=1)
    else:
        for offset in range(fallback_days):
            volume[_day_key(today - timedelta(days=offset))] = 0

    for day in days:
        key = _day_key(day)
        volume[key] = volume.get(key, 0) + 1

    return [VolumePoint(date=key, count=volume[key]) for key in sorted(volume)]


def _frequency(values: Iterable[Optional[str]]) -> List[NameValue]:
    counts = Counter(value for value in values if value)
    return [NameValue(name=name, value=count) for name, count in counts.items()]


def build_insights(leads: Sequence[Lead], by_source: List[NameValue], now: datetime) -> List[str]:
    insights: List[str] = []

    if by_source:
        best = sorted(by_source, key=lambda item: item.value, reverse=True)[0]
        insights.append(f"Primary lead source is {best.name} ({best.value} leads).")

    unassigned = sum(1 for lead in leads if not lead.assigned_to)
    if unassigned > 0:
        insights.append(f"{unassigned} leads are unassigned.")

    overdue = sum(1 for lead in leads if is_overdue(lead, now))
    if overdue > 0:
        insights.append(f"{overdue} follow-ups are overdue.")

    return insights


def aggregate_analytics(
    leads: Iterable[Lead],
    now: Optional[datetime] = None,
    fallback_days: int = DEFAULT_FALLBACK_DAYS,
) -> AnalyticsData:
    """
    Aggregate a window of leads into chart-ready series.

    Args:
        leads: Leads in the analytics window
        now: Reference time, defaults to the current UTC time
        fallback_days: Length of the zero-filled trend when there are no leads

    Returns:
        AnalyticsData with volume trend, breakdowns, funnel, insights and
        conversion rate
    """
    leads = list(leads)
    now = now or utcnow()

    statuses = Counter(lead.status for lead in leads)
    by_source = _frequency(lead.source for lead in leads)
    converted = statuses.get(LeadStatus.CONVERTED.value, 0)

    return AnalyticsData(
        volume_trend=build_volume_trend(leads, now.date(), fallback_days),
        by_source=by_source,
        by_city=_frequency(lead.city for lead in leads),
        by_service=_frequency(lead.service_required for lead in leads),
        funnel=[FunnelStep(step=label, count=statuses.get(status, 0)) for label, status in FUNNEL_STEPS],
        insights=build_insights(leads, by_source, now),
        conversion_rate=(converted / len(leads) * 100) if leads else 0.0,
    )
