"""
Lead Filter Engine
In-memory filtering, sorting and pagination over the merged lead set
"""
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from app.domain.models.lead import Lead, LeadFilterParams, LeadPage, LeadPriority
from app.utils.timestamps import parse_timestamp, utcnow

DEFAULT_PAGE_SIZE = 20

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)

LeadPredicate = Callable[[Lead], bool]


def is_overdue(lead: Lead, now: datetime) -> bool:
    """Follow-up date set and already past"""
    return lead.next_followup_at is not None and lead.next_followup_at < now


def needs_attention(lead: Lead, now: datetime) -> bool:
    """Overdue follow-up, or high priority with nobody assigned"""
    urgent_unassigned = lead.priority == LeadPriority.HIGH.value and not lead.assigned_to
    return is_overdue(lead, now) or urgent_unassigned


def _matches_search(lead: Lead, needle: str) -> bool:
    for value in (lead.name, lead.email, lead.phone, lead.city):
        if value and needle in value.lower():
            return True
    return False


def _member_of(values: Iterable[str], attribute: str) -> LeadPredicate:
    allowed = set(values)
    return lambda lead: (getattr(lead, attribute) or "") in allowed


def build_predicates(filters: LeadFilterParams, now: datetime) -> List[LeadPredicate]:
    """
    Turn a filter descriptor into an ordered list of predicates.

    Every predicate must hold for a lead to be kept. Empty fields add no
    predicate.
    """
    predicates: List[LeadPredicate] = []

    if filters.status:
        predicates.append(_member_of(filters.status, "status"))

    if filters.search:
        needle = filters.search.lower()
        predicates.append(lambda lead: _matches_search(lead, needle))

    if filters.city:
        predicates.append(_member_of(filters.city, "city"))
    if filters.source:
        predicates.append(_member_of(filters.source, "source"))
    if filters.service_required:
        predicates.append(_member_of(filters.service_required, "service_required"))
    if filters.assigned_to:
        predicates.append(_member_of(filters.assigned_to, "assigned_to"))
    if filters.priority:
        predicates.append(_member_of(filters.priority, "priority"))

    if filters.date_range:
        date_from = parse_timestamp(filters.date_range.date_from)
        date_to = parse_timestamp(filters.date_range.date_to)
        if date_from is not None:
            predicates.append(lambda lead: lead.created_at is not None and lead.created_at >= date_from)
        if date_to is not None:
            predicates.append(lambda lead: lead.created_at is not None and lead.created_at <= date_to)

    if filters.attention:
        predicates.append(lambda lead: needs_attention(lead, now))

    if filters.overdue:
        predicates.append(lambda lead: is_overdue(lead, now))

    return predicates


def filter_leads(
    leads: Iterable[Lead],
    filters: Optional[LeadFilterParams] = None,
    now: Optional[datetime] = None,
) -> List[Lead]:
    """Apply filters, then sort newest first. Ties keep their input order."""
    now = now or utcnow()
    predicates = build_predicates(filters or LeadFilterParams(), now)

    matched = [lead for lead in leads if all(p(lead) for p in predicates)]
    matched.sort(key=lambda lead: lead.created_at or _OLDEST, reverse=True)
    return matched


def paginate(leads: List[Lead], page: int = 0, page_size: int = DEFAULT_PAGE_SIZE) -> List[Lead]:
    """Zero-based page slice; pages past the end are empty."""
    start = max(page, 0) * page_size
    return leads[start:start + page_size]


def query_leads(
    leads: Iterable[Lead],
    filters: Optional[LeadFilterParams] = None,
    page: int = 0,
    page_size: int = DEFAULT_PAGE_SIZE,
    now: Optional[datetime] = None,
) -> LeadPage:
    """
    Filter, sort and slice the merged lead set.

    Returns:
        LeadPage with the requested page and the total match count
    """
    matched = filter_leads(leads, filters, now)
    return LeadPage(data=paginate(matched, page, page_size), count=len(matched))


def filter_options(leads: Iterable[Lead]) -> Dict[str, List[str]]:
    """Distinct values for the city / source / service dropdowns."""
    cities, sources, services = set(), set(), set()
    for lead in leads:
        if lead.city:
            cities.add(lead.city)
        if lead.source:
            sources.add(lead.source)
        if lead.service_required:
            services.add(lead.service_required)

    return {
        "cities": sorted(cities),
        "sources": sorted(sources),
        "services": sorted(services),
    }
