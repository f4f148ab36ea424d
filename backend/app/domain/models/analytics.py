"""
Dashboard KPI and Analytics Models
"""
from typing import List

from pydantic import BaseModel


class LeadStats(BaseModel):
    """KPI strip shown above the lead table"""
    total_leads: int = 0
    new_leads: int = 0
    unassigned: int = 0
    overdue: int = 0
    conversion_rate: int = 0


class VolumePoint(BaseModel):
    """Leads created on one calendar day (YYYY-MM-DD)"""
    date: str
    count: int


class NameValue(BaseModel):
    """One slice of a frequency chart"""
    name: str
    value: int


class FunnelStep(BaseModel):
    step: str
    count: int


class AnalyticsData(BaseModel):
    """Chart-ready series for the analytics page"""
    volume_trend: List[VolumePoint] = []
    by_source: List[NameValue] = []
    by_city: List[NameValue] = []
    by_service: List[NameValue] = []
    funnel: List[FunnelStep] = []
    insights: List[str] = []
    conversion_rate: float = 0.0
