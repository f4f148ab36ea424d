"""
Lead Domain Models
Canonical lead record, the two raw table shapes it is read from,
and the query / write descriptors used by the dashboard
"""
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.utils.timestamps import parse_timestamp


class SourceTable(str, Enum):
    """Backend table a lead was read from; also its write target"""
    LEADS = "leads"
    HIRE_HELPER_LEADS = "hire_helper_leads"


class LeadStatus(str, Enum):
    """Pipeline stage"""
    NEW = "New"
    CONTACTED = "Contacted"
    QUALIFIED = "Qualified"
    TRIAL_SCHEDULED = "Trial Scheduled"
    CONVERTED = "Converted"
    LOST = "Lost"


class LeadPriority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


_TIMESTAMP_FIELDS = ("created_at", "updated_at", "last_contacted_at", "next_followup_at")
_TEXT_FIELDS = (
    "name", "phone", "email", "city", "source", "service", "service_required", "status", "priority",
    "assigned_to", "notes", "message", "specificRequirements",
)


class _RawLeadRow(BaseModel):
    """
    Columns of either lead table, exactly as PostgREST returns them.

    Staff edit priority, assignment, notes and follow-up dates on both
    tables, so every column the canonical lead reads is declared here.
    Validation is lenient: wrong types are coerced or dropped so that
    a malformed row still produces a usable lead.
    """
    model_config = ConfigDict(extra="allow")

    id: Any = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_contacted_at: Optional[datetime] = None
    next_followup_at: Optional[datetime] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    city: Optional[str] = None
    source: Optional[str] = None
    service: Optional[str] = None
    service_required: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    assigned_to: Optional[str] = None
    notes: Optional[str] = None
    message: Optional[str] = None
    specificRequirements: Optional[str] = None
    score: Optional[Union[int, float]] = None

    @field_validator(*_TIMESTAMP_FIELDS, mode="before")
    @classmethod
    def _lenient_timestamp(cls, value: Any) -> Optional[datetime]:
        return parse_timestamp(value)

    @field_validator(*_TEXT_FIELDS, mode="before")
    @classmethod
    def _lenient_text(cls, value: Any) -> Optional[str]:
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, (int, float)):
            return str(value)
        return None

    @field_validator("score", mode="before")
    @classmethod
    def _lenient_score(cls, value: Any) -> Optional[Union[int, float]]:
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return value
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                return None
        return None


class LeadsRow(_RawLeadRow):
    """Row of the `leads` table (staff-managed CRM leads)"""
    source_table: Literal["leads"] = "leads"


class HireHelperLeadsRow(_RawLeadRow):
    """Row of the `hire_helper_leads` table (public "hire a helper" form)"""
    source_table: Literal["hire_helper_leads"] = "hire_helper_leads"


RawLeadRow = Annotated[Union[LeadsRow, HireHelperLeadsRow], Field(discriminator="source_table")]


class Lead(BaseModel):
    """Canonical lead, merged view over both tables"""
    model_config = ConfigDict(extra="allow", use_enum_values=True)

    id: str
    source_table: SourceTable

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_contacted_at: Optional[datetime] = None
    next_followup_at: Optional[datetime] = None

    name: str = ""
    phone: Optional[str] = None
    email: Optional[str] = None
    city: Optional[str] = None

    source: Optional[str] = None  # Website / WhatsApp / Referral / Ads / Walk-in
    service_required: Optional[str] = None  # Maid / Cook / Nanny / Elder care
    status: str = LeadStatus.NEW.value
    priority: str = LeadPriority.MEDIUM.value
    assigned_to: Optional[str] = None

    notes: Optional[str] = None
    message: Optional[str] = None
    specificRequirements: Optional[str] = None

    score: Optional[Union[int, float]] = None

    @property
    def identity(self) -> tuple:
        """Composite identity across both tables"""
        return (self.source_table, self.id)


class DateRange(BaseModel):
    """Inclusive created_at window; either bound may be open"""
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None


class LeadFilterParams(BaseModel):
    """Ephemeral query descriptor for the lead list"""
    status: List[str] = Field(default_factory=list)
    search: Optional[str] = None
    city: List[str] = Field(default_factory=list)
    source: List[str] = Field(default_factory=list)
    service_required: List[str] = Field(default_factory=list)
    assigned_to: List[str] = Field(default_factory=list)
    priority: List[str] = Field(default_factory=list)
    date_range: Optional[DateRange] = None
    overdue: bool = False
    attention: bool = False


class AnalyticsFilters(BaseModel):
    """Window applied before analytics aggregation"""
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    city: Optional[str] = None
    service: Optional[str] = None


class LeadPage(BaseModel):
    """One page of the filtered lead list"""
    data: List[Lead]
    count: int


class LeadCreate(BaseModel):
    """New lead entered by staff; always written to the `leads` table"""
    name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None
    city: Optional[str] = None
    source: Optional[str] = None
    campaign: Optional[str] = None
    service_required: Optional[str] = None
    status: LeadStatus = LeadStatus.NEW
    priority: LeadPriority = LeadPriority.MEDIUM
    assigned_to: Optional[str] = None
    notes: Optional[str] = None
    next_followup_at: Optional[datetime] = None

    model_config = ConfigDict(use_enum_values=True)


class LeadUpdate(BaseModel):
    """Partial update; only fields explicitly sent are written"""
    status: Optional[LeadStatus] = None
    priority: Optional[LeadPriority] = None
    assigned_to: Optional[str] = None
    notes: Optional[str] = None
    city: Optional[str] = None
    service_required: Optional[str] = None
    budget: Optional[str] = None
    startDate: Optional[datetime] = None
    last_contacted_at: Optional[datetime] = None
    next_followup_at: Optional[datetime] = None

    model_config = ConfigDict(use_enum_values=True)
