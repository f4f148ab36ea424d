"""
Lead Normalizer
Maps rows from the two lead tables into the canonical Lead shape
"""
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from pydantic import TypeAdapter

from app.domain.models.lead import (
    HireHelperLeadsRow,
    Lead,
    LeadPriority,
    LeadStatus,
    LeadsRow,
    RawLeadRow,
    SourceTable,
)

_raw_row_adapter = TypeAdapter(RawLeadRow)

_CANONICAL_STATUSES = {status.value.lower(): status.value for status in LeadStatus}

# Fields that are derived on read and must never be written back
READ_ONLY_FIELDS = {"id", "source_table", "score", "created_at"}


def normalize_status(raw: Optional[str]) -> str:
    """
    Case-normalize a stored status.

    "new" -> "New", "TRIAL SCHEDULED" -> "Trial Scheduled". Unknown values
    are capitalized; empty values fall back to "New".
    """
    if not raw or not raw.strip():
        return LeadStatus.NEW.value
    cleaned = raw.strip()
    return _CANONICAL_STATUSES.get(cleaned.lower(), cleaned[:1].upper() + cleaned[1:].lower())


def _stringify_id(value: Any) -> str:
    return "" if value is None else str(value)


def _base_fields(row: Union[LeadsRow, HireHelperLeadsRow]) -> Dict[str, Any]:
    data = row.model_dump(exclude={"source_table", "service", "id", "status"})
    data["id"] = _stringify_id(row.id)
    data["name"] = row.name or ""
    data["status"] = normalize_status(row.status)
    data["service_required"] = row.service if row.service is not None else data.get("service_required")
    return data


def normalize_leads_row(row: LeadsRow) -> Lead:
    """Map a `leads` table row."""
    data = _base_fields(row)
    data["priority"] = row.priority or LeadPriority.MEDIUM.value
    return Lead(source_table=SourceTable.LEADS, **data)


def normalize_hire_helper_row(row: HireHelperLeadsRow) -> Lead:
    """Map a `hire_helper_leads` row. The public form leaves priority unset."""
    data = _base_fields(row)
    data["priority"] = row.priority or LeadPriority.MEDIUM.value
    return Lead(source_table=SourceTable.HIRE_HELPER_LEADS, **data)


_NORMALIZERS: Dict[SourceTable, Callable[[Any], Lead]] = {
    SourceTable.LEADS: normalize_leads_row,
    SourceTable.HIRE_HELPER_LEADS: normalize_hire_helper_row,
}


def parse_raw_row(row: Dict[str, Any], source_table: Union[SourceTable, str]) -> Union[LeadsRow, HireHelperLeadsRow]:
    """Tag a raw dict with its table and validate it into the matching row model."""
    table = SourceTable(source_table)
    return _raw_row_adapter.validate_python({**row, "source_table": table.value})


def normalize_lead(row: Dict[str, Any], source_table: Union[SourceTable, str]) -> Lead:
    """
    Produce a canonical Lead from a raw row.

    Args:
        row: Row dict as returned by PostgREST
        source_table: Table the row was read from

    Returns:
        Lead with stringified id, service_required, canonical status and
        a non-null priority
    """
    table = SourceTable(source_table)
    return _NORMALIZERS[table](parse_raw_row(row, table))


def normalize_rows(rows: Optional[Iterable[Dict[str, Any]]], source_table: Union[SourceTable, str]) -> List[Lead]:
    return [normalize_lead(row, source_table) for row in (rows or [])]


def to_storage_columns(updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map canonical field names back to table columns for a write.

    service_required is stored as `service`; derived and identity fields
    are dropped. Datetimes are serialized to ISO strings.
    """
    columns: Dict[str, Any] = {}
    for key, value in updates.items():
        if key in READ_ONLY_FIELDS:
            continue
        if key == "service_required":
            key = "service"
        if hasattr(value, "isoformat"):
            value = value.isoformat()
        columns[key] = value
    return columns
