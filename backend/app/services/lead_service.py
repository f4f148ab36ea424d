"""
Lead Service
Reads both lead tables from Supabase, merges them into one canonical
list and routes writes back to the table each lead came from.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from supabase import Client

from app.domain.models.analytics import AnalyticsData, LeadStats
from app.domain.models.lead import (
    AnalyticsFilters,
    Lead,
    LeadCreate,
    LeadFilterParams,
    LeadPage,
    LeadStatus,
    LeadUpdate,
    SourceTable,
)
from app.domain.services.analytics_aggregator import DEFAULT_FALLBACK_DAYS, aggregate_analytics, apply_window
from app.domain.services.lead_filter import DEFAULT_PAGE_SIZE, filter_leads, filter_options, paginate
from app.domain.services.lead_normalizer import normalize_lead, normalize_rows, to_storage_columns
from app.domain.services.lead_stats import compute_lead_stats
from app.domain.services.query_cache import (
    LEAD_KEY,
    LEADS_KEY,
    InvalidationBus,
    QueryCache,
    get_invalidation_bus,
    get_query_cache,
)
from app.utils.timestamps import utcnow

logger = logging.getLogger(__name__)

# Tables with an updated_at column; hire_helper_leads rows are written as given.
STAMPED_TABLES = frozenset({SourceTable.LEADS})


class LeadNotFoundError(Exception):
    """Raised when a lead does not exist in its source table."""
    def __init__(self, source_table: str, lead_id: str):
        self.message = f"Lead {lead_id} not found in {source_table}"
        super().__init__(self.message)


class LeadUpdateError(Exception):
    """Raised when a write is rejected before reaching the database."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class LeadService:
    """
    Data access for the dashboard.

    Reads fetch every row of both tables (concurrently) and filter in
    memory. Writes are a single awaited request followed by an
    invalidation of the cached lead queries; there is no optimistic update
    and no conflict detection.
    """

    def __init__(
        self,
        supabase: Client,
        cache: Optional[QueryCache] = None,
        bus: Optional[InvalidationBus] = None,
        batch_size: int = 1000,
    ):
        self.supabase = supabase
        self.cache = cache
        self.bus = bus
        self.batch_size = batch_size

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _select_all(self, table: SourceTable) -> List[Dict[str, Any]]:
        """Page through a table with .range() until a short batch comes back."""
        rows: List[Dict[str, Any]] = []
        start = 0
        while True:
            response = self.supabase.table(table.value).select("*").range(
                start, start + self.batch_size - 1
            ).execute()
            batch = response.data or []
            rows.extend(batch)
            if len(batch) < self.batch_size:
                return rows
            start += self.batch_size

    async def fetch_all_leads(self) -> List[Lead]:
        """
        Fetch and normalize both tables.

        The two selects run concurrently and are joined; if either fails
        the whole fetch fails.
        """
        leads_rows, hire_rows = await asyncio.gather(
            asyncio.to_thread(self._select_all, SourceTable.LEADS),
            asyncio.to_thread(self._select_all, SourceTable.HIRE_HELPER_LEADS),
        )
        leads = normalize_rows(leads_rows, SourceTable.LEADS)
        leads.extend(normalize_rows(hire_rows, SourceTable.HIRE_HELPER_LEADS))
        logger.debug(f"Fetched {len(leads_rows)} leads and {len(hire_rows)} hire-helper leads")
        return leads

    async def get_all_leads(self) -> List[Lead]:
        """Merged lead list, served from the query cache when available."""
        if self.cache is None:
            return await self.fetch_all_leads()
        return await self.cache.get_or_fetch((LEADS_KEY,), self.fetch_all_leads)

    async def list_leads(
        self,
        filters: Optional[LeadFilterParams] = None,
        page: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
        now: Optional[datetime] = None,
    ) -> Tuple[LeadPage, LeadStats]:
        """
        One page of the filtered list, plus KPIs over every matching lead.
        """
        now = now or utcnow()
        matched = filter_leads(await self.get_all_leads(), filters, now)
        page_data = LeadPage(data=paginate(matched, page, page_size), count=len(matched))
        return page_data, compute_lead_stats(matched, len(matched), now)

    async def get_filter_options(self) -> Dict[str, List[str]]:
        return filter_options(await self.get_all_leads())

    async def get_analytics(
        self,
        filters: Optional[AnalyticsFilters] = None,
        fallback_days: int = DEFAULT_FALLBACK_DAYS,
        now: Optional[datetime] = None,
    ) -> AnalyticsData:
        window = apply_window(await self.get_all_leads(), filters)
        return aggregate_analytics(window, now=now, fallback_days=fallback_days)

    async def _fetch_lead(self, source_table: SourceTable, lead_id: str) -> Lead:
        response = await asyncio.to_thread(
            lambda: self.supabase.table(source_table.value).select("*").eq("id", lead_id).limit(1).execute()
        )
        if not response.data:
            raise LeadNotFoundError(source_table.value, lead_id)
        return normalize_lead(response.data[0], source_table)

    async def get_lead(self, source_table: Union[SourceTable, str], lead_id: str) -> Lead:
        table = SourceTable(source_table)
        if self.cache is None:
            return await self._fetch_lead(table, lead_id)
        return await self.cache.get_or_fetch(
            (LEAD_KEY, table.value, lead_id),
            lambda: self._fetch_lead(table, lead_id),
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _invalidate(self) -> None:
        bus = self.bus
        if bus is not None:
            bus.publish(LEADS_KEY)
            bus.publish(LEAD_KEY)
        elif self.cache is not None:
            self.cache.invalidate(LEADS_KEY)
            self.cache.invalidate(LEAD_KEY)

    async def update_lead(
        self,
        source_table: Union[SourceTable, str],
        lead_id: str,
        updates: Union[LeadUpdate, Dict[str, Any]],
    ) -> Lead:
        """
        Partially update one lead in the table it was read from.

        Args:
            source_table: Table tag carried by the lead; selects the write target
            lead_id: Lead id (string form)
            updates: Fields to write; canonical names are mapped to columns

        Returns:
            The updated lead as stored

        Raises:
            LeadUpdateError: If there is nothing to write
            LeadNotFoundError: If no row matched
        """
        table = SourceTable(source_table)
        if isinstance(updates, LeadUpdate):
            updates = updates.model_dump(exclude_unset=True)

        columns = to_storage_columns(updates)
        if not columns:
            raise LeadUpdateError("No fields to update")

        if table in STAMPED_TABLES:
            columns["updated_at"] = utcnow().isoformat()

        response = await asyncio.to_thread(
            lambda: self.supabase.table(table.value).update(columns).eq("id", lead_id).execute()
        )
        if not response.data:
            raise LeadNotFoundError(table.value, lead_id)

        logger.info(f"Updated lead {lead_id} in {table.value}: {sorted(columns)}")
        self._invalidate()
        return normalize_lead(response.data[0], table)

    async def change_status(self, source_table: Union[SourceTable, str], lead_id: str, status: Union[LeadStatus, str]) -> Lead:
        return await self.update_lead(source_table, lead_id, {"status": LeadStatus(status).value})

    async def assign(self, source_table: Union[SourceTable, str], lead_id: str, assigned_to: Optional[str]) -> Lead:
        """Assign a lead to an agent; an empty name unassigns it."""
        return await self.update_lead(source_table, lead_id, {"assigned_to": assigned_to or None})

    async def update_notes(self, source_table: Union[SourceTable, str], lead_id: str, notes: Optional[str]) -> Lead:
        return await self.update_lead(source_table, lead_id, {"notes": notes})

    async def mark_contacted(self, source_table: Union[SourceTable, str], lead_id: str) -> Lead:
        return await self.update_lead(source_table, lead_id, {
            "status": LeadStatus.CONTACTED.value,
            "last_contacted_at": utcnow(),
        })

    async def create_lead(self, lead: LeadCreate) -> Lead:
        """Insert a staff-entered lead into the `leads` table."""
        columns = to_storage_columns(lead.model_dump(exclude_none=True))
        response = await asyncio.to_thread(
            lambda: self.supabase.table(SourceTable.LEADS.value).insert(columns).execute()
        )
        if not response.data:
            raise LeadUpdateError("Insert returned no row")

        created = normalize_lead(response.data[0], SourceTable.LEADS)
        logger.info(f"Created lead {created.id}")
        self._invalidate()
        return created


def build_lead_service(supabase: Client) -> LeadService:
    """LeadService bound to the shared query cache and invalidation bus."""
    from app.core.config import get_settings
    return LeadService(
        supabase,
        cache=get_query_cache(),
        bus=get_invalidation_bus(),
        batch_size=get_settings().fetch_batch_size,
    )
