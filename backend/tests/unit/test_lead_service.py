"""
Unit tests for LeadService
Supabase is mocked with MagicMock query-builder chains.
"""
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from app.domain.models.lead import LeadCreate, LeadFilterParams, LeadUpdate
from app.domain.services.query_cache import InvalidationBus, QueryCache
from app.services.lead_service import LeadNotFoundError, LeadService, LeadUpdateError

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def _table_mock(select_data=None, update_data=None, insert_data=None):
    table = MagicMock()
    table.select.return_value.range.return_value.execute.return_value.data = select_data or []
    table.select.return_value.eq.return_value.limit.return_value.execute.return_value.data = select_data or []
    table.update.return_value.eq.return_value.execute.return_value.data = update_data or []
    table.insert.return_value.execute.return_value.data = insert_data or []
    return table


def _supabase(**tables):
    supabase = MagicMock()
    supabase.table.side_effect = lambda name: tables[name]
    return supabase


class TestFetchAllLeads:
    """Tests for the concurrent two-table fetch"""

    @pytest.mark.asyncio
    async def test_merges_leads_before_hire_helper_rows(self):
        supabase = _supabase(
            leads=_table_mock([{"id": 1, "name": "Asha", "status": "new"}]),
            hire_helper_leads=_table_mock([{"id": "h1", "name": "Ravi", "service": "Nanny"}]),
        )
        service = LeadService(supabase)

        leads = await service.fetch_all_leads()

        assert [(lead.source_table, lead.id) for lead in leads] == [("leads", "1"), ("hire_helper_leads", "h1")]
        assert leads[0].status == "New"
        assert leads[1].service_required == "Nanny"
        assert leads[1].priority == "Medium"

    @pytest.mark.asyncio
    async def test_pages_through_large_tables(self):
        leads_table = _table_mock()
        leads_table.select.return_value.range.return_value.execute.side_effect = [
            MagicMock(data=[{"id": 1}, {"id": 2}]),
            MagicMock(data=[{"id": 3}]),
        ]
        supabase = _supabase(leads=leads_table, hire_helper_leads=_table_mock())
        service = LeadService(supabase, batch_size=2)

        leads = await service.fetch_all_leads()

        assert [lead.id for lead in leads] == ["1", "2", "3"]
        ranges = [call.args for call in leads_table.select.return_value.range.call_args_list]
        assert ranges == [(0, 1), (2, 3)]

    @pytest.mark.asyncio
    async def test_one_failing_table_fails_the_whole_fetch(self):
        broken = MagicMock()
        broken.select.return_value.range.return_value.execute.side_effect = RuntimeError("permission denied")
        supabase = _supabase(leads=_table_mock([{"id": 1}]), hire_helper_leads=broken)

        with pytest.raises(RuntimeError, match="permission denied"):
            await LeadService(supabase).fetch_all_leads()

    @pytest.mark.asyncio
    async def test_results_are_cached(self):
        leads_table = _table_mock([{"id": 1}])
        supabase = _supabase(leads=leads_table, hire_helper_leads=_table_mock())
        service = LeadService(supabase, cache=QueryCache())

        await service.get_all_leads()
        await service.get_all_leads()

        assert leads_table.select.call_count == 1


class TestListLeads:
    """Tests for the filtered list with stats"""

    @pytest.mark.asyncio
    async def test_page_count_and_stats(self):
        supabase = _supabase(
            leads=_table_mock([
                {"id": i, "created_at": f"2024-06-{10 + i:02d}T00:00:00Z", "status": "Converted" if i == 1 else "New",
                 "city": "Pune"}
                for i in range(1, 5)
            ]),
            hire_helper_leads=_table_mock([{"id": "h1", "city": "Delhi", "created_at": "2024-06-01T00:00:00Z"}]),
        )
        service = LeadService(supabase)

        page, stats = await service.list_leads(LeadFilterParams(city=["Pune"]), page=0, page_size=3, now=NOW)

        assert page.count == 4
        assert [lead.id for lead in page.data] == ["4", "3", "2"]
        assert stats.total_leads == 4
        assert stats.conversion_rate == 25

    @pytest.mark.asyncio
    async def test_same_timestamp_in_both_tables_and_update_routing(self):
        """Both leads show on the first page; an update goes to the lead's own table"""
        stamp = "2024-06-14T08:00:00Z"
        leads_table = _table_mock(
            [{"id": 5, "name": "Asha", "created_at": stamp}],
            update_data=[{"id": 5, "name": "Asha", "status": "Contacted", "created_at": stamp}],
        )
        hire_table = _table_mock(
            [{"id": 5, "name": "Ravi", "created_at": stamp}],
            update_data=[{"id": 5, "name": "Ravi", "status": "Qualified", "created_at": stamp}],
        )
        service = LeadService(_supabase(leads=leads_table, hire_helper_leads=hire_table))

        page, _ = await service.list_leads(now=NOW)
        assert {lead.identity for lead in page.data} == {("leads", "5"), ("hire_helper_leads", "5")}

        hire_lead = next(lead for lead in page.data if lead.source_table == "hire_helper_leads")
        updated = await service.change_status(hire_lead.source_table, hire_lead.id, "Qualified")

        assert updated.status == "Qualified"
        hire_table.update.assert_called_once()
        assert hire_table.update.call_args.args[0]["status"] == "Qualified"
        hire_table.update.return_value.eq.assert_called_once_with("id", "5")
        leads_table.update.assert_not_called()


class TestUpdateLead:
    """Tests for partial updates"""

    @pytest.mark.asyncio
    async def test_maps_fields_and_invalidates(self):
        table = _table_mock(update_data=[{"id": 1, "service": "Maid", "notes": "call later"}])
        bus = InvalidationBus()
        published = []
        bus.subscribe(published.append)
        service = LeadService(_supabase(leads=table, hire_helper_leads=_table_mock()), bus=bus)

        lead = await service.update_lead("leads", "1", LeadUpdate(service_required="Maid", notes="call later"))

        columns = table.update.call_args.args[0]
        assert columns["service"] == "Maid"
        assert columns["notes"] == "call later"
        assert "service_required" not in columns
        assert "updated_at" in columns
        assert lead.service_required == "Maid"
        assert published == ["leads", "lead"]

    @pytest.mark.asyncio
    async def test_only_sent_fields_are_written(self):
        table = _table_mock(update_data=[{"id": 1}])
        service = LeadService(_supabase(leads=table, hire_helper_leads=_table_mock()))

        await service.update_lead("leads", "1", LeadUpdate(notes="x"))

        assert set(table.update.call_args.args[0]) == {"notes", "updated_at"}

    @pytest.mark.asyncio
    async def test_missing_row_raises_not_found_and_keeps_cache(self):
        table = _table_mock(update_data=[])
        bus = InvalidationBus()
        published = []
        bus.subscribe(published.append)
        service = LeadService(_supabase(leads=table, hire_helper_leads=_table_mock()), bus=bus)

        with pytest.raises(LeadNotFoundError) as exc_info:
            await service.update_lead("leads", "404", {"notes": "x"})

        assert "404" in exc_info.value.message
        assert published == []

    @pytest.mark.asyncio
    async def test_empty_update_is_rejected(self):
        service = LeadService(_supabase(leads=_table_mock(), hire_helper_leads=_table_mock()))

        with pytest.raises(LeadUpdateError):
            await service.update_lead("leads", "1", LeadUpdate())

    @pytest.mark.asyncio
    async def test_unknown_table_is_rejected(self):
        service = LeadService(_supabase())

        with pytest.raises(ValueError):
            await service.update_lead("contacts", "1", {"notes": "x"})


class TestLeadActions:
    """Tests for the single-purpose actions"""

    @pytest.mark.asyncio
    async def test_mark_contacted_sets_status_and_timestamp(self):
        table = _table_mock(update_data=[{"id": 1, "status": "Contacted"}])
        service = LeadService(_supabase(leads=table, hire_helper_leads=_table_mock()))

        await service.mark_contacted("leads", "1")

        columns = table.update.call_args.args[0]
        assert columns["status"] == "Contacted"
        assert datetime.fromisoformat(columns["last_contacted_at"]).tzinfo is not None

    @pytest.mark.asyncio
    async def test_assign_empty_name_unassigns(self):
        table = _table_mock(update_data=[{"id": 1}])
        service = LeadService(_supabase(leads=table, hire_helper_leads=_table_mock()))

        await service.assign("leads", "1", "")

        assert table.update.call_args.args[0]["assigned_to"] is None

    @pytest.mark.asyncio
    async def test_update_notes(self):
        table = _table_mock(update_data=[{"id": "h1", "notes": "prefers mornings"}])
        service = LeadService(_supabase(leads=_table_mock(), hire_helper_leads=table))

        lead = await service.update_notes("hire_helper_leads", "h1", "prefers mornings")

        assert lead.notes == "prefers mornings"
        assert table.update.call_args.args[0] == {"notes": "prefers mornings"}

    @pytest.mark.asyncio
    async def test_hire_helper_update_writes_only_given_columns(self):
        table = _table_mock(update_data=[{"id": "h1", "status": "Contacted", "assigned_to": "Asha"}])
        service = LeadService(_supabase(leads=_table_mock(), hire_helper_leads=table))

        await service.update_lead("hire_helper_leads", "h1", LeadUpdate(status="Contacted", assigned_to="Asha"))

        assert set(table.update.call_args.args[0]) == {"status", "assigned_to"}

    @pytest.mark.asyncio
    async def test_change_status_rejects_unknown_status(self):
        service = LeadService(_supabase(leads=_table_mock(), hire_helper_leads=_table_mock()))

        with pytest.raises(ValueError):
            await service.change_status("leads", "1", "Maybe")


class TestCreateAndGetLead:
    """Tests for create_lead and get_lead"""

    @pytest.mark.asyncio
    async def test_create_writes_to_leads_table(self):
        leads_table = _table_mock(insert_data=[{"id": 77, "name": "Meera", "service": "Cook", "status": "New"}])
        hire_table = _table_mock()
        service = LeadService(_supabase(leads=leads_table, hire_helper_leads=hire_table))

        lead = await service.create_lead(LeadCreate(name="Meera", service_required="Cook"))

        columns = leads_table.insert.call_args.args[0]
        assert columns["name"] == "Meera"
        assert columns["service"] == "Cook"
        assert columns["status"] == "New"
        assert columns["priority"] == "Medium"
        assert lead.id == "77"
        assert lead.source_table == "leads"
        hire_table.insert.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_lead_not_found(self):
        service = LeadService(_supabase(leads=_table_mock([]), hire_helper_leads=_table_mock()))

        with pytest.raises(LeadNotFoundError):
            await service.get_lead("leads", "9")

    @pytest.mark.asyncio
    async def test_get_lead_reads_from_its_table(self):
        hire_table = _table_mock([{"id": "h1", "name": "Ravi"}])
        service = LeadService(_supabase(leads=_table_mock(), hire_helper_leads=hire_table))

        lead = await service.get_lead("hire_helper_leads", "h1")

        assert lead.name == "Ravi"
        hire_table.select.return_value.eq.assert_called_once_with("id", "h1")
