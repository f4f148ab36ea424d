"""
Unit tests for lead KPI aggregation
"""
from datetime import datetime, timedelta, timezone

from app.domain.models.analytics import LeadStats
from app.domain.models.lead import Lead
from app.domain.services.lead_stats import compute_lead_stats

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def _lead(lead_id: str, **fields) -> Lead:
    return Lead(id=lead_id, source_table="leads", **fields)


class TestComputeLeadStats:
    """Tests for compute_lead_stats"""

    def test_no_leads_gives_all_zeros(self):
        assert compute_lead_stats([], 0, NOW) == LeadStats()
        assert compute_lead_stats(None, 0, NOW) == LeadStats()

    def test_conversion_rate_is_rounded_percentage(self):
        leads = [_lead(str(i), status="Converted" if i < 1 else "New") for i in range(3)]
        stats = compute_lead_stats(leads, len(leads), NOW)
        assert stats.conversion_rate == 33

    def test_conversion_rate_rounds_half_up(self):
        leads = [_lead(str(i), status="Converted" if i < 1 else "New") for i in range(8)]
        assert compute_lead_stats(leads, 8, NOW).conversion_rate == 13  # 12.5

    def test_all_converted(self):
        leads = [_lead(str(i), status="Converted") for i in range(4)]
        assert compute_lead_stats(leads, 4, NOW).conversion_rate == 100

    def test_new_leads_counts_last_seven_days(self):
        leads = [
            _lead("1", created_at=NOW - timedelta(days=1)),
            _lead("2", created_at=NOW - timedelta(days=7)),
            _lead("3", created_at=NOW - timedelta(days=8)),
            _lead("4"),
        ]
        assert compute_lead_stats(leads, 4, NOW).new_leads == 2

    def test_unassigned_and_overdue(self):
        leads = [
            _lead("1", assigned_to="meera", next_followup_at=NOW - timedelta(hours=2)),
            _lead("2", assigned_to="", next_followup_at=NOW + timedelta(hours=2)),
            _lead("3"),
        ]
        stats = compute_lead_stats(leads, 3, NOW)
        assert stats.unassigned == 2
        assert stats.overdue == 1

    def test_total_uses_supplied_count(self):
        """The total comes from the authoritative match count"""
        leads = [_lead("1"), _lead("2")]
        assert compute_lead_stats(leads, 57, NOW).total_leads == 57
