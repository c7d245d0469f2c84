"""Tests for projecting vitals events onto the timeline."""

from __future__ import annotations

from carelog.core.storage.models import VitalObservation
from carelog.domains.health.domain_logic.timeline import (
    SYSTEM_TYPE_SUMMARY,
    SYSTEM_TYPE_THRESHOLD,
    VITALS_CATEGORY,
    build_vitals_timeline,
    monthly_summary_to_timeline_entry,
    zone_event_to_timeline_entry,
)
from carelog.domains.health.domain_logic.monthly_aggregator import derive_monthly_summaries
from carelog.domains.health.domain_logic.transition_detector import derive_zone_events


def _obs(recorded_at: str, id: str = "", **metrics) -> VitalObservation:
    return VitalObservation.from_dict({"id": id, "recorded_at": recorded_at, **metrics})


BP_SERIES = [
    _obs("2026-01-05T08:00:00Z", id="a", systolic=120, diastolic=80),
    _obs("2026-01-06T08:00:00Z", id="b", systolic=145, diastolic=95),
    _obs("2026-01-07T08:00:00Z", id="c", systolic=125, diastolic=82),
]


class TestZoneEventEntry:
    def test_fields(self):
        event = derive_zone_events(BP_SERIES)[0]
        entry = zone_event_to_timeline_entry(event)
        assert entry.title == "Blood Pressure: Red zone"
        assert entry.details == "145/95 mmHg. High - monitor closely."
        assert entry.category == VITALS_CATEGORY
        assert entry.date == "2026-01-06T08:00:00+00:00"
        assert entry.related_id == "b"
        assert entry.is_system
        assert entry.system_type == SYSTEM_TYPE_THRESHOLD

    def test_missing_observation_id_has_no_relation(self):
        event = derive_zone_events([_obs("2026-01-05T08:00:00Z", glucose=150)])[0]
        assert zone_event_to_timeline_entry(event).related_id is None


class TestSummaryEntry:
    def test_fields(self):
        summary = derive_monthly_summaries(BP_SERIES)[0]
        entry = monthly_summary_to_timeline_entry(summary)
        assert entry.title == "Vitals summary: 2026-01"
        assert entry.date == "2026-01-07T08:00:00+00:00"
        assert entry.details == "3 readings. Averages: BP 130/86 mmHg. Flags: BP Elevated."
        assert entry.system_type == SYSTEM_TYPE_SUMMARY
        assert entry.is_system

    def test_single_reading_without_flags(self):
        summary = derive_monthly_summaries([
            _obs("2026-02-01T08:00:00Z", heart_rate=70, temperature=36.8),
        ])[0]
        details = monthly_summary_to_timeline_entry(summary).details
        assert details == "1 reading. Averages: HR 70 bpm, Temp 36.8 °C. Flags: none."


class TestBuildTimeline:
    def test_empty(self):
        assert build_vitals_timeline([]) == []

    def test_merged_in_date_order(self):
        entries = build_vitals_timeline(BP_SERIES)
        assert [(e.date, e.system_type) for e in entries] == [
            ("2026-01-06T08:00:00+00:00", SYSTEM_TYPE_THRESHOLD),
            ("2026-01-07T08:00:00+00:00", SYSTEM_TYPE_THRESHOLD),
            ("2026-01-07T08:00:00+00:00", SYSTEM_TYPE_SUMMARY),
        ]
        assert all(e.category == VITALS_CATEGORY for e in entries)

    def test_summary_per_month(self):
        entries = build_vitals_timeline([
            _obs("2026-01-05T08:00:00Z", heart_rate=70),
            _obs("2026-02-05T08:00:00Z", heart_rate=72),
            _obs("2026-03-05T08:00:00Z", heart_rate=71),
        ])
        titles = [e.title for e in entries]
        assert titles == [
            "Vitals summary: 2026-01",
            "Vitals summary: 2026-02",
            "Vitals summary: 2026-03",
        ]
