"""Projection of derived vitals events onto generic timeline entries."""

from __future__ import annotations

from collections.abc import Sequence

from carelog.core.storage.models import TimelineEntry, VitalObservation, parse_timestamp
from carelog.domains.health.domain_logic.monthly_aggregator import derive_monthly_summaries
from carelog.domains.health.domain_logic.transition_detector import derive_zone_events
from carelog.domains.health.domain_logic.zone_classifier import format_vital_value
from carelog.domains.health.domain_logic.zone_models import (
    METRIC_DISPLAY_NAMES,
    Metric,
    MonthlySummary,
    ZoneEvent,
)

VITALS_CATEGORY = "Vitals"
SYSTEM_TYPE_THRESHOLD = "threshold"
SYSTEM_TYPE_SUMMARY = "summary"


def zone_event_to_timeline_entry(event: ZoneEvent) -> TimelineEntry:
    return TimelineEntry(
        id="",
        title=f"{METRIC_DISPLAY_NAMES[event.metric]}: {event.zone.value} zone",
        date=event.observed_at.isoformat(),
        category=VITALS_CATEGORY,
        details=f"{event.value_summary}. {event.insight}",
        related_id=event.observation_id or None,
        is_system=True,
        system_type=SYSTEM_TYPE_THRESHOLD,
    )


def _summary_details(summary: MonthlySummary) -> str:
    parts = []
    if summary.systolic is not None and summary.diastolic is not None:
        parts.append("BP " + format_vital_value(
            Metric.BLOOD_PRESSURE, (summary.systolic, summary.diastolic)
        ))
    scalar_means = (
        ("HR", Metric.HEART_RATE, summary.heart_rate),
        ("Temp", Metric.TEMPERATURE, summary.temperature),
        ("SpO2", Metric.SPO2, summary.spo2),
        ("RR", Metric.RESPIRATORY_RATE, summary.respiratory_rate),
        ("Glucose", Metric.GLUCOSE, summary.glucose),
    )
    for label, metric, value in scalar_means:
        if value is not None:
            parts.append(f"{label} {format_vital_value(metric, value)}")

    averages = "Averages: " + (", ".join(parts) if parts else "none recorded")
    flags = "Flags: " + (", ".join(summary.flags) if summary.flags else "none")
    noun = "reading" if summary.observation_count == 1 else "readings"
    return f"{summary.observation_count} {noun}. {averages}. {flags}."


def monthly_summary_to_timeline_entry(summary: MonthlySummary) -> TimelineEntry:
    return TimelineEntry(
        id="",
        title=f"Vitals summary: {summary.month_key}",
        date=summary.anchor_date.isoformat(),
        category=VITALS_CATEGORY,
        details=_summary_details(summary),
        is_system=True,
        system_type=SYSTEM_TYPE_SUMMARY,
    )


def build_vitals_timeline(observations: Sequence[VitalObservation]) -> list[TimelineEntry]:
    """Derive every system timeline entry for an ascending vitals series.

    Zone changes and monthly summaries are merged in date order; on equal
    dates a zone change sorts before the summary it belongs to.
    """
    entries = [zone_event_to_timeline_entry(e) for e in derive_zone_events(observations)]
    entries += [
        monthly_summary_to_timeline_entry(s) for s in derive_monthly_summaries(observations)
    ]
    return sorted(
        entries,
        key=lambda entry: (
            parse_timestamp(entry.date),
            entry.system_type == SYSTEM_TYPE_SUMMARY,
        ),
    )
