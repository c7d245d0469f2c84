"""Vital-sign zone models and domain constants for the timeline engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Metric(str, Enum):
    """Vital metrics the zone engine knows how to classify."""

    BLOOD_PRESSURE = "BloodPressure"
    HEART_RATE = "HeartRate"
    TEMPERATURE = "Temperature"
    SPO2 = "Spo2"
    RESPIRATORY_RATE = "RespiratoryRate"
    GLUCOSE = "Glucose"


class Zone(str, Enum):
    """Severity bucket assigned to a vital value."""

    GREEN = "Green"
    AMBER = "Amber"
    RED = "Red"


# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

# Display rank only. Classification never compares zones numerically,
# except to let the worse blood-pressure component win.
ZONE_SEVERITY = {
    Zone.GREEN: 0,
    Zone.AMBER: 1,
    Zone.RED: 2,
}

ZONE_INSIGHTS = {
    Zone.RED: "High - monitor closely.",
    Zone.AMBER: "Slightly high, monitor again tomorrow.",
    Zone.GREEN: "Returned to normal range.",
}

METRIC_DISPLAY_NAMES = {
    Metric.BLOOD_PRESSURE: "Blood Pressure",
    Metric.HEART_RATE: "Heart Rate",
    Metric.TEMPERATURE: "Temperature",
    Metric.SPO2: "SpO2",
    Metric.RESPIRATORY_RATE: "Respiratory Rate",
    Metric.GLUCOSE: "Glucose",
}

# Monthly flag labels, keyed by the zone of the month's mean value.
MONTHLY_FLAG_LABELS = {
    Metric.BLOOD_PRESSURE: {Zone.AMBER: "BP Elevated", Zone.RED: "BP Red risk"},
    Metric.HEART_RATE: {Zone.AMBER: "Heart Rate Elevated", Zone.RED: "Heart Rate Irregular"},
    Metric.TEMPERATURE: {Zone.AMBER: "Mild Fever", Zone.RED: "Fever Episodes"},
    Metric.SPO2: {Zone.AMBER: "SpO2 Borderline", Zone.RED: "Low SpO2"},
    Metric.RESPIRATORY_RATE: {
        Zone.AMBER: "Respiratory Irregularities",
        Zone.RED: "Respiratory Distress",
    },
    Metric.GLUCOSE: {Zone.AMBER: "Glucose Elevated", Zone.RED: "Glucose High"},
}

# Day counts toward a streak at or above this adherence score.
GOOD_ADHERENCE_THRESHOLD = 80

# Each distinct medication taken adds this much to the day's score (capped at 100).
ADHERENCE_POINTS_PER_MEDICATION = 33


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ZoneEvent:
    """A metric moved into a new zone at ``observed_at``."""

    metric: Metric
    zone: Zone
    observed_at: datetime
    value_summary: str
    insight: str
    previous_zone: Zone = Zone.GREEN
    observation_id: str = ""

    def to_dict(self) -> dict:
        return {
            "metric": self.metric.value,
            "zone": self.zone.value,
            "previous_zone": self.previous_zone.value,
            "observed_at": self.observed_at.isoformat(),
            "value_summary": self.value_summary,
            "insight": self.insight,
            "observation_id": self.observation_id,
        }


@dataclass(frozen=True)
class MonthlySummary:
    """Per-metric means for one calendar month of observations.

    Means are ``None`` when the month had no samples for that metric.
    Temperature keeps one decimal; everything else is a whole number.
    """

    month_key: str                   # YYYY-MM
    anchor_date: datetime            # recorded_at of the month's latest observation
    observation_count: int
    systolic: int | None = None
    diastolic: int | None = None
    heart_rate: int | None = None
    temperature: float | None = None
    spo2: int | None = None
    respiratory_rate: int | None = None
    glucose: int | None = None
    flags: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "month_key": self.month_key,
            "anchor_date": self.anchor_date.isoformat(),
            "observation_count": self.observation_count,
            "means": {
                "systolic": self.systolic,
                "diastolic": self.diastolic,
                "heart_rate": self.heart_rate,
                "temperature": self.temperature,
                "spo2": self.spo2,
                "respiratory_rate": self.respiratory_rate,
                "glucose": self.glucose,
            },
            "flags": list(self.flags),
        }


@dataclass(frozen=True)
class StreakState:
    """Current and best runs of consecutive good-adherence days."""

    current: int = 0
    best: int = 0

    def to_dict(self) -> dict:
        return {"current": self.current, "best": self.best}
