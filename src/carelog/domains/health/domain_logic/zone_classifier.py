"""Deterministic zone classification: vital value -> Green / Amber / Red.

All thresholds live in one table (``ZONE_BANDS``) shared by the transition
detector and the monthly aggregator, so per-sample and per-month
classification can never disagree.

Boundaries are inclusive as written in the table. Heart rate and
respiratory rate are two-sided: a very low value is Red as well.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from carelog.core.storage.models import VitalObservation
from carelog.domains.health.domain_logic.zone_models import (
    ZONE_SEVERITY,
    Metric,
    Zone,
)

BloodPressureReading = tuple[float, float]
VitalValue = Union[float, BloodPressureReading]


@dataclass(frozen=True)
class ZoneBand:
    """Thresholds for one scalar measurement.

    ``rising`` bands alarm on high values (``>= amber`` / ``>= red``);
    falling bands alarm on low values (``< amber`` / ``< red``).
    ``red_floor`` adds a low-end Red cutoff (``<= red_floor``) to a rising band.
    """

    amber: float
    red: float
    rising: bool = True
    red_floor: float | None = None

    def classify(self, value: float) -> Zone:
        if self.red_floor is not None and value <= self.red_floor:
            return Zone.RED
        if self.rising:
            if value >= self.red:
                return Zone.RED
            if value >= self.amber:
                return Zone.AMBER
            return Zone.GREEN
        if value < self.red:
            return Zone.RED
        if value < self.amber:
            return Zone.AMBER
        return Zone.GREEN


SYSTOLIC_BAND = ZoneBand(amber=130, red=140)
DIASTOLIC_BAND = ZoneBand(amber=85, red=90)

ZONE_BANDS: dict[Metric, ZoneBand] = {
    Metric.HEART_RATE: ZoneBand(amber=90, red=110, red_floor=50),
    Metric.TEMPERATURE: ZoneBand(amber=37.4, red=38.0),
    Metric.SPO2: ZoneBand(amber=95, red=92, rising=False),
    Metric.RESPIRATORY_RATE: ZoneBand(amber=20, red=24, red_floor=10),
    Metric.GLUCOSE: ZoneBand(amber=140, red=180),
}

# Observation attribute holding each scalar metric.
METRIC_FIELDS = {
    Metric.HEART_RATE: "heart_rate",
    Metric.TEMPERATURE: "temperature",
    Metric.SPO2: "spo2",
    Metric.RESPIRATORY_RATE: "respiratory_rate",
    Metric.GLUCOSE: "glucose",
}


def worse_zone(a: Zone, b: Zone) -> Zone:
    """Return the more severe of two zones."""
    return a if ZONE_SEVERITY[a] >= ZONE_SEVERITY[b] else b


def classify_blood_pressure(systolic: float, diastolic: float) -> Zone:
    """Classify a BP pair; the worse of the two components wins."""
    return worse_zone(SYSTOLIC_BAND.classify(systolic), DIASTOLIC_BAND.classify(diastolic))


def _blood_pressure_pair(value) -> BloodPressureReading:
    if isinstance(value, dict):
        systolic, diastolic = value.get("systolic"), value.get("diastolic")
    else:
        try:
            systolic, diastolic = value
        except (TypeError, ValueError) as exc:
            raise ValueError(
                "BloodPressure needs a (systolic, diastolic) pair"
            ) from exc
    if systolic is None or diastolic is None:
        raise ValueError("BloodPressure needs both systolic and diastolic values")
    return systolic, diastolic


def classify_vital(metric: Metric | str, value) -> Zone:
    """Classify one vital value.

    Args:
        metric: A ``Metric`` or its string value (e.g. ``"Glucose"``).
        value: A number, or for ``BloodPressure`` a ``(systolic, diastolic)``
            pair or a ``{"systolic": .., "diastolic": ..}`` dict.

    Raises:
        ValueError: For an unknown metric or a missing value. Absent values
            are never classified; callers skip them instead.
    """
    metric = Metric(metric)
    if value is None:
        raise ValueError(f"No {metric.value} value to classify")

    if metric is Metric.BLOOD_PRESSURE:
        return classify_blood_pressure(*_blood_pressure_pair(value))
    return ZONE_BANDS[metric].classify(value)


def observation_value(observation: VitalObservation, metric: Metric) -> VitalValue | None:
    """Pull the value for ``metric`` from an observation, or None if not recorded.

    Blood pressure is only available when both halves were recorded.
    """
    if metric is Metric.BLOOD_PRESSURE:
        if observation.systolic is None or observation.diastolic is None:
            return None
        return (observation.systolic, observation.diastolic)
    return getattr(observation, METRIC_FIELDS[metric])


# ---------------------------------------------------------------------------
# Human-readable value snapshots
# ---------------------------------------------------------------------------

def _whole(value: float) -> str:
    """Render without a trailing '.0' when the value is whole."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def format_vital_value(metric: Metric, value: VitalValue) -> str:
    """Format a value for display, e.g. ``"148/95 mmHg"`` or ``"37.5 °C"``."""
    if metric is Metric.BLOOD_PRESSURE:
        systolic, diastolic = value
        return f"{_whole(systolic)}/{_whole(diastolic)} mmHg"
    if metric is Metric.HEART_RATE:
        return f"{_whole(value)} bpm"
    if metric is Metric.TEMPERATURE:
        return f"{value:.1f} °C"
    if metric is Metric.SPO2:
        return f"{_whole(value)}%"
    if metric is Metric.RESPIRATORY_RATE:
        return f"{_whole(value)} breaths/min"
    return f"{_whole(value)} mg/dL"
