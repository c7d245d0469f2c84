"""Monthly roll-up of vital observations.

Buckets observations by the calendar month of ``recorded_at``, averages each
metric over the samples that were actually recorded, and flags any metric
whose monthly mean lands in Amber or Red using the same zone table as the
per-sample classifier.
"""

from __future__ import annotations

import logging
import statistics
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from carelog.core.storage.models import VitalObservation
from carelog.domains.health.domain_logic.zone_classifier import classify_vital
from carelog.domains.health.domain_logic.zone_models import (
    MONTHLY_FLAG_LABELS,
    Metric,
    MonthlySummary,
    Zone,
)

logger = logging.getLogger(__name__)

_INTEGER_FIELDS = ("systolic", "diastolic", "heart_rate", "spo2", "respiratory_rate", "glucose")


def round_half_up(value: float, places: int = 0) -> float:
    """Round like a clinician would (0.5 goes up), not banker's rounding."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def month_key(moment: datetime) -> str:
    return f"{moment.year:04d}-{moment.month:02d}"


@dataclass
class _MonthBucket:
    key: str
    anchor: datetime
    count: int = 0
    samples: dict[str, list[float]] = field(default_factory=dict)

    def add(self, observation: VitalObservation) -> None:
        self.count += 1
        if observation.recorded_at > self.anchor:
            self.anchor = observation.recorded_at
        for name, value in observation.metric_values().items():
            self.samples.setdefault(name, []).append(value)

    def mean(self, name: str) -> float | None:
        values = self.samples.get(name)
        if not values:
            return None
        return statistics.fmean(values)


def _monthly_flags(means: dict[str, float | None]) -> list[str]:
    """One label per metric whose mean is Amber or Red."""
    aggregate_values = {
        Metric.BLOOD_PRESSURE: (
            (means["systolic"], means["diastolic"])
            if means["systolic"] is not None and means["diastolic"] is not None
            else None
        ),
        Metric.HEART_RATE: means["heart_rate"],
        Metric.TEMPERATURE: means["temperature"],
        Metric.SPO2: means["spo2"],
        Metric.RESPIRATORY_RATE: means["respiratory_rate"],
        Metric.GLUCOSE: means["glucose"],
    }

    flags = []
    for metric in Metric:
        value = aggregate_values[metric]
        if value is None:
            continue
        zone = classify_vital(metric, value)
        if zone is not Zone.GREEN:
            flags.append(MONTHLY_FLAG_LABELS[metric][zone])
    return flags


def _summarize(bucket: _MonthBucket) -> MonthlySummary:
    means: dict[str, float | None] = {}
    for name in _INTEGER_FIELDS:
        mean = bucket.mean(name)
        means[name] = int(round_half_up(mean)) if mean is not None else None
    temperature = bucket.mean("temperature")
    means["temperature"] = round_half_up(temperature, 1) if temperature is not None else None

    return MonthlySummary(
        month_key=bucket.key,
        anchor_date=bucket.anchor,
        observation_count=bucket.count,
        flags=tuple(_monthly_flags(means)),
        **means,
    )


def derive_monthly_summaries(observations: Iterable[VitalObservation]) -> list[MonthlySummary]:
    """Summarize observations per calendar month.

    Input order does not matter. Exactly one summary is produced for every
    month that has at least one observation, ordered by month ascending.
    Months are taken from ``recorded_at`` in whatever offset it carries;
    convert to the user's timezone first for local-calendar buckets.
    """
    buckets: dict[str, _MonthBucket] = {}
    for observation in observations:
        key = month_key(observation.recorded_at)
        bucket = buckets.get(key)
        if bucket is None:
            bucket = buckets[key] = _MonthBucket(key=key, anchor=observation.recorded_at)
        bucket.add(observation)

    summaries = [_summarize(buckets[key]) for key in sorted(buckets)]
    logger.debug("Derived %d monthly summaries", len(summaries))
    return summaries
