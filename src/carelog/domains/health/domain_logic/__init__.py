"""Pure vitals timeline engine and medication adherence calculator."""

from __future__ import annotations

from carelog.domains.health.domain_logic.adherence import (
    compute_adherence_streaks,
    mark_medication_taken,
)
from carelog.domains.health.domain_logic.monthly_aggregator import derive_monthly_summaries
from carelog.domains.health.domain_logic.transition_detector import derive_zone_events
from carelog.domains.health.domain_logic.zone_classifier import classify_vital

__all__ = [
    "classify_vital",
    "compute_adherence_streaks",
    "derive_monthly_summaries",
    "derive_zone_events",
    "mark_medication_taken",
]
