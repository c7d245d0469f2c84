"""Zone transition detection over a chronological vitals series.

Emits a ``ZoneEvent`` only when a metric's zone differs from the zone it
was last seen in. Every metric starts out Green, so the first reading of a
metric only produces an event when it is Amber or Red.

The input must already be sorted ascending by ``recorded_at``. The detector
does not re-sort; out-of-order input gives undefined results.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from carelog.core.storage.models import VitalObservation
from carelog.domains.health.domain_logic.zone_classifier import (
    classify_vital,
    format_vital_value,
    observation_value,
)
from carelog.domains.health.domain_logic.zone_models import (
    ZONE_INSIGHTS,
    Metric,
    Zone,
    ZoneEvent,
)

logger = logging.getLogger(__name__)


class ZoneTransitionDetector:
    """Single-pass, per-metric zone tracker.

    Usage::

        detector = ZoneTransitionDetector()
        for observation in observations:
            events.extend(detector.process(observation))
    """

    def __init__(self) -> None:
        self._previous: dict[Metric, Zone] = {metric: Zone.GREEN for metric in Metric}

    def current_zone(self, metric: Metric) -> Zone:
        return self._previous[metric]

    def process(self, observation: VitalObservation) -> list[ZoneEvent]:
        """Classify every recorded metric and return the transitions it causes."""
        events: list[ZoneEvent] = []
        for metric in Metric:
            value = observation_value(observation, metric)
            if value is None:
                continue

            zone = classify_vital(metric, value)
            previous = self._previous[metric]
            if zone == previous:
                continue

            events.append(ZoneEvent(
                metric=metric,
                zone=zone,
                observed_at=observation.recorded_at,
                value_summary=format_vital_value(metric, value),
                insight=ZONE_INSIGHTS[zone],
                previous_zone=previous,
                observation_id=observation.id,
            ))
            self._previous[metric] = zone
        return events


def derive_zone_events(observations: Iterable[VitalObservation]) -> list[ZoneEvent]:
    """Return every zone transition in an ascending-sorted vitals series.

    Pure and deterministic: the same input always yields the same events,
    and a longer series sharing the same leading observations yields the
    same leading events.
    """
    detector = ZoneTransitionDetector()
    events: list[ZoneEvent] = []
    count = 0
    for observation in observations:
        events.extend(detector.process(observation))
        count += 1
    logger.debug("Derived %d zone events from %d observations", len(events), count)
    return events
