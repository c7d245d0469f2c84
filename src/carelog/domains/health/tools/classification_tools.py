"""MCP tool for classifying a single vital reading. Needs no storage."""

from __future__ import annotations

import json

from fastmcp import Context, FastMCP

from carelog.domains.health.domain_logic.zone_classifier import (
    classify_vital,
    format_vital_value,
)
from carelog.domains.health.domain_logic.zone_models import ZONE_INSIGHTS, Metric, Zone


def register_classification_tools(mcp: FastMCP) -> None:
    """Register the stateless zone classification tool."""

    @mcp.tool
    async def classify_vital_reading(
        ctx: Context,
        metric: str,
        value: float | None = None,
        systolic: float | None = None,
        diastolic: float | None = None,
    ) -> str:
        """Classify one vital reading as Green, Amber or Red.

        Fixed-threshold heuristics for self-tracking, not a diagnosis.

        Args:
            metric: BloodPressure, HeartRate, Temperature, Spo2, RespiratoryRate or Glucose.
            value: The reading, for every metric except BloodPressure.
            systolic: Systolic mmHg, for BloodPressure.
            diastolic: Diastolic mmHg, for BloodPressure.
        """
        try:
            parsed = Metric(metric)
        except ValueError:
            return json.dumps({
                "status": "error",
                "message": f"Unknown metric {metric!r}",
                "valid_metrics": [m.value for m in Metric],
            })

        reading = (systolic, diastolic) if parsed is Metric.BLOOD_PRESSURE else value
        try:
            zone = classify_vital(parsed, reading)
        except ValueError as exc:
            return json.dumps({"status": "error", "message": str(exc)})

        return json.dumps({
            "status": "ok",
            "metric": parsed.value,
            "value": format_vital_value(parsed, reading),
            "zone": zone.value,
            "insight": ZONE_INSIGHTS[zone] if zone is not Zone.GREEN else "Within normal range.",
        })
