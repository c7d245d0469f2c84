"""MCP tools for logging and reviewing vital signs.

Readings are persisted to the encrypted health data bank. Logging a reading
also rebuilds the derived vitals timeline so zone-change alerts show up
immediately.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone, tzinfo
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from carelog.core.storage.models import VitalObservation, parse_timestamp
from carelog.domains.health.domain_logic.zone_classifier import (
    classify_vital,
    observation_value,
)
from carelog.domains.health.domain_logic.zone_models import Metric
from carelog.domains.health.tools.timeline_tools import rebuild_vitals_timeline

if TYPE_CHECKING:
    from carelog.core.audit.logger import AuditLogger
    from carelog.core.storage.repository import HealthRepository

logger = logging.getLogger(__name__)


def _zones_for(observation: VitalObservation) -> dict[str, str]:
    zones = {}
    for metric in Metric:
        value = observation_value(observation, metric)
        if value is not None:
            zones[metric.value] = classify_vital(metric, value).value
    return zones


def register_vitals_tools(
    mcp: FastMCP,
    repository: HealthRepository,
    audit_logger: AuditLogger | None = None,
    *,
    tz: tzinfo = timezone.utc,
) -> None:
    """Register vitals entry and review tools on the MCP server."""

    @mcp.tool
    async def log_vitals(
        ctx: Context,
        systolic: int | None = None,
        diastolic: int | None = None,
        heart_rate: int | None = None,
        temperature_c: float | None = None,
        spo2: int | None = None,
        respiratory_rate: int | None = None,
        glucose: int | None = None,
        recorded_at: str = "",
        notes: str = "",
    ) -> str:
        """Record a set of vital signs from a home measurement or doctor visit.

        Args:
            systolic: Systolic blood pressure in mmHg (top number).
            diastolic: Diastolic blood pressure in mmHg (bottom number).
            heart_rate: Heart rate in BPM.
            temperature_c: Body temperature in degrees Celsius.
            spo2: Blood oxygen saturation percentage.
            respiratory_rate: Breaths per minute.
            glucose: Blood glucose in mg/dL.
            recorded_at: When the reading was taken (ISO 8601). Defaults to now.
            notes: Optional free-text notes.
        """
        start_time = time.monotonic()
        try:
            when = parse_timestamp(recorded_at) if recorded_at else datetime.now(timezone.utc)
        except ValueError:
            return json.dumps({
                "status": "error",
                "message": f"Invalid recorded_at timestamp: {recorded_at!r}",
            })

        observation = VitalObservation(
            id="",
            recorded_at=when,
            systolic=systolic,
            diastolic=diastolic,
            heart_rate=heart_rate,
            temperature=round(temperature_c, 1) if temperature_c is not None else None,
            spo2=spo2,
            respiratory_rate=respiratory_rate,
            glucose=glucose,
            notes=notes,
        )
        if not observation.has_metrics():
            return json.dumps({"status": "error", "message": "No vitals provided"})

        oid = repository.save_observation(observation)
        timeline = rebuild_vitals_timeline(repository, tz)
        recorded = list(observation.metric_values())

        if audit_logger is not None:
            audit_logger.log_tool_call(
                tool_name="log_vitals",
                tool_input=observation.metric_values(),
                user_id=repository.user_id,
                record_id=oid,
                duration_ms=(time.monotonic() - start_time) * 1000,
            )
        logger.info("Vitals saved: %s (observation %s)", recorded, oid)
        return json.dumps({
            "status": "saved",
            "observation_id": oid,
            "recorded_at": when.isoformat(),
            "recorded_vitals": recorded,
            "zones": _zones_for(observation),
            "timeline": timeline,
        })

    @mcp.tool
    async def list_vitals(
        ctx: Context,
        since: str = "",
        until: str = "",
        limit: int = 50,
    ) -> str:
        """List recorded vital signs, oldest first.

        Args:
            since: Optional ISO 8601 lower bound (inclusive).
            until: Optional ISO 8601 upper bound (inclusive).
            limit: Keep only the most recent N readings.
        """
        try:
            observations = repository.get_observations(
                since=since or None, until=until or None, limit=limit
            )
        except ValueError:
            return json.dumps({"status": "error", "message": "Invalid since/until timestamp"})

        if audit_logger is not None:
            audit_logger.log_tool_call(
                tool_name="list_vitals",
                tool_input={"since": since, "until": until, "limit": limit},
                user_id=repository.user_id,
            )
        return json.dumps({
            "status": "ok",
            "count": len(observations),
            "observations": [
                {**obs.to_dict(), "zones": _zones_for(obs)} for obs in observations
            ],
        }, indent=2)

    @mcp.tool
    async def delete_vitals(ctx: Context, observation_id: str) -> str:
        """Delete a recorded vitals reading and rebuild the vitals timeline.

        Args:
            observation_id: The id returned when the reading was logged.
        """
        deleted = repository.delete_observation(observation_id)
        if not deleted:
            return json.dumps({"status": "not_found", "observation_id": observation_id})

        timeline = rebuild_vitals_timeline(repository, tz)
        if audit_logger is not None:
            audit_logger.log_data_delete(
                tool_name="delete_vitals",
                user_id=repository.user_id,
                record_id=observation_id,
                count=1,
            )
        return json.dumps({
            "status": "deleted",
            "observation_id": observation_id,
            "timeline": timeline,
        })
