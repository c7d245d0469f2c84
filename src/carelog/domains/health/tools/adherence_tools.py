"""MCP tools for medication dose tracking and adherence streaks.

The tools own the clock: they read the current time in the configured
timezone and hand it to the pure adherence functions, then persist the
returned collection.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone, tzinfo
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from carelog.domains.health.domain_logic.adherence import (
    compute_adherence_streaks,
    get_adherence_for_date,
    is_medication_taken_today,
    mark_medication_taken,
    overall_adherence_score,
)

if TYPE_CHECKING:
    from carelog.core.audit.logger import AuditLogger
    from carelog.core.storage.repository import HealthRepository

logger = logging.getLogger(__name__)


def register_adherence_tools(
    mcp: FastMCP,
    repository: HealthRepository,
    audit_logger: AuditLogger | None = None,
    *,
    tz: tzinfo = timezone.utc,
    clock: Callable[[], datetime] | None = None,
) -> None:
    """Register medication adherence tools on the MCP server.

    Args:
        tz: Timezone that decides which calendar day a dose belongs to.
        clock: Returns the current time; defaults to ``datetime.now(tz)``.
    """

    def _now() -> datetime:
        if clock is not None:
            return clock().astimezone(tz)
        return datetime.now(tz)

    @mcp.tool(name="mark_medication_taken")
    async def mark_medication_taken_tool(
        ctx: Context,
        medication_id: str,
        medication_name: str,
        dosage: str = "",
    ) -> str:
        """Mark a medication as taken today and update your adherence streak.

        Marking the same medication twice on one day changes nothing.

        Args:
            medication_id: Stable id of the medication.
            medication_name: Name of the medication (e.g., 'Lisinopril').
            dosage: Dosage taken (e.g., '10 mg').
        """
        if not medication_id.strip():
            return json.dumps({"status": "error", "message": "medication_id is required"})

        start_time = time.monotonic()
        now = _now()
        before = repository.get_adherence_days()
        already_taken = is_medication_taken_today(before, medication_id, now.date())

        days = mark_medication_taken(before, medication_id, medication_name, dosage, now)
        today = get_adherence_for_date(days, now.date())
        if not already_taken:
            repository.save_adherence_days([today])
            logger.info("Dose recorded for medication %s on %s", medication_id, today.date)

        streaks = compute_adherence_streaks(days)
        if audit_logger is not None:
            audit_logger.log_tool_call(
                tool_name="mark_medication_taken",
                tool_input={"medication_id": medication_id},
                user_id=repository.user_id,
                record_id=today.date,
                duration_ms=(time.monotonic() - start_time) * 1000,
                metadata={"already_taken": already_taken},
            )
        return json.dumps({
            "status": "already_taken" if already_taken else "saved",
            "date": today.date,
            "taken_today": [m.to_dict() for m in today.taken_medications],
            "adherence_score": today.adherence_score,
            "streak": streaks.to_dict(),
        })

    @mcp.tool
    async def medication_streak(ctx: Context) -> str:
        """Show your current and best medication adherence streaks.

        A day counts toward a streak when its adherence score is 80 or more.
        """
        days = repository.get_adherence_days()
        streaks = compute_adherence_streaks(days)
        today = get_adherence_for_date(days, _now().date())
        return json.dumps({
            "status": "ok",
            "current_streak": streaks.current,
            "best_streak": streaks.best,
            "overall_adherence_score": overall_adherence_score(days),
            "days_logged": len(days),
            "today": today.to_dict() if today is not None else None,
        })

    @mcp.tool
    async def medication_taken_today(ctx: Context, medication_id: str) -> str:
        """Check whether a medication has already been marked taken today.

        Args:
            medication_id: Stable id of the medication.
        """
        now = _now()
        taken = is_medication_taken_today(
            repository.get_adherence_days(), medication_id, now.date()
        )
        return json.dumps({
            "status": "ok",
            "medication_id": medication_id,
            "date": now.date().isoformat(),
            "taken": taken,
        })
