"""MCP tools for the health timeline.

System entries (zone changes and monthly summaries) are always recomputed
from the stored vitals, never edited in place, so a refresh can be run any
number of times.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import replace
from datetime import datetime, timezone, tzinfo
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from carelog.core.storage.models import TimelineEntry, parse_timestamp
from carelog.domains.health.domain_logic.timeline import (
    SYSTEM_TYPE_SUMMARY,
    SYSTEM_TYPE_THRESHOLD,
    VITALS_CATEGORY,
    build_vitals_timeline,
)

if TYPE_CHECKING:
    from carelog.core.audit.logger import AuditLogger
    from carelog.core.storage.repository import HealthRepository

logger = logging.getLogger(__name__)

TIMELINE_CATEGORIES = ("Vitals", "Medication", "Appointment", "Document", "Test", "Other")


def rebuild_vitals_timeline(repository: HealthRepository, tz: tzinfo = timezone.utc) -> dict:
    """Recompute the user's system vitals entries from their full history.

    Observations are shifted into ``tz`` first so monthly buckets follow
    the user's calendar.

    Returns:
        Counts of observations read and entries written, by type.
    """
    observations = [
        replace(obs, recorded_at=obs.recorded_at.astimezone(tz))
        for obs in repository.get_observations()
    ]
    entries = build_vitals_timeline(observations)
    repository.replace_system_timeline_entries(entries, category=VITALS_CATEGORY)

    zone_changes = sum(1 for e in entries if e.system_type == SYSTEM_TYPE_THRESHOLD)
    summaries = sum(1 for e in entries if e.system_type == SYSTEM_TYPE_SUMMARY)
    logger.info(
        "Rebuilt vitals timeline: %d observations -> %d zone changes, %d monthly summaries",
        len(observations), zone_changes, summaries,
    )
    return {
        "observations": len(observations),
        "zone_changes": zone_changes,
        "monthly_summaries": summaries,
    }


def register_timeline_tools(
    mcp: FastMCP,
    repository: HealthRepository,
    audit_logger: AuditLogger | None = None,
    *,
    tz: tzinfo = timezone.utc,
) -> None:
    """Register timeline tools on the MCP server."""

    @mcp.tool
    async def refresh_vitals_timeline(ctx: Context) -> str:
        """Rebuild zone-change alerts and monthly vitals summaries from all stored vitals.

        Safe to run repeatedly: previous system-generated vitals entries are
        replaced, user-written entries are kept.
        """
        start_time = time.monotonic()
        counts = rebuild_vitals_timeline(repository, tz)

        if audit_logger is not None:
            audit_logger.log_tool_call(
                tool_name="refresh_vitals_timeline",
                user_id=repository.user_id,
                duration_ms=(time.monotonic() - start_time) * 1000,
                metadata=counts,
            )
        return json.dumps({"status": "ok", **counts})

    @mcp.tool
    async def get_timeline(
        ctx: Context,
        category: str = "all",
        system_only: bool = False,
        limit: int = 100,
    ) -> str:
        """List timeline entries, newest first.

        Args:
            category: 'all' or one of Vitals, Medication, Appointment, Document, Test, Other.
            system_only: Only return entries generated from vitals.
            limit: Maximum number of entries.
        """
        if category != "all" and category not in TIMELINE_CATEGORIES:
            return json.dumps({
                "status": "error",
                "message": f"Unknown category {category!r}",
                "valid_categories": ["all", *TIMELINE_CATEGORIES],
            })

        entries = repository.get_timeline(
            category=category,
            is_system=True if system_only else None,
            limit=limit,
        )

        if audit_logger is not None:
            audit_logger.log_tool_call(
                tool_name="get_timeline",
                tool_input={"category": category, "system_only": system_only, "limit": limit},
                user_id=repository.user_id,
            )
        return json.dumps({
            "status": "ok",
            "count": len(entries),
            "entries": [e.to_dict() for e in entries],
        }, indent=2)

    @mcp.tool
    async def add_timeline_note(
        ctx: Context,
        title: str,
        category: str = "Other",
        details: str = "",
        date: str = "",
        related_id: str = "",
        notes: str = "",
    ) -> str:
        """Add a user-written entry to the health timeline.

        Args:
            title: Short title (e.g., 'Started new blood pressure medication').
            category: One of Vitals, Medication, Appointment, Document, Test, Other.
            details: Longer description.
            date: ISO 8601 date or timestamp. Defaults to now.
            related_id: Optional id of a related record.
            notes: Optional private notes.
        """
        if not title.strip():
            return json.dumps({"status": "error", "message": "Title is required"})
        if category not in TIMELINE_CATEGORIES:
            return json.dumps({"status": "error", "message": f"Unknown category {category!r}"})
        try:
            when = parse_timestamp(date) if date else datetime.now(timezone.utc)
        except ValueError:
            return json.dumps({"status": "error", "message": f"Invalid date: {date!r}"})

        eid = repository.add_timeline_entry(TimelineEntry(
            id="",
            title=title.strip(),
            date=when.isoformat(),
            category=category,
            details=details,
            related_id=related_id or None,
            notes=notes,
        ))
        if audit_logger is not None:
            audit_logger.log_tool_call(
                tool_name="add_timeline_note",
                tool_input={"title": title, "category": category},
                user_id=repository.user_id,
                record_id=eid,
            )
        return json.dumps({"status": "saved", "entry_id": eid, "date": when.isoformat()})

    @mcp.tool
    async def delete_timeline_entry(ctx: Context, entry_id: str) -> str:
        """Delete one timeline entry.

        System-generated vitals entries come back on the next refresh unless
        the underlying vitals are deleted too.

        Args:
            entry_id: The id of the entry to delete.
        """
        deleted = repository.delete_timeline_entry(entry_id)
        if not deleted:
            return json.dumps({"status": "not_found", "entry_id": entry_id})

        if audit_logger is not None:
            audit_logger.log_data_delete(
                tool_name="delete_timeline_entry",
                user_id=repository.user_id,
                record_id=entry_id,
                count=1,
            )
        return json.dumps({"status": "deleted", "entry_id": entry_id})
