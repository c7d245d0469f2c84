"""MCP tools for viewing the audit trail.

The audit log is PHI-free: it records which tools touched which records and
when, with tool inputs reduced to a hash.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from carelog.core.audit.logger import AuditLogger

logger = logging.getLogger(__name__)


def register_audit_tools(
    mcp: FastMCP,
    audit_logger: AuditLogger,
) -> None:
    """Register audit trail tools on the MCP server."""

    @mcp.tool
    async def audit_summary(
        ctx: Context,
        days: int = 30,
    ) -> str:
        """View recent data access and deletion events.

        Args:
            days: Number of days to look back (default: 30).
        """
        since = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()

        total_events = audit_logger.count_events(since=since)
        delete_events = audit_logger.count_events(action="data_delete", since=since)
        recent_events = audit_logger.get_events(since=since, limit=20)

        display_events = [
            {
                "timestamp": event.get("timestamp"),
                "action": event.get("action"),
                "tool_name": event.get("tool_name"),
                "status": event.get("status"),
                "duration_ms": event.get("duration_ms"),
            }
            for event in recent_events
        ]

        return json.dumps({
            "status": "ok",
            "period_days": days,
            "total_events": total_events,
            "deletions": delete_events,
            "recent_events": display_events,
            "note": "This audit trail contains no health data.",
        }, indent=2)
