"""MCP tools for health data retention and deletion.

These tools implement the user's right to delete their health data.
Every deletion is audit-logged, and derived vitals timeline entries are
rebuilt afterwards so they never outlive the readings they came from.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone, tzinfo
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from carelog.domains.health.tools.timeline_tools import rebuild_vitals_timeline

if TYPE_CHECKING:
    from carelog.core.audit.logger import AuditLogger
    from carelog.core.storage.repository import HealthRepository

logger = logging.getLogger(__name__)


def register_data_management_tools(
    mcp: FastMCP,
    repository: HealthRepository,
    audit_logger: AuditLogger | None = None,
    *,
    tz: tzinfo = timezone.utc,
    clock: Callable[[], datetime] | None = None,
) -> None:
    """Register data management tools on the MCP server.

    Args:
        clock: Returns the current time; defaults to ``datetime.now``.
    """

    @mcp.tool
    async def purge_old_vitals(
        ctx: Context,
        older_than_days: int = 365,
    ) -> str:
        """Delete vitals readings older than a number of days.

        Zone-change alerts and monthly summaries are rebuilt from what remains.

        Args:
            older_than_days: Delete readings older than this many days (default: 365).
        """
        if older_than_days < 1:
            return json.dumps({
                "status": "error",
                "message": "older_than_days must be at least 1.",
            })

        start_time = time.monotonic()
        now = clock() if clock is not None else datetime.now(timezone.utc)
        cutoff = now - timedelta(days=older_than_days)
        count = repository.purge_observations_before(cutoff)
        if count:
            rebuild_vitals_timeline(repository, tz)
        elapsed_ms = (time.monotonic() - start_time) * 1000

        if audit_logger is not None and count > 0:
            audit_logger.log_data_delete(
                tool_name="purge_old_vitals",
                user_id=repository.user_id,
                count=count,
                metadata={"older_than_days": older_than_days},
            )

        return json.dumps({
            "status": "purged",
            "observations_deleted": count,
            "older_than_days": older_than_days,
            "duration_ms": round(elapsed_ms, 1),
        })

    @mcp.tool
    async def delete_all_health_data(
        ctx: Context,
        confirm: str = "",
    ) -> str:
        """Permanently delete ALL of your stored health data.

        Removes every vitals reading, timeline entry and medication log.
        It cannot be undone.

        Args:
            confirm: Must be exactly 'DELETE_ALL' to proceed.
        """
        if confirm != "DELETE_ALL":
            return json.dumps({
                "status": "cancelled",
                "message": (
                    "To delete all health data, call this tool with "
                    "confirm='DELETE_ALL'. This action cannot be undone."
                ),
            })

        counts = repository.delete_all_data()
        total = sum(counts.values())
        if audit_logger is not None:
            audit_logger.log_data_delete(
                tool_name="delete_all_health_data",
                user_id=repository.user_id,
                count=total,
                metadata={"confirmed": True, **counts},
            )

        return json.dumps({
            "status": "all_deleted",
            "records_deleted": counts,
            "message": "All health data has been permanently deleted.",
        })
