"""Audit logger: PHI-free record of tool calls and deletions.

Every tool that reads, writes or deletes health records leaves an entry in
the ``audit_log`` table. Entries never hold raw health values:

* ``tool_input_hash`` is a SHA-256 of the canonical JSON of the tool input.
* ``record_id`` points at the affected record without copying it.
"""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from carelog.core.storage.database import HealthDatabase

logger = logging.getLogger(__name__)


def _hash_input(data: Any) -> str:
    """SHA-256 of canonical JSON, or empty string if ``data`` is not serializable."""
    try:
        canonical = json.dumps(data, sort_keys=True, separators=(",", ":"))
    except (TypeError, ValueError):
        return ""
    return hashlib.sha256(canonical.encode()).hexdigest()


@dataclass
class AuditEvent:
    """A single audit log entry."""

    action: str                          # 'tool_invocation' | 'data_delete'
    tool_name: str = ""
    tool_input_hash: str = ""
    user_id: str | None = None
    record_id: str | None = None
    duration_ms: float | None = None
    status: str = "success"              # 'success' | 'failure'
    error_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class AuditLogger:
    """Records audit events to the ``audit_log`` SQLite table.

    Writes are committed immediately. A failed write is logged and reported
    as an empty event id; it never breaks the tool call being audited.

    Usage::

        audit = AuditLogger(health_db)
        audit.log_tool_call("log_vitals", {"systolic": 148}, record_id=oid)
    """

    def __init__(self, database: HealthDatabase) -> None:
        self._db = database

    def log_event(self, event: AuditEvent) -> str:
        """Insert an audit event and return its UUID.

        Args:
            event: Fully populated ``AuditEvent``.

        Returns:
            The generated event id, or '' if the write failed.
        """
        event_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()
        metadata_json = (
            json.dumps(event.metadata, separators=(",", ":"), default=str)
            if event.metadata
            else None
        )

        try:
            conn = self._db.connection
            conn.execute(
                """INSERT INTO audit_log
                   (id, timestamp, action, tool_name, tool_input_hash, user_id,
                    record_id, duration_ms, status, error_type, metadata_json)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    event_id,
                    now,
                    event.action,
                    event.tool_name or None,
                    event.tool_input_hash or None,
                    event.user_id,
                    event.record_id,
                    event.duration_ms,
                    event.status,
                    event.error_type,
                    metadata_json,
                ),
            )
            conn.commit()
        except Exception:
            logger.exception("Failed to write audit event %s; event lost", event.action)
            return ""

        return event_id

    def log_tool_call(
        self,
        tool_name: str,
        tool_input: Any = None,
        *,
        user_id: str | None = None,
        record_id: str | None = None,
        duration_ms: float | None = None,
        status: str = "success",
        error_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Convenience wrapper for logging a tool invocation.

        Args:
            tool_name: Name of the MCP tool.
            tool_input: Tool input data (hashed, never stored raw).
            user_id: Owner of the records the tool touched.
            record_id: Id of the observation or timeline entry affected, if any.
            duration_ms: Wall-clock execution time.
            status: 'success' or 'failure'.
            error_type: Exception class name on failure.
            metadata: Additional PHI-free context.

        Returns:
            The generated event id.
        """
        return self.log_event(AuditEvent(
            action="tool_invocation",
            tool_name=tool_name,
            tool_input_hash=_hash_input(tool_input) if tool_input else "",
            user_id=user_id,
            record_id=record_id,
            duration_ms=duration_ms,
            status=status,
            error_type=error_type,
            metadata=metadata or {},
        ))

    def log_data_delete(
        self,
        *,
        tool_name: str = "",
        user_id: str | None = None,
        record_id: str | None = None,
        count: int = 0,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Log a data deletion event.

        Args:
            tool_name: Tool that initiated the delete.
            user_id: Owner of the deleted records.
            record_id: Specific record deleted (if applicable).
            count: Number of records deleted.
            metadata: Additional context.

        Returns:
            The generated event id.
        """
        return self.log_event(AuditEvent(
            action="data_delete",
            tool_name=tool_name,
            user_id=user_id,
            record_id=record_id,
            metadata={**(metadata or {}), "records_deleted": count},
        ))

    def get_events(
        self,
        *,
        action: str | None = None,
        tool_name: str | None = None,
        since: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Query audit events with optional filters, newest first.

        Args:
            action: Filter by action type ('tool_invocation' or 'data_delete').
            tool_name: Filter by tool name.
            since: ISO 8601 timestamp lower bound.
            limit: Maximum events to return.

        Returns:
            List of event dicts, one per ``audit_log`` row.
        """
        conditions: list[str] = []
        params: list[Any] = []

        if action:
            conditions.append("action = ?")
            params.append(action)
        if tool_name:
            conditions.append("tool_name = ?")
            params.append(tool_name)
        if since:
            conditions.append("timestamp >= ?")
            params.append(since)

        where = (" WHERE " + " AND ".join(conditions)) if conditions else ""
        query = f"SELECT * FROM audit_log{where} ORDER BY timestamp DESC LIMIT ?"
        params.append(limit)

        rows = self._db.connection.execute(query, params).fetchall()
        return [dict(row) for row in rows]

    def count_events(self, *, action: str | None = None, since: str | None = None) -> int:
        conditions: list[str] = []
        params: list[Any] = []
        if action:
            conditions.append("action = ?")
            params.append(action)
        if since:
            conditions.append("timestamp >= ?")
            params.append(since)
        where = (" WHERE " + " AND ".join(conditions)) if conditions else ""
        row = self._db.connection.execute(
            f"SELECT COUNT(*) FROM audit_log{where}", params
        ).fetchone()
        return row[0]
