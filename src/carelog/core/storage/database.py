"""SQLite database management for the CareLog health data bank.

Handles connection lifecycle, schema creation, and migrations.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_V1 = """
-- One row per vitals measurement event
CREATE TABLE IF NOT EXISTS vital_observations (
    id           TEXT PRIMARY KEY,
    user_id      TEXT NOT NULL,
    recorded_at  TEXT NOT NULL,       -- ISO 8601, normalized to UTC
    metrics_enc  TEXT NOT NULL,       -- encrypted JSON of recorded metrics
    notes_enc    TEXT,
    created_at   TEXT NOT NULL DEFAULT (datetime('now'))
);

-- User-written and system-derived timeline entries
CREATE TABLE IF NOT EXISTS timeline_events (
    id           TEXT PRIMARY KEY,
    user_id      TEXT NOT NULL,
    title        TEXT NOT NULL,
    details_enc  TEXT,
    date         TEXT NOT NULL,
    category     TEXT NOT NULL,
    related_id   TEXT,
    notes_enc    TEXT,
    is_system    INTEGER NOT NULL DEFAULT 0,
    system_type  TEXT,                -- 'threshold' | 'summary'
    created_at   TEXT NOT NULL DEFAULT (datetime('now'))
);

-- One row per user per calendar day
CREATE TABLE IF NOT EXISTS adherence_days (
    user_id          TEXT NOT NULL,
    date             TEXT NOT NULL,   -- YYYY-MM-DD
    taken_enc        TEXT NOT NULL,
    missed_enc       TEXT,
    adherence_score  INTEGER NOT NULL DEFAULT 0,
    updated_at       TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (user_id, date)
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_vitals_user_time   ON vital_observations(user_id, recorded_at);
CREATE INDEX IF NOT EXISTS idx_timeline_user_date ON timeline_events(user_id, date);
CREATE INDEX IF NOT EXISTS idx_timeline_category  ON timeline_events(category);
CREATE INDEX IF NOT EXISTS idx_timeline_system    ON timeline_events(user_id, is_system);
"""

# ---------------------------------------------------------------------------
# V2: Audit log table (PHI-free access logging)
# ---------------------------------------------------------------------------

_SCHEMA_V2 = """
CREATE TABLE IF NOT EXISTS audit_log (
    id              TEXT PRIMARY KEY,
    timestamp       TEXT NOT NULL DEFAULT (datetime('now')),
    action          TEXT NOT NULL,
    tool_name       TEXT,
    tool_input_hash TEXT,
    user_id         TEXT,
    record_id       TEXT,
    duration_ms     REAL,
    status          TEXT NOT NULL DEFAULT 'success',
    error_type      TEXT,
    metadata_json   TEXT
);

CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log(timestamp);
CREATE INDEX IF NOT EXISTS idx_audit_action    ON audit_log(action);
CREATE INDEX IF NOT EXISTS idx_audit_tool      ON audit_log(tool_name);
"""


class DatabaseError(Exception):
    """Raised when database operations fail."""


class HealthDatabase:
    """SQLite database manager for the CareLog data bank.

    Supports both file-based and in-memory (`:memory:`) databases.
    In-memory mode is used for testing.

    Usage::

        db = HealthDatabase(":memory:")
        db.initialize()
        conn = db.connection
        # ... use connection ...
        db.close()
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        """Initialize database manager.

        Args:
            db_path: Path to SQLite file, or ":memory:" for in-memory DB.
        """
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the active database connection.

        Raises:
            DatabaseError: If the database has not been initialized.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Create the database connection and ensure schema exists.

        For file-based databases, creates parent directories if needed.
        Idempotent: safe to call multiple times.

        Raises:
            DatabaseError: If the database file cannot be opened.
        """
        if self._conn is not None:
            return

        try:
            if self._db_path != ":memory:":
                db_file = Path(self._db_path).expanduser()
                db_file.parent.mkdir(parents=True, exist_ok=True)
                self._conn = sqlite3.connect(str(db_file))
            else:
                self._conn = sqlite3.connect(":memory:")
        except (sqlite3.Error, OSError) as exc:
            raise DatabaseError(f"Cannot open database {self._db_path!r}: {exc}") from exc

        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        self._ensure_schema()
        logger.info("Health database initialized: %s", self._db_path)

    def _ensure_schema(self) -> None:
        """Create tables if they don't exist and apply migrations."""
        conn = self.connection
        conn.executescript(_SCHEMA_V1)

        row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
        current_version = row[0] if row[0] is not None else 0

        if current_version < 2:
            conn.executescript(_SCHEMA_V2)
            logger.info("Applied schema migration V2: audit_log table")

        if current_version < SCHEMA_VERSION:
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            conn.commit()
            logger.info(
                "Schema updated from version %d to %d", current_version, SCHEMA_VERSION
            )

    def get_schema_version(self) -> int:
        row = self.connection.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] if row[0] is not None else 0

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Health database closed")

    def __enter__(self) -> HealthDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
