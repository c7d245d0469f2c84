"""Health data repository: CRUD for vitals, timeline entries and adherence days.

The repository mediates between the record types in
:mod:`carelog.core.storage.models` and SQLite, using FieldEncryptor for
every raw health value. Each repository is bound to one user; use
:meth:`HealthRepository.for_user` to work on behalf of another.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from carelog.core.storage.database import HealthDatabase
from carelog.core.storage.encryption import FieldEncryptor
from carelog.core.storage.models import (
    VITAL_FIELDS,
    AdherenceDay,
    TimelineEntry,
    VitalObservation,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

DEFAULT_USER_ID = "local"


class RepositoryError(Exception):
    """Raised when repository operations fail."""


def _utc_iso(moment: datetime) -> str:
    return parse_timestamp(moment).astimezone(timezone.utc).isoformat()


class HealthRepository:
    """CRUD repository for one user's encrypted health records.

    Usage::

        db = HealthDatabase(":memory:")
        db.initialize()
        encryptor = FieldEncryptor(key="...")
        repo = HealthRepository(db, encryptor, user_id="alice")

        repo.save_observation(observation)
        series = repo.get_observations()  # oldest first
    """

    def __init__(
        self,
        database: HealthDatabase,
        encryptor: FieldEncryptor,
        *,
        user_id: str = DEFAULT_USER_ID,
    ) -> None:
        if not user_id:
            raise RepositoryError("user_id must not be empty")
        self._db = database
        self._enc = encryptor
        self._user_id = user_id

    @property
    def user_id(self) -> str:
        return self._user_id

    def for_user(self, user_id: str) -> HealthRepository:
        """Return a repository over the same database for another user."""
        return HealthRepository(self._db, self._enc, user_id=user_id)

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    # ------------------------------------------------------------------
    # Vital observations (Vitals Store)
    # ------------------------------------------------------------------

    def save_observation(self, observation: VitalObservation) -> str:
        """Persist an observation, generating an id if it has none.

        Returns:
            The observation id.

        Raises:
            RepositoryError: If the observation records no metric, or the id
                is already taken.
        """
        metrics = observation.metric_values()
        if not metrics:
            raise RepositoryError("Observation has no recorded vitals")

        oid = observation.id or self._new_id()
        try:
            self._db.connection.execute(
                """INSERT INTO vital_observations
                   (id, user_id, recorded_at, metrics_enc, notes_enc, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    oid,
                    self._user_id,
                    _utc_iso(observation.recorded_at),
                    self._enc.encrypt(metrics),
                    self._enc.encrypt(observation.notes or None),
                    self._now_iso(),
                ),
            )
        except sqlite3.IntegrityError as exc:
            raise RepositoryError(f"Observation {oid!r} already exists") from exc
        self._db.connection.commit()
        logger.info("Saved vitals observation %s (%d metrics)", oid, len(metrics))
        return oid

    def get_observation(self, observation_id: str) -> VitalObservation | None:
        row = self._db.connection.execute(
            "SELECT * FROM vital_observations WHERE id = ? AND user_id = ?",
            (observation_id, self._user_id),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_observation(row)

    def get_observations(
        self,
        *,
        since: datetime | str | None = None,
        until: datetime | str | None = None,
        limit: int | None = None,
    ) -> list[VitalObservation]:
        """Query observations, oldest first (the order the zone engine expects).

        Args:
            since: Inclusive lower bound on ``recorded_at``.
            until: Inclusive upper bound on ``recorded_at``.
            limit: Keep only the most recent ``limit`` observations.
        """
        conditions = ["user_id = ?"]
        params: list[Any] = [self._user_id]

        if since:
            conditions.append("recorded_at >= ?")
            params.append(_utc_iso(parse_timestamp(since)))
        if until:
            conditions.append("recorded_at <= ?")
            params.append(_utc_iso(parse_timestamp(until)))

        query = (
            "SELECT * FROM vital_observations WHERE "
            + " AND ".join(conditions)
            + " ORDER BY recorded_at DESC, created_at DESC"
        )
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        rows = self._db.connection.execute(query, params).fetchall()
        return [self._row_to_observation(row) for row in reversed(rows)]

    def count_observations(self) -> int:
        row = self._db.connection.execute(
            "SELECT COUNT(*) FROM vital_observations WHERE user_id = ?", (self._user_id,)
        ).fetchone()
        return row[0]

    def delete_observation(self, observation_id: str) -> bool:
        """Delete one observation. Returns True if it existed."""
        cursor = self._db.connection.execute(
            "DELETE FROM vital_observations WHERE id = ? AND user_id = ?",
            (observation_id, self._user_id),
        )
        self._db.connection.commit()
        if cursor.rowcount:
            logger.info("Deleted vitals observation %s", observation_id)
        return cursor.rowcount > 0

    def purge_observations_before(self, before: datetime | str) -> int:
        """Delete observations recorded strictly before ``before``.

        Returns:
            Number of observations deleted.
        """
        cursor = self._db.connection.execute(
            "DELETE FROM vital_observations WHERE user_id = ? AND recorded_at < ?",
            (self._user_id, _utc_iso(parse_timestamp(before))),
        )
        self._db.connection.commit()
        logger.info("Purged %d vitals observations before %s", cursor.rowcount, before)
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Timeline entries (Timeline Store)
    # ------------------------------------------------------------------

    def _insert_timeline_entry(self, entry: TimelineEntry) -> str:
        eid = entry.id or self._new_id()
        self._db.connection.execute(
            """INSERT INTO timeline_events
               (id, user_id, title, details_enc, date, category, related_id,
                notes_enc, is_system, system_type, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                eid,
                self._user_id,
                entry.title,
                self._enc.encrypt(entry.details or None),
                _utc_iso(parse_timestamp(entry.date)),
                entry.category,
                entry.related_id,
                self._enc.encrypt(entry.notes or None),
                1 if entry.is_system else 0,
                entry.system_type,
                entry.created_at or self._now_iso(),
            ),
        )
        return eid

    def add_timeline_entry(self, entry: TimelineEntry) -> str:
        """Persist one timeline entry and return its id."""
        try:
            eid = self._insert_timeline_entry(entry)
        except sqlite3.IntegrityError as exc:
            raise RepositoryError(f"Timeline entry {entry.id!r} already exists") from exc
        self._db.connection.commit()
        logger.info("Added timeline entry %s (category=%s)", eid, entry.category)
        return eid

    def replace_system_timeline_entries(
        self,
        entries: Iterable[TimelineEntry],
        *,
        category: str = "Vitals",
    ) -> int:
        """Swap the user's system-generated entries in ``category`` for ``entries``.

        Runs in one transaction, so recomputing derived entries from raw
        data can be repeated without producing duplicates. User-written
        entries are never touched.

        Returns:
            Number of entries inserted.
        """
        conn = self._db.connection
        inserted = 0
        try:
            with conn:
                removed = conn.execute(
                    """DELETE FROM timeline_events
                       WHERE user_id = ? AND category = ? AND is_system = 1""",
                    (self._user_id, category),
                ).rowcount
                for entry in entries:
                    if not entry.is_system or entry.category != category:
                        raise RepositoryError(
                            f"Only system entries in category {category!r} can be replaced"
                        )
                    self._insert_timeline_entry(entry)
                    inserted += 1
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to replace timeline entries: {exc}") from exc

        logger.info(
            "Replaced %d system %s timeline entries with %d", removed, category, inserted
        )
        return inserted

    def get_timeline(
        self,
        *,
        category: str | None = None,
        system_type: str | None = None,
        is_system: bool | None = None,
        limit: int = 100,
    ) -> list[TimelineEntry]:
        """Query timeline entries, newest first. ``category='all'`` means no filter.

        Filters apply before ``limit``, so ``is_system=True`` returns up to
        ``limit`` system entries however many user notes are newer.
        """
        conditions = ["user_id = ?"]
        params: list[Any] = [self._user_id]
        if category and category != "all":
            conditions.append("category = ?")
            params.append(category)
        if system_type:
            conditions.append("system_type = ?")
            params.append(system_type)
        if is_system is not None:
            conditions.append("is_system = ?")
            params.append(1 if is_system else 0)

        query = (
            "SELECT * FROM timeline_events WHERE "
            + " AND ".join(conditions)
            + " ORDER BY date DESC, created_at DESC, rowid DESC LIMIT ?"
        )
        params.append(limit)
        rows = self._db.connection.execute(query, params).fetchall()
        return [self._row_to_timeline_entry(row) for row in rows]

    def delete_timeline_entry(self, entry_id: str) -> bool:
        cursor = self._db.connection.execute(
            "DELETE FROM timeline_events WHERE id = ? AND user_id = ?",
            (entry_id, self._user_id),
        )
        self._db.connection.commit()
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Adherence days (Adherence Store)
    # ------------------------------------------------------------------

    def get_adherence_days(self) -> list[AdherenceDay]:
        """All of the user's adherence days, newest first."""
        rows = self._db.connection.execute(
            "SELECT * FROM adherence_days WHERE user_id = ? ORDER BY date DESC",
            (self._user_id,),
        ).fetchall()
        return [self._row_to_adherence_day(row) for row in rows]

    def save_adherence_days(self, days: Iterable[AdherenceDay]) -> int:
        """Upsert adherence days keyed by (user, date). Returns rows written."""
        conn = self._db.connection
        written = 0
        with conn:
            for day in days:
                conn.execute(
                    """INSERT INTO adherence_days
                       (user_id, date, taken_enc, missed_enc, adherence_score, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?)
                       ON CONFLICT(user_id, date) DO UPDATE SET
                           taken_enc = excluded.taken_enc,
                           missed_enc = excluded.missed_enc,
                           adherence_score = excluded.adherence_score,
                           updated_at = excluded.updated_at""",
                    (
                        self._user_id,
                        day.date,
                        self._enc.encrypt([m.to_dict() for m in day.taken_medications]),
                        self._enc.encrypt(list(day.missed_medications) or None),
                        day.adherence_score,
                        self._now_iso(),
                    ),
                )
                written += 1
        return written

    # ------------------------------------------------------------------
    # Deletion (right to deletion)
    # ------------------------------------------------------------------

    def delete_all_data(self) -> dict[str, int]:
        """Delete every record belonging to this user.

        Returns:
            Rows removed per table.
        """
        conn = self._db.connection
        counts = {}
        with conn:
            for table in ("vital_observations", "timeline_events", "adherence_days"):
                # Table name is from the fixed tuple above
                counts[table] = conn.execute(
                    f"DELETE FROM {table} WHERE user_id = ?", (self._user_id,)
                ).rowcount
        logger.warning("Deleted ALL health data for user: %s", counts)
        return counts

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _row_to_observation(self, row: Any) -> VitalObservation:
        metrics = self._enc.decrypt(row["metrics_enc"]) or {}
        return VitalObservation(
            id=row["id"],
            recorded_at=parse_timestamp(row["recorded_at"]),
            notes=self._enc.decrypt(row["notes_enc"] or "") or "",
            **{name: metrics.get(name) for name in VITAL_FIELDS},
        )

    def _row_to_timeline_entry(self, row: Any) -> TimelineEntry:
        return TimelineEntry(
            id=row["id"],
            title=row["title"],
            date=row["date"],
            category=row["category"],
            details=self._enc.decrypt(row["details_enc"] or "") or "",
            related_id=row["related_id"],
            notes=self._enc.decrypt(row["notes_enc"] or "") or "",
            is_system=bool(row["is_system"]),
            system_type=row["system_type"],
            created_at=row["created_at"],
        )

    def _row_to_adherence_day(self, row: Any) -> AdherenceDay:
        return AdherenceDay.from_dict({
            "date": row["date"],
            "taken_medications": self._enc.decrypt(row["taken_enc"]) or [],
            "missed_medications": self._enc.decrypt(row["missed_enc"] or "") or [],
            "adherence_score": row["adherence_score"],
        })
