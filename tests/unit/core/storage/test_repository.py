"""Tests for HealthRepository: CRUD with in-memory SQLite."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from cryptography.fernet import Fernet

from carelog.core.storage.database import HealthDatabase
from carelog.core.storage.encryption import FieldEncryptor
from carelog.core.storage.models import (
    AdherenceDay,
    TakenMedication,
    TimelineEntry,
    VitalObservation,
)
from carelog.core.storage.repository import HealthRepository, RepositoryError


@pytest.fixture
def db():
    database = HealthDatabase(":memory:")
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def encryptor():
    return FieldEncryptor(Fernet.generate_key().decode())


@pytest.fixture
def repo(db, encryptor):
    return HealthRepository(db, encryptor)


def _make_observation(**overrides) -> VitalObservation:
    """Create a test observation with sensible defaults."""
    defaults = dict(
        id="",
        recorded_at="2026-02-01T12:00:00Z",
        systolic=128,
        diastolic=82,
        heart_rate=68,
        notes="after morning walk",
    )
    defaults.update(overrides)
    return VitalObservation.from_dict(defaults)


def _system_entry(title: str, date: str, system_type: str = "threshold") -> TimelineEntry:
    return TimelineEntry(
        id="",
        title=title,
        date=date,
        category="Vitals",
        details="derived",
        is_system=True,
        system_type=system_type,
    )


# ---------------------------------------------------------------------------
# Vital observations
# ---------------------------------------------------------------------------

class TestObservations:
    def test_save_returns_id(self, repo):
        oid = repo.save_observation(_make_observation())
        assert len(oid) == 36  # UUID format

    def test_caller_supplied_id_kept(self, repo):
        assert repo.save_observation(_make_observation(id="obs-1")) == "obs-1"

    def test_round_trip_preserves_data(self, repo):
        oid = repo.save_observation(_make_observation(temperature=37.2))
        loaded = repo.get_observation(oid)

        assert loaded.systolic == 128
        assert loaded.diastolic == 82
        assert loaded.heart_rate == 68
        assert loaded.temperature == 37.2
        assert loaded.glucose is None
        assert loaded.notes == "after morning walk"
        assert loaded.recorded_at == datetime(2026, 2, 1, 12, tzinfo=timezone.utc)

    def test_recorded_at_normalized_to_utc(self, repo):
        oid = repo.save_observation(_make_observation(recorded_at="2026-02-01T07:00:00-05:00"))
        loaded = repo.get_observation(oid)
        assert loaded.recorded_at.isoformat() == "2026-02-01T12:00:00+00:00"

    def test_values_encrypted_at_rest(self, repo, db):
        repo.save_observation(_make_observation(id="obs-1", glucose=187))
        row = db.connection.execute(
            "SELECT metrics_enc, notes_enc FROM vital_observations WHERE id = 'obs-1'"
        ).fetchone()
        assert "glucose" not in row["metrics_enc"]
        assert "walk" not in row["notes_enc"]

    def test_observation_without_metrics_rejected(self, repo):
        empty = VitalObservation.from_dict({"id": "", "recorded_at": "2026-02-01T12:00:00Z"})
        with pytest.raises(RepositoryError, match="no recorded vitals"):
            repo.save_observation(empty)

    def test_duplicate_id_rejected(self, repo):
        repo.save_observation(_make_observation(id="obs-1"))
        with pytest.raises(RepositoryError, match="already exists"):
            repo.save_observation(_make_observation(id="obs-1"))

    def test_missing_returns_none(self, repo):
        assert repo.get_observation("nope") is None

    def test_get_observations_oldest_first(self, repo):
        for ts in ("2026-02-03T08:00:00Z", "2026-02-01T08:00:00Z", "2026-02-02T08:00:00Z"):
            repo.save_observation(_make_observation(recorded_at=ts))
        days = [o.recorded_at.day for o in repo.get_observations()]
        assert days == [1, 2, 3]

    def test_get_observations_range_and_limit(self, repo):
        for day in range(1, 11):
            repo.save_observation(_make_observation(recorded_at=f"2026-02-{day:02d}T08:00:00Z"))

        in_range = repo.get_observations(since="2026-02-03T08:00:00Z", until="2026-02-05T08:00:00Z")
        assert [o.recorded_at.day for o in in_range] == [3, 4, 5]

        latest = repo.get_observations(limit=3)
        assert [o.recorded_at.day for o in latest] == [8, 9, 10]

    def test_count_and_delete(self, repo):
        oid = repo.save_observation(_make_observation())
        repo.save_observation(_make_observation())
        assert repo.count_observations() == 2

        assert repo.delete_observation(oid) is True
        assert repo.delete_observation(oid) is False
        assert repo.count_observations() == 1

    def test_purge_before(self, repo):
        repo.save_observation(_make_observation(recorded_at="2025-12-31T23:59:00Z"))
        repo.save_observation(_make_observation(recorded_at="2026-01-01T00:00:00Z"))
        repo.save_observation(_make_observation(recorded_at="2026-01-02T00:00:00Z"))

        assert repo.purge_observations_before("2026-01-01T00:00:00Z") == 1
        assert repo.count_observations() == 2


# ---------------------------------------------------------------------------
# Timeline entries
# ---------------------------------------------------------------------------

class TestTimeline:
    def test_add_and_query(self, repo):
        eid = repo.add_timeline_entry(TimelineEntry(
            id="", title="Cardiology visit", date="2026-02-10", category="Appointment",
            details="Discussed BP", notes="bring log", related_id="obs-1",
        ))
        entries = repo.get_timeline()
        assert len(entries) == 1
        entry = entries[0]
        assert entry.id == eid
        assert entry.details == "Discussed BP"
        assert entry.notes == "bring log"
        assert entry.related_id == "obs-1"
        assert entry.is_system is False
        assert entry.date == "2026-02-10T00:00:00+00:00"

    def test_newest_first_and_filters(self, repo):
        repo.add_timeline_entry(TimelineEntry(
            id="", title="old note", date="2026-01-01", category="Other",
        ))
        repo.replace_system_timeline_entries([
            _system_entry("alert", "2026-02-01T08:00:00Z"),
            _system_entry("summary", "2026-02-02T08:00:00Z", system_type="summary"),
        ])

        assert [e.title for e in repo.get_timeline()] == ["summary", "alert", "old note"]
        assert [e.title for e in repo.get_timeline(category="Vitals")] == ["summary", "alert"]
        assert [e.title for e in repo.get_timeline(category="all", limit=1)] == ["summary"]
        assert [e.title for e in repo.get_timeline(system_type="threshold")] == ["alert"]

    def test_is_system_filter_applies_before_limit(self, repo):
        repo.replace_system_timeline_entries([
            _system_entry("alert", "2026-01-05T08:00:00Z"),
        ])
        for day in ("2026-02-01", "2026-02-02", "2026-02-03"):
            repo.add_timeline_entry(TimelineEntry(
                id="", title=f"note {day}", date=day, category="Other",
            ))

        assert [e.title for e in repo.get_timeline(is_system=True, limit=1)] == ["alert"]
        user_only = repo.get_timeline(is_system=False, limit=2)
        assert [e.title for e in user_only] == ["note 2026-02-03", "note 2026-02-02"]

    def test_replace_system_entries_is_repeatable(self, repo):
        entries = [_system_entry("alert", "2026-02-01T08:00:00Z")]
        repo.add_timeline_entry(TimelineEntry(
            id="", title="my note", date="2026-02-01", category="Vitals",
        ))

        assert repo.replace_system_timeline_entries(entries) == 1
        assert repo.replace_system_timeline_entries(entries) == 1
        titles = sorted(e.title for e in repo.get_timeline(category="Vitals"))
        assert titles == ["alert", "my note"]

    def test_replace_rejects_user_entries_and_rolls_back(self, repo):
        repo.replace_system_timeline_entries([_system_entry("alert", "2026-02-01T08:00:00Z")])
        user_entry = TimelineEntry(id="", title="x", date="2026-02-02", category="Vitals")

        with pytest.raises(RepositoryError):
            repo.replace_system_timeline_entries(
                [_system_entry("new alert", "2026-02-03T08:00:00Z"), user_entry]
            )
        assert [e.title for e in repo.get_timeline()] == ["alert"]

    def test_delete_entry(self, repo):
        eid = repo.add_timeline_entry(TimelineEntry(
            id="", title="x", date="2026-02-02", category="Test",
        ))
        assert repo.delete_timeline_entry(eid) is True
        assert repo.delete_timeline_entry(eid) is False


# ---------------------------------------------------------------------------
# Adherence days
# ---------------------------------------------------------------------------

class TestAdherence:
    def test_upsert_and_read_newest_first(self, repo):
        dose = TakenMedication("m1", "Metformin", "500 mg", "08:00")
        repo.save_adherence_days([
            AdherenceDay(date="2026-03-01", taken_medications=(dose,), adherence_score=33),
            AdherenceDay(date="2026-03-02", adherence_score=0, missed_medications=("m1",)),
        ])
        repo.save_adherence_days([
            AdherenceDay(date="2026-03-01", taken_medications=(dose,), adherence_score=100),
        ])

        days = repo.get_adherence_days()
        assert [d.date for d in days] == ["2026-03-02", "2026-03-01"]
        assert days[0].missed_medications == ("m1",)
        assert days[1].adherence_score == 100
        assert days[1].taken_medications == (dose,)


# ---------------------------------------------------------------------------
# Users and deletion
# ---------------------------------------------------------------------------

class TestUsers:
    def test_empty_user_rejected(self, db, encryptor):
        with pytest.raises(RepositoryError):
            HealthRepository(db, encryptor, user_id="")

    def test_records_scoped_per_user(self, repo):
        other = repo.for_user("bob")
        oid = other.save_observation(_make_observation())

        assert other.user_id == "bob"
        assert repo.count_observations() == 0
        assert repo.get_observation(oid) is None
        assert repo.delete_observation(oid) is False
        assert other.count_observations() == 1

    def test_delete_all_data(self, repo):
        other = repo.for_user("bob")
        other.save_observation(_make_observation())

        repo.save_observation(_make_observation())
        repo.add_timeline_entry(TimelineEntry(id="", title="x", date="2026-02-02", category="Test"))
        repo.save_adherence_days([AdherenceDay(date="2026-03-01", adherence_score=100)])

        counts = repo.delete_all_data()
        assert counts == {"vital_observations": 1, "timeline_events": 1, "adherence_days": 1}
        assert repo.count_observations() == 0
        assert other.count_observations() == 1
