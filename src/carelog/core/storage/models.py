"""Data models for the health persistence layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

# Metric fields on a vital observation, in display order.
VITAL_FIELDS = (
    "systolic",
    "diastolic",
    "heart_rate",
    "temperature",
    "spo2",
    "respiratory_rate",
    "glucose",
)


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO 8601 instant into an aware datetime.

    A trailing ``Z`` is accepted. Naive values are taken to be UTC.

    Raises:
        ValueError: If ``value`` is not a valid ISO 8601 timestamp.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class VitalObservation:
    """One measurement event. Every metric field is optional.

    An absent field means "not recorded", never zero.
    """

    id: str
    recorded_at: datetime
    systolic: int | None = None           # mmHg
    diastolic: int | None = None          # mmHg
    heart_rate: int | None = None         # bpm
    temperature: float | None = None      # deg C, one decimal
    spo2: int | None = None               # %
    respiratory_rate: int | None = None   # breaths/min
    glucose: int | None = None            # mg/dL
    notes: str = ""

    def metric_values(self) -> dict[str, float]:
        """Return only the metric fields that were recorded."""
        values = {}
        for name in VITAL_FIELDS:
            value = getattr(self, name)
            if value is not None:
                values[name] = value
        return values

    def has_metrics(self) -> bool:
        return bool(self.metric_values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "recorded_at": self.recorded_at.isoformat(),
            **self.metric_values(),
            **({"notes": self.notes} if self.notes else {}),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VitalObservation:
        """Build an observation from a plain dict (ISO timestamp string allowed)."""
        return cls(
            id=data.get("id", ""),
            recorded_at=parse_timestamp(data["recorded_at"]),
            notes=data.get("notes", "") or "",
            **{name: data.get(name) for name in VITAL_FIELDS},
        )


@dataclass(frozen=True)
class TakenMedication:
    """A medication marked taken on a given day."""

    medication_id: str
    medication_name: str
    dosage: str
    time_taken: str  # HH:MM, local to the user

    def to_dict(self) -> dict[str, str]:
        return {
            "medication_id": self.medication_id,
            "medication_name": self.medication_name,
            "dosage": self.dosage,
            "time_taken": self.time_taken,
        }


@dataclass(frozen=True)
class AdherenceDay:
    """One calendar day's dosing record.

    Holds at most one ``TakenMedication`` per medication id. Frozen so that
    transforms can share unchanged days between the old and new collection.
    """

    date: str  # YYYY-MM-DD
    taken_medications: tuple[TakenMedication, ...] = ()
    adherence_score: int = 0
    missed_medications: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "taken_medications": [m.to_dict() for m in self.taken_medications],
            "missed_medications": list(self.missed_medications),
            "adherence_score": self.adherence_score,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AdherenceDay:
        return cls(
            date=data["date"],
            taken_medications=tuple(
                TakenMedication(**m) for m in data.get("taken_medications", [])
            ),
            adherence_score=int(data.get("adherence_score", 0)),
            missed_medications=tuple(data.get("missed_medications", [])),
        )


@dataclass
class TimelineEntry:
    """A generic timeline item, user-written or system-generated.

    System entries (``is_system=True``) are derived from vitals and carry
    ``system_type`` 'threshold' (zone change) or 'summary' (monthly roll-up).
    """

    id: str
    title: str
    date: str  # ISO 8601
    category: str  # 'Vitals', 'Medication', 'Appointment', 'Document', 'Test', 'Other'
    details: str = ""
    related_id: str | None = None
    notes: str = ""
    is_system: bool = False
    system_type: str | None = None
    created_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "date": self.date,
            "category": self.category,
            "details": self.details,
            "related_id": self.related_id,
            "notes": self.notes,
            "is_system": self.is_system,
            "system_type": self.system_type,
        }
