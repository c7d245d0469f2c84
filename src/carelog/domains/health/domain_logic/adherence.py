"""Medication adherence: per-day dose log transforms and streak counting.

Every function here is a value transform over a caller-owned collection of
``AdherenceDay`` records. Nothing reads the clock; "now" is always passed in.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from carelog.core.storage.models import AdherenceDay, TakenMedication
from carelog.domains.health.domain_logic.zone_models import (
    ADHERENCE_POINTS_PER_MEDICATION,
    GOOD_ADHERENCE_THRESHOLD,
    StreakState,
)

_ONE_DAY = timedelta(days=1)


def adherence_score(taken: Sequence[TakenMedication]) -> int:
    """Score a day from the number of distinct medications taken (0-100)."""
    unique = {dose.medication_id for dose in taken}
    return min(100, len(unique) * ADHERENCE_POINTS_PER_MEDICATION)


def _newest_first(days: Sequence[AdherenceDay]) -> list[AdherenceDay]:
    # YYYY-MM-DD sorts chronologically as text
    return sorted(days, key=lambda day: day.date, reverse=True)


def get_adherence_for_date(days: Sequence[AdherenceDay], day: date) -> AdherenceDay | None:
    """Return the record for ``day``, or None if nothing was logged."""
    key = day.isoformat()
    for record in days:
        if record.date == key:
            return record
    return None


def is_medication_taken_today(
    days: Sequence[AdherenceDay], medication_id: str, today: date
) -> bool:
    record = get_adherence_for_date(days, today)
    if record is None:
        return False
    return any(dose.medication_id == medication_id for dose in record.taken_medications)


def mark_medication_taken(
    days: Sequence[AdherenceDay],
    medication_id: str,
    medication_name: str,
    dosage: str,
    now: datetime,
) -> list[AdherenceDay]:
    """Record a dose for ``now``'s calendar day and return the new collection.

    Idempotent per medication per day: marking the same medication again on
    the same day leaves the day untouched. The input collection is never
    modified. The result is ordered newest day first.

    Args:
        days: Existing adherence log, any order.
        medication_id: Stable id of the medication.
        medication_name: Display name, stored with the dose.
        dosage: Dosage text, stored with the dose.
        now: The caller's current local time.
    """
    today = now.date().isoformat()
    dose = TakenMedication(
        medication_id=medication_id,
        medication_name=medication_name,
        dosage=dosage,
        time_taken=now.strftime("%H:%M"),
    )

    updated: list[AdherenceDay] = []
    found = False
    for record in days:
        if record.date != today:
            updated.append(record)
            continue
        found = True
        if any(d.medication_id == medication_id for d in record.taken_medications):
            updated.append(record)
            continue
        taken = record.taken_medications + (dose,)
        updated.append(AdherenceDay(
            date=record.date,
            taken_medications=taken,
            adherence_score=adherence_score(taken),
            missed_medications=record.missed_medications,
        ))

    if not found:
        updated.append(AdherenceDay(
            date=today,
            taken_medications=(dose,),
            adherence_score=adherence_score((dose,)),
        ))

    return _newest_first(updated)


def compute_adherence_streaks(days: Sequence[AdherenceDay]) -> StreakState:
    """Compute current and best runs of consecutive good-adherence days.

    A day is good when its score is at least ``GOOD_ADHERENCE_THRESHOLD``.
    Runs break on a day that is not good, and on any calendar gap: a good
    day that is not exactly one day before the previous one starts a new
    run of length 1. ``current`` is the run that includes the most recent
    logged day (0 if that day is not good).
    """
    if not days:
        return StreakState(current=0, best=0)

    current = 0
    best = 0
    streak = 0
    in_current_run = True
    prev_date: date | None = None

    for record in _newest_first(days):
        day = date.fromisoformat(record.date)
        if record.adherence_score >= GOOD_ADHERENCE_THRESHOLD:
            if streak > 0 and prev_date is not None and prev_date - day == _ONE_DAY:
                streak += 1
            else:
                if streak > 0:
                    in_current_run = False
                best = max(best, streak)
                streak = 1
        else:
            in_current_run = False
            best = max(best, streak)
            streak = 0

        if in_current_run:
            current = streak
        prev_date = day

    best = max(best, streak, current)
    return StreakState(current=current, best=best)


def overall_adherence_score(days: Sequence[AdherenceDay]) -> int:
    """Mean of all daily scores, rounded half up; 0 when nothing is logged."""
    if not days:
        return 0
    mean = Decimal(sum(record.adherence_score for record in days)) / len(days)
    return int(mean.quantize(Decimal(1), rounding=ROUND_HALF_UP))
