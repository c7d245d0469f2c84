"""Tests for the monthly vitals roll-up."""

from __future__ import annotations

import pytest

from carelog.core.storage.models import VitalObservation
from carelog.domains.health.domain_logic.monthly_aggregator import (
    derive_monthly_summaries,
    round_half_up,
)


def _obs(recorded_at: str, **metrics) -> VitalObservation:
    return VitalObservation.from_dict({"id": "", "recorded_at": recorded_at, **metrics})


class TestBucketing:
    def test_empty_input(self):
        assert derive_monthly_summaries([]) == []

    def test_one_summary_per_distinct_month(self):
        observations = [
            _obs("2026-01-03T08:00:00Z", heart_rate=70),
            _obs("2026-01-20T08:00:00Z", heart_rate=74),
            _obs("2026-02-11T08:00:00Z", heart_rate=80),
            _obs("2026-04-01T08:00:00Z", heart_rate=76),
        ]
        summaries = derive_monthly_summaries(observations)
        assert [s.month_key for s in summaries] == ["2026-01", "2026-02", "2026-04"]
        assert [s.observation_count for s in summaries] == [2, 1, 1]

    def test_input_order_does_not_matter(self):
        observations = [
            _obs("2026-03-05T08:00:00Z", glucose=150),
            _obs("2025-12-24T08:00:00Z", glucose=100),
            _obs("2026-03-01T08:00:00Z", glucose=170),
        ]
        forward = derive_monthly_summaries(observations)
        backward = derive_monthly_summaries(list(reversed(observations)))
        assert forward == backward
        assert [s.month_key for s in forward] == ["2025-12", "2026-03"]

    def test_anchor_is_latest_observation_in_month(self):
        summaries = derive_monthly_summaries([
            _obs("2026-01-20T09:15:00Z", spo2=97),
            _obs("2026-01-28T18:00:00Z", spo2=98),
            _obs("2026-01-02T07:00:00Z", spo2=96),
        ])
        assert summaries[0].anchor_date.isoformat() == "2026-01-28T18:00:00+00:00"

    def test_month_follows_recorded_offset(self):
        # Local evening of Jan 31 is Feb 1 in UTC
        summaries = derive_monthly_summaries([
            _obs("2026-01-31T23:30:00-05:00", heart_rate=70),
        ])
        assert summaries[0].month_key == "2026-01"


class TestMeans:
    def test_means_skip_missing_samples(self):
        summaries = derive_monthly_summaries([
            _obs("2026-01-05T08:00:00Z", heart_rate=70, glucose=100),
            _obs("2026-01-06T08:00:00Z", heart_rate=80),
            _obs("2026-01-07T08:00:00Z", temperature=36.8),
        ])
        summary = summaries[0]
        assert summary.observation_count == 3
        assert summary.heart_rate == 75
        assert summary.glucose == 100
        assert summary.temperature == 36.8
        assert summary.systolic is None
        assert summary.spo2 is None

    def test_integer_means_round_half_up(self):
        summary = derive_monthly_summaries([
            _obs("2026-01-05T08:00:00Z", heart_rate=72),
            _obs("2026-01-06T08:00:00Z", heart_rate=73),
        ])[0]
        assert summary.heart_rate == 73

    def test_temperature_keeps_one_decimal(self):
        summary = derive_monthly_summaries([
            _obs("2026-01-05T08:00:00Z", temperature=36.0),
            _obs("2026-01-06T08:00:00Z", temperature=36.5),
        ])[0]
        assert summary.temperature == 36.3

    def test_to_dict_nests_means(self):
        summary = derive_monthly_summaries([
            _obs("2026-01-05T08:00:00Z", systolic=120, diastolic=80),
        ])[0]
        data = summary.to_dict()
        assert data["month_key"] == "2026-01"
        assert data["means"]["systolic"] == 120
        assert data["means"]["glucose"] is None
        assert data["flags"] == []


class TestFlags:
    @pytest.mark.parametrize("glucose,expected", [
        (120, []),
        (165, ["Glucose Elevated"]),
        (190, ["Glucose High"]),
    ])
    def test_glucose_flags(self, glucose, expected):
        summary = derive_monthly_summaries([
            _obs("2026-01-05T08:00:00Z", glucose=glucose),
        ])[0]
        assert list(summary.flags) == expected

    def test_flag_follows_mean_not_single_reading(self):
        # One Red reading averaged down into Green
        summary = derive_monthly_summaries([
            _obs("2026-01-05T08:00:00Z", glucose=200),
            _obs("2026-01-06T08:00:00Z", glucose=100),
            _obs("2026-01-07T08:00:00Z", glucose=90),
        ])[0]
        assert summary.glucose == 130
        assert summary.flags == ()

    def test_blood_pressure_flags(self):
        amber = derive_monthly_summaries([
            _obs("2026-01-05T08:00:00Z", systolic=134, diastolic=80),
        ])[0]
        red = derive_monthly_summaries([
            _obs("2026-02-05T08:00:00Z", systolic=118, diastolic=92),
        ])[0]
        assert amber.flags == ("BP Elevated",)
        assert red.flags == ("BP Red risk",)

    def test_blood_pressure_needs_both_means(self):
        summary = derive_monthly_summaries([
            _obs("2026-01-05T08:00:00Z", systolic=170),
        ])[0]
        assert summary.systolic == 170
        assert summary.flags == ()

    def test_multiple_flags_in_metric_order(self):
        summary = derive_monthly_summaries([
            _obs(
                "2026-01-05T08:00:00Z",
                systolic=145, diastolic=95, heart_rate=100,
                temperature=38.4, spo2=93, respiratory_rate=26, glucose=150,
            ),
        ])[0]
        assert summary.flags == (
            "BP Red risk",
            "Heart Rate Elevated",
            "Fever Episodes",
            "SpO2 Borderline",
            "Respiratory Distress",
            "Glucose Elevated",
        )

    def test_low_heart_rate_mean_flags_irregular(self):
        summary = derive_monthly_summaries([
            _obs("2026-01-05T08:00:00Z", heart_rate=45),
        ])[0]
        assert summary.flags == ("Heart Rate Irregular",)


class TestRoundHalfUp:
    @pytest.mark.parametrize("value,places,expected", [
        (72.5, 0, 73),
        (72.49, 0, 72),
        (36.25, 1, 36.3),
        (36.24, 1, 36.2),
        (0.5, 0, 1),
    ])
    def test_values(self, value, places, expected):
        assert round_half_up(value, places) == expected
