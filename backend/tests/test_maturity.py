"""Maturity scoring engine tests (pure functions)."""

from datetime import datetime, timedelta, timezone

import pytest

from mycotrack.models.statuses import (
    AlertChannel, AlertLevel, AlertRecipient, CapShape, MaturityStatus,
)
from mycotrack.services.maturity import (
    MaturityBaseline,
    Sample,
    aggregate_samples,
    calculate_maturity_index,
    days_since,
    evaluate_batch_status,
    evaluate_harvest_status,
    flat_ratio_score,
)

NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


def _samples(*shapes: CapShape, diameter: float = 6.0) -> list[Sample]:
    return [Sample(diameter=diameter, shape=shape) for shape in shapes]


@pytest.mark.unit
class TestAggregateSamples:

    def test_empty_input(self):
        agg = aggregate_samples([])
        assert agg.avg_diameter == 0
        assert agg.dominant_shape == CapShape.CONVEX
        assert agg.flat_percentage == 0
        assert agg.sample_size == 0

    def test_mean_diameter_rounded_to_two_places(self):
        samples = [
            Sample(7.0, CapShape.CONVEX),
            Sample(8.0, CapShape.CONVEX),
            Sample(8.5, CapShape.CONVEX),
        ]
        assert aggregate_samples(samples).avg_diameter == 7.83

    def test_mode_tie_prefers_upturned(self):
        samples = _samples(
            CapShape.FLAT, CapShape.FLAT,
            CapShape.UPTURNED, CapShape.UPTURNED,
            CapShape.CONVEX,
        )
        assert aggregate_samples(samples).dominant_shape == CapShape.UPTURNED

    def test_mode_tie_prefers_flat_over_convex(self):
        samples = _samples(CapShape.FLAT, CapShape.CONVEX)
        assert aggregate_samples(samples).dominant_shape == CapShape.FLAT

    def test_clear_majority_wins(self):
        samples = _samples(CapShape.CONVEX, CapShape.CONVEX, CapShape.UPTURNED)
        assert aggregate_samples(samples).dominant_shape == CapShape.CONVEX

    def test_flat_percentage(self):
        samples = _samples(CapShape.FLAT, CapShape.CONVEX, CapShape.CONVEX, CapShape.CONVEX)
        assert aggregate_samples(samples).flat_percentage == 25.0


@pytest.mark.unit
class TestMaturityIndex:

    def test_full_marks_total_ninety(self):
        score = calculate_maturity_index(
            avg_diameter=8.0,
            flat_percentage=70,
            pinning_date=NOW - timedelta(days=5),
            baseline=MaturityBaseline(target_diameter_cm=8.0, target_maturation_days=5),
            now=NOW,
        )
        assert score.time_score == 30
        assert score.size_score == 40
        assert score.flat_score == 20
        assert score.index == 90

    def test_no_pinning_means_no_time_score(self):
        score = calculate_maturity_index(8.0, 70, None, now=NOW)
        assert score.time_score == 0
        assert score.days_since_pinning == 0
        assert score.index == 60

    def test_components_are_capped(self):
        score = calculate_maturity_index(
            avg_diameter=20.0,
            flat_percentage=100,
            pinning_date=NOW - timedelta(days=30),
            now=NOW,
        )
        assert score.time_score == 30
        assert score.size_score == 40
        assert score.index == 90

    def test_non_positive_baseline_falls_back_to_defaults(self):
        score = calculate_maturity_index(
            avg_diameter=4.0,
            flat_percentage=0,
            pinning_date=NOW - timedelta(days=2),
            baseline=MaturityBaseline(target_diameter_cm=0, target_maturation_days=-1),
            now=NOW,
        )
        # 30 * 2/5 = 12, 40 * 4/8 = 20
        assert score.time_score == 12
        assert score.size_score == 20
        assert score.index == 32

    def test_index_rounds_half_up(self):
        # size 40 * 3.0/8.0 = 15, time 30 * 1/4 = 7.5 → 22.5 → 23
        score = calculate_maturity_index(
            avg_diameter=3.0,
            flat_percentage=0,
            pinning_date=NOW - timedelta(hours=12),
            baseline=MaturityBaseline(target_diameter_cm=8.0, target_maturation_days=4),
            now=NOW,
        )
        assert score.days_since_pinning == 1
        assert score.index == 23

    @pytest.mark.parametrize("flat_pct, expected", [
        (0, 0), (19.9, 0), (20, 10), (60, 10), (60.1, 20), (100, 20),
    ])
    def test_flat_ratio_buckets(self, flat_pct, expected):
        assert flat_ratio_score(flat_pct) == expected


@pytest.mark.unit
class TestDaysSince:

    def test_partial_days_round_up(self):
        assert days_since(NOW - timedelta(days=1, hours=6), NOW) == 2

    def test_future_pinning_is_zero(self):
        assert days_since(NOW + timedelta(days=2), NOW) == 0

    def test_naive_datetimes_treated_as_utc(self):
        naive = (NOW - timedelta(days=3)).replace(tzinfo=None)
        assert days_since(naive, NOW) == 3


@pytest.mark.unit
class TestEvaluateBatchStatus:

    @pytest.mark.parametrize("index, expected", [
        (60, MaturityStatus.GROWING),
        (61, MaturityStatus.APPROACHING_MATURITY),
        (80, MaturityStatus.APPROACHING_MATURITY),
        (81, MaturityStatus.READY_TO_HARVEST),
        (90, MaturityStatus.READY_TO_HARVEST),
    ])
    def test_thresholds(self, index, expected):
        assert evaluate_batch_status(index, 50, True) == expected

    @pytest.mark.parametrize("index", [0, 61, 81, 90])
    def test_growing_until_pinning(self, index):
        assert evaluate_batch_status(index, 80, False) == MaturityStatus.GROWING

    def test_over_mature_is_never_suggested(self):
        suggestions = {
            evaluate_batch_status(i, 100, pinned)
            for i in range(0, 101) for pinned in (True, False)
        }
        assert MaturityStatus.OVER_MATURE not in suggestions


@pytest.mark.unit
class TestEvaluateHarvestStatus:

    def test_ready_alerts_workers(self):
        alert = evaluate_harvest_status(85, 70, "BT-25-01-001")
        assert alert.level == AlertLevel.WARNING
        assert alert.recipient == AlertRecipient.WORKERS
        assert alert.channel == AlertChannel.PUSH
        assert alert.message == "TASK: Harvest Batch BT-25-01-001 NOW. Maturity Index: 85%"

    def test_approaching_emails_processor(self):
        alert = evaluate_harvest_status(61, 30, "BT-25-01-001")
        assert alert.level == AlertLevel.INFO
        assert alert.recipient == AlertRecipient.VILLAGE_C
        assert alert.channel == AlertChannel.EMAIL
        assert "approaching maturity (61%)" in alert.message

    def test_boundary_eighty_is_info(self):
        assert evaluate_harvest_status(80, 0, "B").level == AlertLevel.INFO

    def test_no_alert_below_threshold(self):
        assert evaluate_harvest_status(60, 90, "B") is None
