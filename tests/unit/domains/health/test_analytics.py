"""Tests for the analytics engine: grouping, trends, projection and summaries."""

from __future__ import annotations

import pytest

from conftest import make_metric
from healthtrack.core.storage.models import BloodPressureData
from healthtrack.domains.health.domain_logic.analytics import (
    analyze_metrics,
    calculate_trend,
    format_blood_pressure,
    get_blood_pressure_diastolic,
    get_blood_pressure_systolic,
    get_health_summary,
    get_trend_data,
    group_metrics_by_type,
    project_next_7_days,
    round_half_up,
)
from healthtrack.domains.health.domain_logic.metric_models import MetricAnalysis


class TestRoundHalfUp:
    def test_half_rounds_up(self):
        assert round_half_up(0.375) == pytest.approx(0.38)
        assert round_half_up(2.5, 0) == 3.0
        assert round_half_up(0.125) == pytest.approx(0.13)

    def test_negative_half_rounds_towards_positive(self):
        assert round_half_up(-0.125) == pytest.approx(-0.12)

    def test_whole_numbers_unchanged(self):
        assert round_half_up(178.0) == 178.0


class TestGrouping:
    def test_groups_in_first_appearance_order(self):
        rows = [
            make_metric(8, metric_type="Mood", day=1),
            make_metric(180, metric_type="Weight", day=1, id=2),
            make_metric(7, metric_type="Mood", day=2, id=3),
        ]
        grouped = group_metrics_by_type(rows)
        assert list(grouped) == ["Mood", "Weight"]
        assert [m.value for m in grouped["Mood"]] == [8, 7]

    def test_exact_string_match(self):
        rows = [make_metric(1, metric_type="weight"), make_metric(2, metric_type="Weight", id=9)]
        assert set(group_metrics_by_type(rows)) == {"weight", "Weight"}

    def test_empty(self):
        assert group_metrics_by_type([]) == {}


class TestCalculateTrend:
    def test_fewer_than_two_points_is_stable(self):
        assert calculate_trend([]) == "stable"
        assert calculate_trend([42.0]) == "stable"

    def test_constant_is_stable(self):
        assert calculate_trend([5.0, 5.0, 5.0, 5.0]) == "stable"

    def test_constant_zeros_are_stable(self):
        assert calculate_trend([0.0, 0.0, 0.0]) == "stable"
        assert calculate_trend([0.0, 0.0]) == "stable"

    def test_rise_from_zero_is_declining(self):
        assert calculate_trend([0.0, 0.0, 1.0, 1.0]) == "declining"

    def test_rise_over_five_percent_is_declining(self):
        assert calculate_trend([100.0, 100.0, 110.0, 110.0]) == "declining"

    def test_drop_over_five_percent_is_improving(self):
        assert calculate_trend([110.0, 110.0, 100.0, 100.0]) == "improving"

    def test_small_change_is_stable(self):
        assert calculate_trend([100.0, 100.0, 104.0, 104.0]) == "stable"

    def test_odd_length_splits_at_floor_half(self):
        # first half [10], second half [20, 30]
        assert calculate_trend([10.0, 20.0, 30.0]) == "declining"


class TestProjection:
    def test_empty(self):
        assert project_next_7_days([]) == []

    def test_length_seven(self):
        assert len(project_next_7_days([1.0, 2.0, 4.0])) == 7

    def test_linear_series_continues(self):
        # y = i over positions 0..2, projected at 4..10 (n + step)
        assert project_next_7_days([0.0, 1.0, 2.0]) == [4.0, 5.0, 6.0, 7.0, 8.0, 9.0, 10.0]

    def test_constant_series_is_flat(self):
        assert project_next_7_days([70.0] * 5) == [70.0] * 7

    def test_single_point_projects_flat(self):
        assert project_next_7_days([176.0]) == [176.0] * 7

    def test_uses_last_fourteen_values(self):
        values = [1000.0] * 6 + [float(i) for i in range(14)]
        # Only the trailing 0..13 ramp is fitted: slope 1, intercept 0.
        assert project_next_7_days(values) == [15.0, 16.0, 17.0, 18.0, 19.0, 20.0, 21.0]

    def test_rounded_to_two_decimals(self):
        for point in project_next_7_days([1.0, 1.333, 2.0, 2.4]):
            assert point == round_half_up(point)


class TestAnalyzeMetrics:
    def test_weight_example(self):
        rows = [
            make_metric(180, day=1),
            make_metric(178, day=2),
            make_metric(176, day=3),
        ]
        [analysis] = analyze_metrics(rows)
        assert analysis.metric_type == "Weight"
        assert analysis.average == 178
        assert analysis.min == 176
        assert analysis.max == 180
        assert analysis.current == 176
        assert analysis.unit == "lbs"
        assert len(analysis.projection_7_days) == 7

    def test_average_within_range(self):
        rows = [make_metric(v, day=i + 1) for i, v in enumerate([7.5, 8.25, 6.0, 9.1])]
        [analysis] = analyze_metrics(rows)
        assert analysis.min <= analysis.average <= analysis.max
        assert analysis.average == round_half_up(sum([7.5, 8.25, 6.0, 9.1]) / 4)

    def test_trend_uses_value_sorted_order(self):
        # Decreasing over time still sorts ascending by value first.
        rows = [make_metric(v, day=i + 1) for i, v in enumerate([200, 190, 180, 170])]
        [analysis] = analyze_metrics(rows)
        assert analysis.trend == "declining"

    def test_all_zero_readings_are_stable(self):
        rows = [make_metric(0, metric_type="Exercise", unit="minutes", day=d) for d in (1, 2, 3)]
        [analysis] = analyze_metrics(rows)
        assert analysis.trend == "stable"
        assert analysis.projection_7_days == [0.0] * 7

    def test_current_tie_broken_by_highest_id(self):
        rows = [
            make_metric(150, day=5, id=10),
            make_metric(151, day=5, id=12),
            make_metric(149, day=5, id=11),
        ]
        [analysis] = analyze_metrics(rows)
        assert analysis.current == 151

    def test_unit_from_most_recent_row(self):
        rows = [
            make_metric(80, day=1, unit="kg"),
            make_metric(176, day=2, unit="lbs"),
        ]
        [analysis] = analyze_metrics(rows)
        assert analysis.unit == "lbs"

    def test_one_analysis_per_type(self):
        rows = [
            make_metric(8000, metric_type="Steps", day=1, unit="steps"),
            make_metric(180, day=1, id=50),
            make_metric(9000, metric_type="Steps", day=2, unit="steps"),
        ]
        analyses = analyze_metrics(rows)
        assert [a.metric_type for a in analyses] == ["Steps", "Weight"]

    def test_empty_input(self):
        assert analyze_metrics([]) == []

    def test_to_dict_keys(self):
        [analysis] = analyze_metrics([make_metric(180)])
        assert set(analysis.to_dict()) == {
            "metric_type", "current", "average", "min", "max",
            "trend", "projection_7_days", "unit",
        }


class TestTrendDataAndSummary:
    def test_trend_data_ascending_by_time(self):
        rows = [make_metric(176, day=3), make_metric(180, day=1), make_metric(178, day=2)]
        points = get_trend_data(rows)
        assert [p.date for p in points] == ["2026-01-01", "2026-01-02", "2026-01-03"]
        assert [p.value for p in points] == [180, 178, 176]

    def test_trend_data_does_not_reorder_input(self):
        rows = [make_metric(176, day=3), make_metric(180, day=1)]
        get_trend_data(rows)
        assert [m.value for m in rows] == [176, 180]

    def test_summary_sentence(self):
        analyses = [
            MetricAnalysis("Weight", 1, 1, 1, 1, "improving"),
            MetricAnalysis("Steps", 1, 1, 1, 1, "declining"),
            MetricAnalysis("Mood", 1, 1, 1, 1, "stable"),
        ]
        assert get_health_summary(analyses) == (
            "You're tracking 3 metrics. 1 are improving, 1 are declining."
        )


class TestBloodPressureHelpers:
    def test_format_with_pulse(self):
        m = make_metric(120, metric_type="Blood Pressure", unit="mmHg",
                        composite=BloodPressureData(120, 80, 72))
        assert format_blood_pressure(m) == "120/80 mmHg (72 bpm)"

    def test_format_without_pulse(self):
        m = make_metric(118, metric_type="Blood Pressure", unit="mmHg",
                        composite=BloodPressureData(118.5, 79))
        assert format_blood_pressure(m) == "118.5/79 mmHg"

    def test_format_legacy_single_value(self):
        m = make_metric(125, metric_type="Blood Pressure", unit="mmHg")
        assert format_blood_pressure(m) == "125 mmHg"

    def test_systolic_and_diastolic(self):
        composite = make_metric(120, metric_type="Blood Pressure",
                                composite=BloodPressureData(121, 81))
        legacy = make_metric(130, metric_type="Blood Pressure")
        assert get_blood_pressure_systolic(composite) == 121
        assert get_blood_pressure_diastolic(composite) == 81
        assert get_blood_pressure_systolic(legacy) == 130
        assert get_blood_pressure_diastolic(legacy) is None
