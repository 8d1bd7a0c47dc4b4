"""Analytics over a batch of metric rows.

Pure functions: grouping, trend classification, 7-day linear projection and
per-type summary statistics. Nothing here touches the store, and nothing
computed here is persisted.

Usage::

    rows = repository.get_metrics(user_id, days=30)
    analyses = analyze_metrics(rows)
    summary = get_health_summary(analyses)
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone

from healthtrack.core.storage.models import HealthMetric
from healthtrack.domains.health.domain_logic.metric_models import (
    BLOOD_PRESSURE_UNIT,
    MetricAnalysis,
    Trend,
    TrendPoint,
)

logger = logging.getLogger(__name__)

PROJECTION_DAYS = 7
PROJECTION_WINDOW = 14
STABLE_THRESHOLD = 0.05


def round_half_up(value: float, places: int = 2) -> float:
    """Round to ``places`` decimals, halves going towards +infinity."""
    factor = 10**places
    return math.floor(value * factor + 0.5) / factor


def _parse_timestamp(raw: str) -> datetime:
    moment = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def group_metrics_by_type(metrics: list[HealthMetric]) -> dict[str, list[HealthMetric]]:
    """Partition rows by exact ``metric_type``, in order of first appearance."""
    grouped: dict[str, list[HealthMetric]] = {}
    for metric in metrics:
        grouped.setdefault(metric.metric_type, []).append(metric)
    return grouped


def calculate_trend(values: list[float]) -> Trend:
    """Compare the means of the two halves of ``values``.

    No change, or a relative change under 5% of the first-half mean, is
    ``stable``. Otherwise a drop is ``improving`` and a rise ``declining``
    for every metric type.
    """
    if len(values) < 2:
        return "stable"

    mid = len(values) // 2
    first_half = values[:mid]
    second_half = values[mid:]
    first_avg = sum(first_half) / len(first_half)
    second_avg = sum(second_half) / len(second_half)

    change = second_avg - first_avg
    if change == 0 or abs(change) < first_avg * STABLE_THRESHOLD:
        return "stable"
    return "improving" if change < 0 else "declining"


def project_next_7_days(values: list[float]) -> list[float]:
    """Least-squares line over the last 14 values, extended seven steps.

    Points are at positions ``n+1 .. n+7`` on the 0-based index axis (the
    same offset the fit was computed on), rounded half-up to 2 decimals.
    A single-point window has no slope; it projects flat at that value.
    """
    if not values:
        return []

    recent = values[-PROJECTION_WINDOW:]
    n = len(recent)

    sum_x = sum_y = sum_xy = sum_x2 = 0.0
    for i, y in enumerate(recent):
        sum_x += i
        sum_y += y
        sum_xy += i * y
        sum_x2 += i * i

    denominator = n * sum_x2 - sum_x * sum_x
    slope = (n * sum_xy - sum_x * sum_y) / denominator if denominator else 0.0
    intercept = (sum_y - slope * sum_x) / n

    return [
        round_half_up(intercept + slope * (n + step))
        for step in range(1, PROJECTION_DAYS + 1)
    ]


def _most_recent(metrics: list[HealthMetric]) -> HealthMetric:
    return max(metrics, key=lambda m: (_parse_timestamp(m.timestamp), m.id))


def analyze_metrics(metrics: list[HealthMetric]) -> list[MetricAnalysis]:
    """Build one :class:`MetricAnalysis` per metric type present in ``metrics``.

    Trend and projection are computed over the group's values sorted
    ascending by value. ``current`` and ``unit`` come from the row with the
    latest timestamp (highest id on ties).
    """
    analyses: list[MetricAnalysis] = []
    for metric_type, group in group_metrics_by_type(metrics).items():
        values = sorted(m.value for m in group)
        latest = _most_recent(group)
        analyses.append(MetricAnalysis(
            metric_type=metric_type,
            current=latest.value,
            average=round_half_up(sum(values) / len(values)),
            min=values[0],
            max=values[-1],
            trend=calculate_trend(values),
            projection_7_days=project_next_7_days(values),
            unit=latest.unit,
        ))

    logger.debug("Analyzed %d rows into %d metric types", len(metrics), len(analyses))
    return analyses


def get_trend_data(metrics: list[HealthMetric]) -> list[TrendPoint]:
    """Chart series: rows ascending by timestamp as (ISO date, value) points."""
    ordered = sorted(metrics, key=lambda m: (_parse_timestamp(m.timestamp), m.id))
    return [
        TrendPoint(date=_parse_timestamp(m.timestamp).date().isoformat(), value=m.value)
        for m in ordered
    ]


def get_health_summary(analyses: list[MetricAnalysis]) -> str:
    improving = sum(1 for a in analyses if a.trend == "improving")
    declining = sum(1 for a in analyses if a.trend == "declining")
    return (
        f"You're tracking {len(analyses)} metrics. "
        f"{improving} are improving, {declining} are declining."
    )


# ---------------------------------------------------------------------------
# Blood pressure display helpers
# ---------------------------------------------------------------------------

def _fmt(number: float) -> str:
    return f"{number:g}"


def format_blood_pressure(metric: HealthMetric) -> str:
    """``"120/80 mmHg (72 bpm)"``, ``"120/80 mmHg"``, or legacy ``"120 mmHg"``."""
    bp = metric.composite_data
    if bp is None:
        return f"{_fmt(metric.value)} {BLOOD_PRESSURE_UNIT}"
    reading = f"{_fmt(bp.systolic)}/{_fmt(bp.diastolic)} {BLOOD_PRESSURE_UNIT}"
    if bp.pulse:
        return f"{reading} ({_fmt(bp.pulse)} bpm)"
    return reading


def get_blood_pressure_systolic(metric: HealthMetric) -> float:
    if metric.composite_data is not None:
        return metric.composite_data.systolic
    return metric.value


def get_blood_pressure_diastolic(metric: HealthMetric) -> float | None:
    if metric.composite_data is not None:
        return metric.composite_data.diastolic
    return None
