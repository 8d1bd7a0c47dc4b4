"""Metric domain constants and derived result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

# ---------------------------------------------------------------------------
# Domain constants (used by validation, analytics and the MCP tools)
# ---------------------------------------------------------------------------

BLOOD_PRESSURE = "Blood Pressure"

METRIC_TYPES = [
    BLOOD_PRESSURE,
    "Weight",
    "Steps",
    "Heart Rate",
    "Sleep",
    "Water",
    "Exercise",
    "Mood",
]

# Inclusive (min, max) accepted per metric type
VALUE_RANGES: dict[str, tuple[float, float]] = {
    BLOOD_PRESSURE: (0, 300),
    "Weight": (50, 500),
    "Steps": (0, 100000),
    "Heart Rate": (30, 200),
    "Sleep": (0, 24),
    "Water": (0, 500),
    "Exercise": (0, 1440),
    "Mood": (1, 10),
}

BLOOD_PRESSURE_UNIT = "mmHg"

ALLOWED_DAYS = (7, 30, 90, 365)
DEFAULT_DAYS = 30

EXPORT_FORMATS = ("csv", "markdown", "html", "text")
DEFAULT_EXPORT_FORMAT = "csv"

# Insight generation reads a fixed window regardless of the dashboard period
INSIGHT_WINDOW_DAYS = 30
INSIGHT_ROW_LIMIT = 100

Trend = Literal["improving", "declining", "stable"]


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class MetricAnalysis:
    """Summary statistics for one metric type over one window. Never stored."""

    metric_type: str
    current: float
    average: float
    min: float
    max: float
    trend: Trend
    projection_7_days: list[float] = field(default_factory=list)
    unit: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric_type": self.metric_type,
            "current": self.current,
            "average": self.average,
            "min": self.min,
            "max": self.max,
            "trend": self.trend,
            "projection_7_days": list(self.projection_7_days),
            "unit": self.unit,
        }


@dataclass
class TrendPoint:
    """One chart point: calendar date of the observation and its value."""

    date: str
    value: float

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date, "value": self.value}


@dataclass
class InsightReport:
    """Narrative insights returned to the caller."""

    insights: str
    recommendations: list[str] = field(default_factory=list)
    anomalies: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "insights": self.insights,
            "recommendations": list(self.recommendations),
            "anomalies": list(self.anomalies),
        }
