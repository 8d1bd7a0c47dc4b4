"""Data models for the metric store."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class BloodPressureData:
    """Composite payload attached to a Blood Pressure entry."""

    systolic: float
    diastolic: float
    pulse: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"systolic": self.systolic, "diastolic": self.diastolic, "pulse": self.pulse}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BloodPressureData:
        return cls(
            systolic=data["systolic"],
            diastolic=data["diastolic"],
            pulse=data.get("pulse"),
        )


@dataclass
class User:
    """A tracked person. Selected by id; there is no authentication."""

    id: int
    name: str
    created_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "created_at": self.created_at}


@dataclass
class HealthMetric:
    """One recorded observation.

    ``timestamp`` is the observation time (ISO 8601) and drives all
    windowing and ordering; ``created_at`` is when the row was written.
    For Blood Pressure entries with ``composite_data``, ``value`` holds the
    systolic figure for single-value consumers.
    """

    id: int
    user_id: int
    metric_type: str
    value: float
    unit: str | None = None
    composite_data: BloodPressureData | None = None
    timestamp: str = ""
    created_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "metric_type": self.metric_type,
            "value": self.value,
            "unit": self.unit,
            "composite_data": (
                self.composite_data.to_dict() if self.composite_data is not None else None
            ),
            "timestamp": self.timestamp,
            "created_at": self.created_at,
        }
