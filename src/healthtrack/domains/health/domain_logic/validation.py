"""Input validation for tool arguments and HTTP payloads.

Strict validators raise :class:`~healthtrack.core.errors.ValidationError`.
The two allow-list validators (``validate_days``, ``validate_export_format``)
never raise: an unknown value falls back to the default with a warning.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any

from healthtrack.core.errors import ValidationError
from healthtrack.core.storage.models import BloodPressureData
from healthtrack.domains.health.domain_logic.metric_models import (
    ALLOWED_DAYS,
    BLOOD_PRESSURE,
    DEFAULT_DAYS,
    DEFAULT_EXPORT_FORMAT,
    EXPORT_FORMATS,
    METRIC_TYPES,
    VALUE_RANGES,
)

logger = logging.getLogger(__name__)

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9\s\-']+$")
_LEADING_INT = re.compile(r"^\s*[+-]?\d+")


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def validate_user_id(user_id: Any) -> int:
    """Parse a positive integer user id.

    Accepts ints and numeric strings ("12", " 7 "). A string with trailing
    junk is parsed by its leading digits, so "12abc" is 12. Floats must be
    whole numbers: 3.0 is 3, 1.9 is rejected.
    """
    if isinstance(user_id, bool):
        raise ValidationError("Invalid userId: must be a positive integer")
    if isinstance(user_id, int):
        parsed = user_id
    elif isinstance(user_id, float):
        if not user_id.is_integer():
            raise ValidationError("Invalid userId: must be a positive integer")
        parsed = int(user_id)
    else:
        match = _LEADING_INT.match(str(user_id)) if user_id is not None else None
        if match is None:
            raise ValidationError("Invalid userId: must be a positive integer")
        parsed = int(match.group(0))
    if parsed < 1:
        raise ValidationError("Invalid userId: must be a positive integer")
    return parsed


def validate_days(days: Any) -> int:
    """Return ``days`` if it is in the allow-list, otherwise the default."""
    raw = str(days if days not in (None, "") else DEFAULT_DAYS).strip()
    for allowed in ALLOWED_DAYS:
        if raw == str(allowed):
            return allowed
    logger.warning("Invalid days parameter: %s, using default %d", raw, DEFAULT_DAYS)
    return DEFAULT_DAYS


def validate_metric_type(metric_type: Any) -> str:
    candidate = str(metric_type or "").strip()
    if candidate not in METRIC_TYPES:
        raise ValidationError(
            f"Invalid metric type: {candidate}. Valid types: {', '.join(METRIC_TYPES)}"
        )
    return candidate


def validate_metric_value(value: Any, metric_type: str) -> float:
    """Parse ``value`` as a finite number within the range for ``metric_type``."""
    number = _to_number(value)
    if number is None:
        raise ValidationError("Invalid value: must be a number")

    bounds = VALUE_RANGES.get(metric_type)
    if bounds is not None:
        low, high = bounds
        if number < low or number > high:
            raise ValidationError(
                f"Invalid value for {metric_type}: must be between {low:g} and {high:g}"
            )
    return number


def validate_user_name(name: Any) -> str:
    trimmed = str(name if name is not None else "").strip()
    if not trimmed:
        raise ValidationError("Name is required")
    if len(trimmed) < 2:
        raise ValidationError("Name must be at least 2 characters")
    if len(trimmed) > 255:
        raise ValidationError("Name must be less than 255 characters")
    if not _NAME_PATTERN.match(trimmed):
        raise ValidationError("Name contains invalid characters")
    return trimmed


def validate_export_format(fmt: Any) -> str:
    """Return the lower-cased format if allowed, otherwise ``csv``."""
    candidate = str(fmt or DEFAULT_EXPORT_FORMAT).strip().lower()
    if candidate not in EXPORT_FORMATS:
        logger.warning("Invalid format: %s, using default %s", candidate, DEFAULT_EXPORT_FORMAT)
        return DEFAULT_EXPORT_FORMAT
    return candidate


def validate_required_fields(body: Any, required_fields: list[str]) -> None:
    """Raise if any of ``required_fields`` is absent or null in ``body``."""
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    for name in required_fields:
        if body.get(name) is None:
            raise ValidationError(f"Missing required field: {name}")


def validate_blood_pressure(data: Any) -> BloodPressureData:
    """Validate a ``{systolic, diastolic, pulse?}`` payload."""
    if isinstance(data, BloodPressureData):
        data = data.to_dict()
    if not isinstance(data, dict):
        raise ValidationError("compositeData must be an object with systolic and diastolic")

    readings: dict[str, float] = {}
    for key in ("systolic", "diastolic"):
        if data.get(key) is None:
            raise ValidationError(f"Missing required field: compositeData.{key}")
        readings[key] = validate_metric_value(data[key], BLOOD_PRESSURE)

    pulse = data.get("pulse")
    if pulse is not None:
        number = _to_number(pulse)
        if number is None:
            raise ValidationError("Invalid pulse: must be a number")
        low, high = VALUE_RANGES["Heart Rate"]
        if number < low or number > high:
            raise ValidationError(f"Invalid pulse: must be between {low:g} and {high:g}")
        pulse = number

    return BloodPressureData(
        systolic=readings["systolic"], diastolic=readings["diastolic"], pulse=pulse
    )

