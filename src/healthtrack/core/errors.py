"""Error taxonomy shared by the MCP tools and the HTTP routes.

Every error that crosses a request boundary is reported with the same shape
(message plus category) so callers can tell "fix your input" apart from
"try again later".
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)


class HealthTrackError(Exception):
    """Base class for errors with a stable, client-facing category."""

    category = "internal"
    http_status = 500


class ValidationError(HealthTrackError):
    """Bad or missing input. Rejected at the boundary, never retried."""

    category = "validation"
    http_status = 400


class NotFoundError(HealthTrackError):
    """The referenced user (or other entity) does not exist."""

    category = "not_found"
    http_status = 404


class ConflictError(HealthTrackError):
    """The write collides with existing data (e.g. duplicate user name)."""

    category = "conflict"
    http_status = 409


class UnauthorizedError(HealthTrackError):
    """A guarded operation was called without the expected secret."""

    category = "unauthorized"
    http_status = 401


class TransientError(HealthTrackError):
    """A dependency kept failing or timing out after all retries."""

    category = "transient"
    http_status = 503


_GENERIC_MESSAGE = "Internal server error"


def error_category(exc: BaseException) -> str:
    """Return the stable category name for an exception."""
    if isinstance(exc, HealthTrackError):
        return exc.category
    return "internal"


def error_status(exc: BaseException) -> int:
    """Return the HTTP status code an exception maps to."""
    if isinstance(exc, HealthTrackError):
        return exc.http_status
    return 500


def error_payload(exc: BaseException) -> dict[str, Any]:
    """Render an exception as the JSON error shape returned to callers.

    Messages of unexpected exceptions are not echoed back; they are logged
    by the caller instead.
    """
    if isinstance(exc, HealthTrackError):
        message = str(exc) or exc.category
    else:
        message = _GENERIC_MESSAGE
    return {
        "status": "error",
        "error": message,
        "category": error_category(exc),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
