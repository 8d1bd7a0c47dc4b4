"""MCP tools for users, metric entry, analytics, export and insights.

Every tool returns a JSON string. Failures are returned as the standard
error payload (``status``/``error``/``category``/``timestamp``) rather than
raised, so MCP clients always get a parseable answer.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from healthtrack.core.errors import HealthTrackError, error_payload

if TYPE_CHECKING:
    from healthtrack.domains.health.service import HealthService

logger = logging.getLogger(__name__)


def _error_response(operation: str, exc: Exception) -> str:
    if isinstance(exc, HealthTrackError):
        logger.info("%s rejected (%s): %s", operation, exc.category, exc)
    else:
        logger.exception("%s failed", operation)
    return json.dumps(error_payload(exc))


def register_health_tools(mcp: FastMCP, service: HealthService) -> None:
    """Register the health tracker tools on the MCP server."""

    @mcp.tool
    async def initialize_database(ctx: Context) -> str:
        """Create the metric store tables if they do not exist yet.

        Safe to call any number of times.
        """
        try:
            return json.dumps(await service.initialize_store(surface="mcp"))
        except Exception as exc:
            return _error_response("initialize_database", exc)

    @mcp.tool
    async def list_users(ctx: Context) -> str:
        """List tracked users, alphabetically by name."""
        try:
            users = await service.list_users(surface="mcp")
        except Exception as exc:
            return _error_response("list_users", exc)
        return json.dumps({
            "status": "ok",
            "users": [u.to_dict() for u in users],
        })

    @mcp.tool
    async def create_user(ctx: Context, name: str) -> str:
        """Add a user to track metrics for.

        Args:
            name: 2-255 characters: letters, digits, spaces, hyphens, apostrophes.
        """
        try:
            user = await service.create_user(name, surface="mcp")
        except Exception as exc:
            return _error_response("create_user", exc)
        return json.dumps({"status": "created", "user": user.to_dict()})

    @mcp.tool
    async def get_metrics(ctx: Context, user_id: int, days: int = 30) -> str:
        """Read a user's recorded metrics, newest first.

        Args:
            user_id: The user to read.
            days: Look-back window: 7, 30, 90 or 365 (anything else means 30).
        """
        try:
            window, rows = await service.get_metrics(user_id, days, surface="mcp")
        except Exception as exc:
            return _error_response("get_metrics", exc)
        return json.dumps({
            "status": "ok",
            "user_id": user_id,
            "days": window,
            "count": len(rows),
            "metrics": [m.to_dict() for m in rows],
        })

    @mcp.tool
    async def record_metric(
        ctx: Context,
        user_id: int,
        metric_type: str,
        value: float | None = None,
        unit: str = "",
        systolic: float | None = None,
        diastolic: float | None = None,
        pulse: float | None = None,
    ) -> str:
        """Record one health measurement, timestamped now.

        Args:
            user_id: Owner of the measurement.
            metric_type: Blood Pressure, Weight, Steps, Heart Rate, Sleep,
                Water, Exercise or Mood.
            value: The reading. For Blood Pressure it may be omitted when
                systolic and diastolic are given.
            unit: Optional display unit (e.g. 'lbs', 'hours').
            systolic: Blood Pressure only: top number.
            diastolic: Blood Pressure only: bottom number.
            pulse: Blood Pressure only: optional pulse in bpm.
        """
        composite = None
        if systolic is not None or diastolic is not None:
            composite = {"systolic": systolic, "diastolic": diastolic}
            if pulse is not None:
                composite["pulse"] = pulse
        try:
            metric = await service.record_metric(
                user_id,
                metric_type,
                value,
                unit=unit or None,
                composite_data=composite,
                surface="mcp",
            )
        except Exception as exc:
            return _error_response("record_metric", exc)
        return json.dumps({"status": "saved", "metric": metric.to_dict()})

    @mcp.tool
    async def analyze_metrics(ctx: Context, user_id: int, days: int = 30) -> str:
        """Summarize each tracked metric: current, average, range, trend and
        a 7-day projection.

        Args:
            user_id: The user to analyze.
            days: Look-back window: 7, 30, 90 or 365 (anything else means 30).
        """
        try:
            result = await service.analyze(user_id, days, surface="mcp")
        except Exception as exc:
            return _error_response("analyze_metrics", exc)
        return json.dumps({"status": "ok", **result})

    @mcp.tool
    async def export_report(
        ctx: Context,
        user_id: int,
        format: str = "csv",
        days: int = 30,
    ) -> str:
        """Export a user's metrics as a report document.

        Args:
            user_id: The user whose data to export.
            format: csv, markdown, html or text (anything else means csv).
            days: Look-back window: 7, 30, 90 or 365 (anything else means 30).
        """
        try:
            report = await service.export(user_id, format, days, surface="mcp")
        except Exception as exc:
            return _error_response("export_report", exc)
        return json.dumps({
            "status": "ok",
            "filename": report.filename,
            "content_type": report.content_type,
            "format": report.format,
            "row_count": report.row_count,
            "content": report.content,
        })

    @mcp.tool
    async def generate_insights(ctx: Context, user_id: int) -> str:
        """Generate plain-language insights, recommendations and anomalies
        from the last 30 days of measurements.

        Args:
            user_id: The user to generate insights for.
        """
        try:
            report = await service.generate_insights(user_id, surface="mcp")
        except Exception as exc:
            return _error_response("generate_insights", exc)
        return json.dumps(report.to_dict())
