"""MCP tool for reviewing the audit trail.

Audit rows hold no readings: operation names, hashed inputs, outcome, and
whether data was sent to an external LLM.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from fastmcp import Context, FastMCP

from healthtrack.domains.health.domain_logic.validation import validate_days

if TYPE_CHECKING:
    from healthtrack.core.audit.logger import AuditLogger

logger = logging.getLogger(__name__)

_RECENT_LIMIT = 20
_DISPLAY_FIELDS = (
    "timestamp",
    "action",
    "operation",
    "user_id",
    "llm_provider",
    "status",
    "error_type",
    "duration_ms",
)


def _display_event(event: dict[str, Any]) -> dict[str, Any]:
    shown = {name: event.get(name) for name in _DISPLAY_FIELDS}
    shown["llm_disclosed"] = bool(event.get("llm_disclosed"))
    shown["surface"] = json.loads(event.get("metadata_json") or "{}").get("surface")
    return shown


def build_audit_summary(
    audit_logger: AuditLogger, days: Any = 30, operation: str | None = None
) -> dict[str, Any]:
    window = validate_days(days)
    since = (datetime.now(timezone.utc) - timedelta(days=window)).isoformat()
    operation = operation or None
    return {
        "status": "ok",
        "period_days": window,
        "operation": operation,
        "total_events": audit_logger.count_events(since=since, operation=operation),
        "failures": audit_logger.count_failures(since=since, operation=operation),
        "llm_disclosures": audit_logger.count_disclosures(since=since),
        "recent_events": [
            _display_event(e)
            for e in audit_logger.get_events(
                since=since, operation=operation, limit=_RECENT_LIMIT
            )
        ],
        "note": (
            "This audit trail contains no health readings. "
            "It tracks operations and whether data was sent to external LLMs."
        ),
    }


def register_audit_tools(mcp: FastMCP, audit_logger: AuditLogger) -> None:
    """Register audit trail tools on the MCP server."""

    @mcp.tool
    async def audit_summary(ctx: Context, days: int = 30, operation: str = "") -> str:
        """Recent operations, failures, and how often data went to an external LLM.

        Args:
            days: Look-back window: 7, 30, 90 or 365 (anything else means 30).
            operation: Only count this tool or route operation, e.g. 'generate_insights'.
        """
        summary = await asyncio.to_thread(build_audit_summary, audit_logger, days, operation)
        logger.debug(
            "Audit summary: %d events over %d days", summary["total_events"], summary["period_days"]
        )
        return json.dumps(summary, indent=2)
