"""MCP Prompts: pre-built interaction templates for common tracker journeys."""

from __future__ import annotations

from fastmcp import FastMCP


def register_health_prompts(mcp: FastMCP) -> None:
    """Register health tracker MCP prompts."""

    @mcp.prompt()
    def weekly_review_prompt(user_name: str = "me") -> str:
        """Prompt template for reviewing the last week of measurements."""
        return f"""Let's review the last 7 days of health tracking for {user_name}. Please:

1. Run analyze_metrics with days=7 and summarize each metric's trend
2. Point out any metric with no readings this week
3. Generate insights and pick the two most useful recommendations
4. Suggest one realistic goal for next week

Keep it short and encouraging."""

    @mcp.prompt()
    def log_reading_prompt(metric_type: str = "Blood Pressure") -> str:
        """Prompt template for logging a new measurement."""
        return f"""I want to log a new {metric_type} reading. Ask me for the value \
(and for Blood Pressure, the systolic, diastolic and optional pulse), confirm \
it is within the accepted range from healthtrack://metrics/catalog, then call \
record_metric."""
