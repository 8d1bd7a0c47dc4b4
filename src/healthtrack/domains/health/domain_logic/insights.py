"""Insight composer: turns recent metric rows into a narrative via the inner LLM.

The LLM is asked for a JSON object, but its reply is treated as free text:
the first ``{...}`` span is parsed best-effort and anything else becomes the
narrative itself. Parsing never raises.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from healthtrack.core.llm.response import (
    check_guardrails,
    enforce_disclaimer,
    extract_json_object,
    sanitize_content,
)
from healthtrack.domains.health.domain_logic.analytics import format_blood_pressure
from healthtrack.domains.health.domain_logic.metric_models import (
    BLOOD_PRESSURE,
    INSIGHT_WINDOW_DAYS,
    InsightReport,
)
from healthtrack.domains.health.domain_logic.report_export import format_value

if TYPE_CHECKING:
    from healthtrack.core.llm.client import InnerLLMClient
    from healthtrack.core.storage.models import HealthMetric

logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = (
    "No health data available yet. Start tracking your health metrics "
    "to get personalized insights."
)

INSIGHT_INSTRUCTIONS = """\
Analyze the health metrics in the user message and provide:
1. Key insights about the person's health trends
2. 3-5 personalized recommendations for improvement
3. Any concerning trends or anomalies that should be flagged

Provide your response in JSON format with keys: "insights", \
"recommendations" (array), "anomalies" (array)."""


def no_data_report() -> InsightReport:
    return InsightReport(insights=NO_DATA_MESSAGE, recommendations=[], anomalies=[])


def format_metric_line(metric: HealthMetric) -> str:
    """``"<type>: <value> <unit> (<date>)"`` for one row."""
    if metric.metric_type == BLOOD_PRESSURE and metric.composite_data is not None:
        reading = format_blood_pressure(metric)
    else:
        reading = " ".join(
            part for part in (format_value(metric.value), metric.unit or "") if part
        )
    return f"{metric.metric_type}: {reading} ({metric.timestamp[:10]})"


def build_insight_prompt(metrics: list[HealthMetric]) -> str:
    lines = "\n".join(format_metric_line(m) for m in metrics)
    return f"Health Metrics (last {INSIGHT_WINDOW_DAYS} days):\n{lines}"


def _as_text_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None and str(item).strip()]
    text = str(value).strip()
    return [text] if text else []


def parse_insight_reply(text: str) -> InsightReport:
    """Best-effort conversion of an LLM reply into an :class:`InsightReport`."""
    parsed = extract_json_object(text)
    if parsed is None:
        logger.info("Insight reply was not a JSON object; using raw text as narrative")
        return InsightReport(insights=text.strip(), recommendations=[], anomalies=[])

    insights = parsed.get("insights", "")
    if isinstance(insights, (list, tuple)):
        insights = "\n".join(str(item) for item in insights)
    return InsightReport(
        insights=str(insights or "").strip(),
        recommendations=_as_text_list(parsed.get("recommendations")),
        anomalies=_as_text_list(parsed.get("anomalies")),
    )


def apply_guardrails(report: InsightReport) -> tuple[InsightReport, list[str]]:
    """Redact prohibited guidance from every field and append the disclaimer."""
    flags: list[str] = []

    def _clean(text: str) -> str:
        check = check_guardrails(text)
        flags.extend(check.flags)
        return sanitize_content(text, check)

    cleaned = InsightReport(
        insights=enforce_disclaimer(_clean(report.insights)),
        recommendations=[_clean(item) for item in report.recommendations],
        anomalies=[_clean(item) for item in report.anomalies],
    )
    return cleaned, flags


class InsightComposer:
    """Builds the prompt, calls the inner LLM, and normalizes the reply.

    Usage::

        composer = InsightComposer(llm_client)
        report = await composer.compose(rows)
    """

    def __init__(self, llm_client: InnerLLMClient) -> None:
        self._llm = llm_client

    @property
    def provider_name(self) -> str:
        return self._llm.provider_name

    async def compose(self, metrics: list[HealthMetric]) -> InsightReport:
        """Return insights for ``metrics``.

        With no rows the canned no-data report is returned and the LLM is
        not called.
        """
        if not metrics:
            return no_data_report()

        response = await self._llm.invoke(
            build_insight_prompt(metrics),
            instructions=INSIGHT_INSTRUCTIONS,
        )
        report, flags = apply_guardrails(parse_insight_reply(response.content))
        if flags:
            logger.warning(
                "Guardrails enforced on insights: %d prohibited patterns redacted",
                len(flags),
            )
        return report
