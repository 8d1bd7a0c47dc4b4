"""Response parsing and guardrail enforcement for LLM output."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

# Greedy: from the first "{" to the last "}" in the reply.
_JSON_OBJECT_SPAN = re.compile(r"\{[\s\S]*\}")

HEALTH_DISCLAIMER = (
    "These insights are informational and not medical advice. "
    "Consult a healthcare provider about any concerns."
)

_PROHIBITED_INDICATORS: dict[str, tuple[str, ...]] = {
    "making medical diagnoses": (
        "you have been diagnosed",
        "you are suffering from",
        "you have a condition",
        "this confirms you have",
    ),
    "prescribing treatments": (
        "take this medication",
        "stop taking your medication",
        "i prescribe",
        "increase your dose",
    ),
    "making disease predictions": (
        "you will develop",
        "you are at high risk of dying",
        "guaranteed to cure",
    ),
}

REDACTION_NOTE = "[Removed: contains prohibited health guidance]"


@dataclass
class GuardrailCheck:
    """Result of checking generated text against the prohibited-guidance list."""

    passed: bool
    flags: list[str] = field(default_factory=list)
    phrases: list[str] = field(default_factory=list)


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Best-effort: parse the first ``{...}`` span found in free-form text.

    Not a strict parser. Returns ``None`` when no span exists, the span is
    not valid JSON, or it decodes to something other than an object.
    """
    if not text:
        return None
    match = _JSON_OBJECT_SPAN.search(text)
    if match is None:
        return None
    try:
        parsed = json.loads(match.group(0))
    except (json.JSONDecodeError, ValueError):
        logger.debug("LLM reply contained a brace span that is not valid JSON")
        return None
    return parsed if isinstance(parsed, dict) else None


def check_guardrails(content: str) -> GuardrailCheck:
    """Flag phrases that amount to diagnosis, prescription or prognosis."""
    flags: list[str] = []
    phrases: list[str] = []
    content_lower = content.lower()

    for action, patterns in _PROHIBITED_INDICATORS.items():
        for pattern in patterns:
            if pattern in content_lower:
                flags.append(f"prohibited_pattern_detected: {action} ('{pattern}')")
                phrases.append(pattern)

    if flags:
        logger.warning("Guardrail flags on generated insights: %s", flags)

    return GuardrailCheck(passed=not flags, flags=flags, phrases=phrases)


def sanitize_content(content: str, guardrail_check: GuardrailCheck) -> str:
    """Replace each sentence containing a flagged phrase with a redaction note."""
    if guardrail_check.passed:
        return content

    sanitized = content
    for phrase in guardrail_check.phrases:
        pattern = re.compile(
            r"[^.!?\n]*" + re.escape(phrase) + r"[^.!?\n]*[.!?]?",
            re.IGNORECASE,
        )
        sanitized = pattern.sub(REDACTION_NOTE, sanitized)
    return sanitized


def enforce_disclaimer(content: str, disclaimer: str = HEALTH_DISCLAIMER) -> str:
    """Append ``disclaimer`` unless the text already contains it."""
    def _norm(s: str) -> str:
        return " ".join(s.lower().split())

    if _norm(disclaimer) in _norm(content):
        return content
    if not content.strip():
        return disclaimer
    return f"{content.rstrip()}\n\n{disclaimer}"
