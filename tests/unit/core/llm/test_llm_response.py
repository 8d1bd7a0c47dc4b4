"""Tests for best-effort JSON extraction and output guardrails."""

from __future__ import annotations

from healthtrack.core.llm.response import (
    HEALTH_DISCLAIMER,
    REDACTION_NOTE,
    check_guardrails,
    enforce_disclaimer,
    extract_json_object,
    sanitize_content,
)


class TestExtractJsonObject:
    def test_plain_object(self):
        assert extract_json_object('{"insights": "ok"}') == {"insights": "ok"}

    def test_object_inside_prose_and_fences(self):
        text = 'Sure! Here you go:\n```json\n{"insights": "steady", "anomalies": []}\n```\nThanks'
        assert extract_json_object(text) == {"insights": "steady", "anomalies": []}

    def test_nested_braces_are_kept(self):
        text = 'x {"insights": "a", "meta": {"n": 1}} y'
        assert extract_json_object(text) == {"insights": "a", "meta": {"n": 1}}

    def test_greedy_span_across_two_objects_fails_softly(self):
        # First "{" to last "}" spans both objects, which is not valid JSON.
        assert extract_json_object('{"a": 1} and {"b": 2}') is None

    def test_no_braces(self):
        assert extract_json_object("Your weight looks stable.") is None

    def test_invalid_json(self):
        assert extract_json_object("{insights: not quoted}") is None

    def test_empty(self):
        assert extract_json_object("") is None


class TestGuardrails:
    def test_clean_text_passes(self):
        check = check_guardrails("Your step count rose this month. Keep it up.")
        assert check.passed
        assert check.flags == []

    def test_diagnosis_flagged(self):
        check = check_guardrails("Based on this, you are suffering from hypertension.")
        assert not check.passed
        assert "you are suffering from" in check.phrases

    def test_sanitize_redacts_only_offending_sentence(self):
        text = "Sleep is consistent. Take this medication daily. Drink more water."
        check = check_guardrails(text)
        cleaned = sanitize_content(text, check)
        assert "medication" not in cleaned
        assert REDACTION_NOTE in cleaned
        assert "Sleep is consistent." in cleaned
        assert "Drink more water." in cleaned

    def test_sanitize_noop_when_passed(self):
        text = "All good."
        assert sanitize_content(text, check_guardrails(text)) == text


class TestDisclaimer:
    def test_appended(self):
        result = enforce_disclaimer("Your readings are steady.")
        assert result.startswith("Your readings are steady.")
        assert result.endswith(HEALTH_DISCLAIMER)

    def test_not_duplicated(self):
        once = enforce_disclaimer("Steady.")
        assert enforce_disclaimer(once) == once

    def test_empty_content_becomes_disclaimer(self):
        assert enforce_disclaimer("   ") == HEALTH_DISCLAIMER
