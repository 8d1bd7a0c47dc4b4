"""Tests for the audit summary shown by the audit_summary tool."""

from __future__ import annotations

from healthtrack.domains.health.tools.audit_tools import build_audit_summary


class TestAuditSummary:
    def test_counts_and_recent_events(self, audit_logger):
        audit_logger.log_operation("create_user", {"name": "Ada"}, metadata={"surface": "http"})
        audit_logger.log_operation(
            "generate_insights", user_id=1, llm_provider="openai", llm_disclosed=True
        )
        audit_logger.log_operation("record_metric", status="failure", error_type="ValidationError")

        summary = build_audit_summary(audit_logger, 7)
        assert summary["period_days"] == 7
        assert summary["total_events"] == 3
        assert summary["failures"] == 1
        assert summary["llm_disclosures"] == 1
        by_op = {e["operation"]: e for e in summary["recent_events"]}
        assert by_op["create_user"]["surface"] == "http"
        assert by_op["generate_insights"]["llm_disclosed"] is True
        assert by_op["record_metric"]["surface"] is None

    def test_operation_filter(self, audit_logger):
        audit_logger.log_operation("list_users")
        audit_logger.log_operation("export_report", action="data_export")
        summary = build_audit_summary(audit_logger, 30, "export_report")
        assert summary["total_events"] == 1
        assert [e["operation"] for e in summary["recent_events"]] == ["export_report"]

    def test_window_outside_allow_list(self, audit_logger):
        assert build_audit_summary(audit_logger, 12)["period_days"] == 30

    def test_no_readings_in_events(self, audit_logger):
        audit_logger.log_operation("record_metric", {"value": 180})
        [event] = build_audit_summary(audit_logger)["recent_events"]
        assert "value" not in event
        assert "input_hash" not in event
