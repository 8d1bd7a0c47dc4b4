"""Tests for the error taxonomy and the rendered error payload."""

from __future__ import annotations

import pytest

from healthtrack.core.errors import (
    ConflictError,
    HealthTrackError,
    NotFoundError,
    TransientError,
    UnauthorizedError,
    ValidationError,
    error_category,
    error_payload,
    error_status,
)


class TestCategories:
    @pytest.mark.parametrize(
        "exc, category, status",
        [
            (ValidationError("bad"), "validation", 400),
            (NotFoundError("missing"), "not_found", 404),
            (ConflictError("dup"), "conflict", 409),
            (UnauthorizedError("no"), "unauthorized", 401),
            (TransientError("later"), "transient", 503),
            (HealthTrackError("base"), "internal", 500),
            (RuntimeError("boom"), "internal", 500),
        ],
    )
    def test_category_and_status(self, exc, category, status):
        assert error_category(exc) == category
        assert error_status(exc) == status


class TestPayload:
    def test_shape(self):
        payload = error_payload(ValidationError("Name is required"))
        assert set(payload) == {"status", "error", "category", "timestamp"}
        assert payload["status"] == "error"
        assert payload["error"] == "Name is required"
        assert payload["category"] == "validation"

    def test_unexpected_error_does_not_leak_message(self):
        payload = error_payload(KeyError("secret internals"))
        assert payload["error"] == "Internal server error"
        assert "secret" not in payload["error"]
        assert payload["category"] == "internal"

    def test_empty_message_falls_back_to_category(self):
        assert error_payload(NotFoundError())["error"] == "not_found"
