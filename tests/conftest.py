"""Shared test fixtures for HealthTrack tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LLM_PROVIDER", "mock")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "")
    monkeypatch.setenv("OPENAI_API_KEY", "")
    monkeypatch.setenv("DB_PATH", ":memory:")
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("INIT_SECRET", "")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from healthtrack.core.resilience.retry import RetryPolicy  # noqa: E402
from healthtrack.core.storage.models import BloodPressureData, HealthMetric  # noqa: E402

# Retries without real sleeping
FAST_RETRY = RetryPolicy(max_attempts=3, base_delay=0.0)


def make_metric(
    value: float,
    *,
    metric_type: str = "Weight",
    day: int = 1,
    id: int | None = None,
    unit: str | None = "lbs",
    composite: BloodPressureData | None = None,
    user_id: int = 1,
) -> HealthMetric:
    """Build an in-memory metric row observed at noon UTC on 2026-01-<day>."""
    return HealthMetric(
        id=id if id is not None else day,
        user_id=user_id,
        metric_type=metric_type,
        value=value,
        unit=unit,
        composite_data=composite,
        timestamp=f"2026-01-{day:02d}T12:00:00.000000+00:00",
    )


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def health_db():
    """Create an in-memory HealthDatabase for testing."""
    from healthtrack.core.storage.database import HealthDatabase

    db = HealthDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def field_encryptor():
    """Create a FieldEncryptor with a test key."""
    from cryptography.fernet import Fernet

    from healthtrack.core.storage.encryption import FieldEncryptor

    return FieldEncryptor(Fernet.generate_key().decode())


@pytest.fixture
def health_repository(health_db, field_encryptor):
    """Create a HealthRepository backed by in-memory SQLite."""
    from healthtrack.core.storage.repository import HealthRepository

    return HealthRepository(health_db, field_encryptor)


@pytest.fixture
def audit_logger(health_db):
    """Create an AuditLogger backed by in-memory SQLite."""
    from healthtrack.core.audit.logger import AuditLogger

    return AuditLogger(health_db)


# ---------------------------------------------------------------------------
# LLM and service fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_provider():
    from healthtrack.core.llm.providers.mock import MockProvider

    return MockProvider()


@pytest.fixture
def llm_client(mock_provider):
    from healthtrack.core.llm.client import InnerLLMClient

    return InnerLLMClient(mock_provider, timeout=5.0, retry_policy=FAST_RETRY)


@pytest.fixture
def composer(llm_client):
    from healthtrack.domains.health.domain_logic.insights import InsightComposer

    return InsightComposer(llm_client)


@pytest.fixture
def health_service(health_db, health_repository, composer, audit_logger):
    from healthtrack.domains.health.service import HealthService

    return HealthService(
        health_db,
        health_repository,
        composer,
        audit_logger,
        store_retry_policy=FAST_RETRY,
        request_deadline=10.0,
    )
