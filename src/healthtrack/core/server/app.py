"""HealthTrack MCP server: application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from healthtrack.core.audit.logger import AuditLogger
from healthtrack.core.config.settings import Settings, get_settings
from healthtrack.core.llm.client import InnerLLMClient
from healthtrack.core.llm.provider import LLMProvider, create_provider
from healthtrack.core.resilience.retry import RetryPolicy
from healthtrack.core.storage.database import HealthDatabase
from healthtrack.core.storage.encryption import FieldEncryptor
from healthtrack.core.storage.repository import HealthRepository
from healthtrack.domains.health.domain_logic.insights import InsightComposer
from healthtrack.domains.health.prompts.health_prompts import register_health_prompts
from healthtrack.domains.health.resources.metric_catalog import (
    register_metric_catalog_resources,
)
from healthtrack.domains.health.routes.api_routes import register_api_routes
from healthtrack.domains.health.service import HealthService
from healthtrack.domains.health.tools.audit_tools import register_audit_tools
from healthtrack.domains.health.tools.health_tools import register_health_tools

logger = logging.getLogger(__name__)


def _select_provider(settings: Settings) -> LLMProvider:
    """Build the configured provider, falling back to mock without an API key."""
    if settings.llm_provider == "mock":
        provider_name = "mock"
        api_key = ""
        model = ""
    elif settings.llm_provider == "anthropic":
        api_key = settings.anthropic_api_key
        model = settings.anthropic_model
        provider_name = "anthropic" if api_key else "mock"
    elif settings.llm_provider == "openai":
        api_key = settings.openai_api_key
        model = settings.openai_model
        provider_name = "openai" if api_key else "mock"
    else:  # pragma: no cover
        raise ValueError(f"Unknown LLM provider: {settings.llm_provider!r}")

    if provider_name == "mock" and settings.llm_provider != "mock":
        logger.warning(
            "No API key configured for provider '%s'; falling back to mock provider",
            settings.llm_provider,
        )

    return create_provider(
        provider_name=provider_name,
        api_key=api_key,
        model=model,
        timeout=settings.llm_timeout_seconds,
    )


def create_app(
    *,
    database_override: HealthDatabase | None = None,
    provider_override: LLMProvider | None = None,
    settings_override: Settings | None = None,
) -> FastMCP:
    """Create and configure the HealthTrack MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Opens the metric store (optionally encrypting blood pressure payloads)
    3. Creates the inner LLM client and insight composer
    4. Wires the shared service layer with retry policies and auditing
    5. Registers tools, HTTP routes, resources, and prompts
    """
    settings = settings_override or get_settings()

    # --- Server instance ---
    server = FastMCP(
        "HealthTrack",
        instructions=(
            "Personal health metrics tracker. Record blood pressure, weight, "
            "steps, heart rate, sleep, water, exercise and mood readings per "
            "user; view trend analytics and 7-day projections; export reports; "
            "and get plain-language AI insights."
        ),
    )

    # --- Metric store ---
    if database_override is not None:
        database = database_override
    else:
        database = HealthDatabase(settings.db_path, timeout=settings.db_timeout_seconds)
    database.initialize()

    encryptor = FieldEncryptor(settings.encryption_key) if settings.encryption_key else None
    repository = HealthRepository(database, encryptor)
    audit_logger = AuditLogger(database)
    logger.info(
        "Metric store ready: %s (schema v%d, payload encryption %s)",
        database.path,
        database.get_schema_version(),
        "on" if encryptor is not None else "off",
    )

    # --- Inner LLM ---
    provider = provider_override if provider_override is not None else _select_provider(settings)
    llm_client = InnerLLMClient(
        provider,
        timeout=settings.llm_timeout_seconds,
        retry_policy=RetryPolicy(max_attempts=settings.llm_max_retries + 1),
    )
    composer = InsightComposer(llm_client)

    service = HealthService(
        database,
        repository,
        composer,
        audit_logger,
        store_retry_policy=RetryPolicy(max_attempts=settings.db_max_retries + 1),
        request_deadline=settings.request_deadline_seconds,
    )

    # --- Register tools ---
    @server.tool
    async def health_check() -> dict:
        """Check server health and return basic status information."""
        return await service.health_status()

    register_health_tools(server, service)
    register_audit_tools(server, audit_logger)
    logger.info("Health tracker tools registered")

    # --- Register HTTP routes ---
    register_api_routes(server, service, init_secret=settings.init_secret)

    # --- Register resources ---
    register_metric_catalog_resources(server)

    # --- Register prompts ---
    register_health_prompts(server)

    return server


# Module-level instance for FastMCP discovery ("server": "...app.py:mcp").
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
