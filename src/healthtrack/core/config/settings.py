"""Application settings loaded from environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """healthtrack server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default: there is no auth layer, users are selected by id.
    ht_host: str = "127.0.0.1"
    ht_port: int = 8001
    ht_log_level: str = "info"
    # Binding to a non-loopback host is refused unless this is set true.
    ht_allow_insecure_bind: bool = False

    # Insight LLM
    llm_provider: Literal["anthropic", "openai", "mock"] = "openai"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"

    # Storage (metric store)
    db_path: str = "~/.healthtrack/health.db"

    # Optional Fernet key; when set, blood pressure payloads are encrypted at rest
    encryption_key: str = ""

    # Optional bearer secret guarding the /api/init route
    init_secret: str = ""

    # Timeouts and retries
    db_timeout_seconds: float = 10.0
    db_max_retries: int = 2
    llm_timeout_seconds: float = 20.0
    llm_max_retries: int = 2
    request_deadline_seconds: float = 30.0


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
