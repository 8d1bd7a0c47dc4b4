"""LLM provider protocol: the interface insight generation calls go through."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass
class ProviderResponse:
    """Response from an LLM provider."""

    content: str
    input_tokens: int
    output_tokens: int
    model: str
    latency_ms: float


class ProviderError(Exception):
    """The provider rejected the request (bad key, bad request, quota...)."""


class ProviderConnectionError(ConnectionError):
    """The provider could not be reached or did not answer in time. Retryable."""


@runtime_checkable
class LLMProvider(Protocol):
    """Abstract interface for text generation."""

    name: str

    async def generate(
        self,
        system_message: str,
        user_message: str,
        max_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> ProviderResponse: ...


def create_provider(
    provider_name: str,
    api_key: str = "",
    model: str = "",
    timeout: float = 20.0,
) -> LLMProvider:
    """Factory function to create an LLM provider by name.

    Args:
        provider_name: "anthropic", "openai", or "mock"
        api_key: API key for the provider.
        model: Model identifier override.
        timeout: Per-request HTTP timeout handed to the SDK client.
    """
    if provider_name == "anthropic":
        from healthtrack.core.llm.providers.anthropic import AnthropicProvider

        return AnthropicProvider(
            api_key=api_key, model=model or "claude-sonnet-4-20250514", timeout=timeout
        )
    elif provider_name == "openai":
        from healthtrack.core.llm.providers.openai import OpenAIProvider

        return OpenAIProvider(api_key=api_key, model=model or "gpt-4o-mini", timeout=timeout)
    elif provider_name == "mock":
        from healthtrack.core.llm.providers.mock import MockProvider

        return MockProvider()
    else:
        raise ValueError(f"Unknown LLM provider: {provider_name}")
