"""Tests for the InnerLLMClient and provider factory."""

from __future__ import annotations

import asyncio

import pytest

from healthtrack.core.errors import TransientError
from healthtrack.core.llm.client import InnerLLMClient
from healthtrack.core.llm.provider import (
    LLMProvider,
    ProviderConnectionError,
    ProviderError,
    ProviderResponse,
    create_provider,
)
from healthtrack.core.llm.providers.mock import MockProvider
from healthtrack.core.llm.system_prompt import HEALTH_INSIGHTS_SYSTEM_PROMPT
from healthtrack.core.resilience.retry import RetryPolicy

FAST_RETRY = RetryPolicy(max_attempts=3, base_delay=0.0)


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class _SlowProvider:
    name = "slow"

    def __init__(self) -> None:
        self.calls = 0

    async def generate(self, system_message, user_message, max_tokens=1024, temperature=0.3):
        self.calls += 1
        await asyncio.sleep(1.0)
        return ProviderResponse("late", 0, 0, "slow", 1000.0)


class TestInvoke:
    def test_returns_provider_content(self):
        provider = MockProvider(response_content='{"insights": "hi"}')
        client = InnerLLMClient(provider, retry_policy=FAST_RETRY)
        response = _run(client.invoke("Weight: 180 lbs (2026-01-01)"))
        assert response.content == '{"insights": "hi"}'
        assert response.provider == "mock"
        assert response.model == "mock"
        assert set(response.usage) == {"input_tokens", "output_tokens"}

    def test_system_prompt_includes_instructions(self):
        provider = MockProvider()
        client = InnerLLMClient(provider, retry_policy=FAST_RETRY)
        _run(client.invoke("data", instructions="Reply in JSON."))
        assert provider.last_system_message.startswith(HEALTH_INSIGHTS_SYSTEM_PROMPT)
        assert provider.last_system_message.endswith("Reply in JSON.")
        assert provider.last_user_message == "data"

    def test_retries_connection_errors(self):
        provider = MockProvider(errors=[ProviderConnectionError("reset")])
        client = InnerLLMClient(provider, retry_policy=FAST_RETRY)
        _run(client.invoke("data"))
        assert provider.call_count == 2

    def test_exhausted_retries_raise_transient(self):
        provider = MockProvider(errors=[ProviderConnectionError("down")] * 3)
        client = InnerLLMClient(provider, retry_policy=FAST_RETRY)
        with pytest.raises(TransientError):
            _run(client.invoke("data"))
        assert provider.call_count == 3

    def test_rejected_request_not_retried(self):
        provider = MockProvider(errors=[ProviderError("bad key")])
        client = InnerLLMClient(provider, retry_policy=FAST_RETRY)
        with pytest.raises(ProviderError):
            _run(client.invoke("data"))
        assert provider.call_count == 1

    def test_timeout_per_attempt(self):
        provider = _SlowProvider()
        client = InnerLLMClient(
            provider, timeout=0.01, retry_policy=RetryPolicy(max_attempts=2, base_delay=0.0)
        )
        with pytest.raises(TransientError):
            _run(client.invoke("data"))
        assert provider.calls == 2


class TestCreateProvider:
    def test_mock(self):
        provider = create_provider("mock")
        assert isinstance(provider, MockProvider)
        assert isinstance(provider, LLMProvider)

    def test_openai(self):
        provider = create_provider("openai", api_key="sk-test", timeout=5.0)
        assert provider.name == "openai"
        assert provider.model == "gpt-4o-mini"

    def test_anthropic_model_override(self):
        provider = create_provider("anthropic", api_key="sk-ant-test", model="claude-x")
        assert provider.name == "anthropic"
        assert provider.model == "claude-x"

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown LLM provider"):
            create_provider("llama")
