"""LLM provider implementations."""

from healthtrack.core.llm.providers.anthropic import AnthropicProvider
from healthtrack.core.llm.providers.mock import MockProvider
from healthtrack.core.llm.providers.openai import OpenAIProvider

__all__ = ["AnthropicProvider", "MockProvider", "OpenAIProvider"]
