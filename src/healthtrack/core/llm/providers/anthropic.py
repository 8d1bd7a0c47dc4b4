"""Anthropic Claude provider."""

from __future__ import annotations

import time

from healthtrack.core.llm.provider import (
    ProviderConnectionError,
    ProviderError,
    ProviderResponse,
)


class AnthropicProvider:
    """Claude provider using the Anthropic SDK (SDK retries disabled)."""

    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        timeout: float = 20.0,
    ) -> None:
        import anthropic

        self._anthropic = anthropic
        self.client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)
        self.model = model

    async def generate(
        self,
        system_message: str,
        user_message: str,
        max_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> ProviderResponse:
        start = time.monotonic()
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system_message,
                messages=[{"role": "user", "content": user_message}],
            )
        except self._anthropic.APIConnectionError as exc:
            raise ProviderConnectionError(f"Anthropic unreachable: {exc}") from exc
        except self._anthropic.APIError as exc:
            raise ProviderError(f"Anthropic request failed: {exc}") from exc
        elapsed_ms = (time.monotonic() - start) * 1000

        text_blocks = [block.text for block in response.content if getattr(block, "type", "") == "text"]
        return ProviderResponse(
            content="".join(text_blocks),
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=self.model,
            latency_ms=elapsed_ms,
        )
