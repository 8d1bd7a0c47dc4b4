"""OpenAI GPT provider."""

from __future__ import annotations

import time

from healthtrack.core.llm.provider import (
    ProviderConnectionError,
    ProviderError,
    ProviderResponse,
)


class OpenAIProvider:
    """OpenAI provider using the OpenAI SDK.

    SDK-level retries are disabled; retries are driven by the caller's
    RetryPolicy so attempts and backoff are logged in one place.
    """

    name = "openai"

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", timeout: float = 20.0) -> None:
        import openai

        self._openai = openai
        self.client = openai.AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)
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
            response = await self.client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=[
                    {"role": "system", "content": system_message},
                    {"role": "user", "content": user_message},
                ],
            )
        except self._openai.APIConnectionError as exc:
            # APITimeoutError is a subclass
            raise ProviderConnectionError(f"OpenAI unreachable: {exc}") from exc
        except self._openai.APIError as exc:
            raise ProviderError(f"OpenAI request failed: {exc}") from exc
        elapsed_ms = (time.monotonic() - start) * 1000

        choice = response.choices[0] if response.choices else None
        content = (choice.message.content or "") if choice else ""
        usage = response.usage
        return ProviderResponse(
            content=content,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=self.model,
            latency_ms=elapsed_ms,
        )
