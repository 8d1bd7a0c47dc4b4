"""Inner LLM client: the bridge between the insight composer and a provider."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from healthtrack.core.llm.provider import LLMProvider, ProviderResponse
from healthtrack.core.llm.system_prompt import build_full_system_prompt
from healthtrack.core.resilience.retry import RetryPolicy, aexecute_with_policy

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Raw text returned by the provider plus call accounting."""

    content: str
    provider: str
    model: str
    usage: dict[str, int] = field(default_factory=dict)
    latency_ms: float = 0.0


class InnerLLMClient:
    """Invokes the provider with a timeout per attempt and retries on transient failure."""

    def __init__(
        self,
        provider: LLMProvider,
        *,
        timeout: float | None = 20.0,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.provider = provider
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()

    @property
    def provider_name(self) -> str:
        return getattr(self.provider, "name", type(self.provider).__name__)

    async def invoke(
        self,
        user_message: str,
        *,
        instructions: str = "",
        max_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> LLMResponse:
        """Call the provider once per attempt until it answers or retries run out.

        Raises:
            TransientError: The provider kept timing out or was unreachable.
            ProviderError: The provider rejected the request outright.
        """
        full_system = build_full_system_prompt(instructions)

        async def _attempt() -> ProviderResponse:
            return await self.provider.generate(
                system_message=full_system,
                user_message=user_message,
                max_tokens=max_tokens,
                temperature=temperature,
            )

        provider_response = await aexecute_with_policy(
            _attempt,
            self.retry_policy,
            timeout=self.timeout,
            label=f"llm:{self.provider_name}",
        )

        logger.info(
            "Inner LLM call: provider=%s, model=%s, tokens=%d+%d, latency=%.0fms",
            self.provider_name,
            provider_response.model,
            provider_response.input_tokens,
            provider_response.output_tokens,
            provider_response.latency_ms,
        )

        return LLMResponse(
            content=provider_response.content,
            provider=self.provider_name,
            model=provider_response.model,
            usage={
                "input_tokens": provider_response.input_tokens,
                "output_tokens": provider_response.output_tokens,
            },
            latency_ms=provider_response.latency_ms,
        )
