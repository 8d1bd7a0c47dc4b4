"""Mock LLM provider for testing and key-less development."""

from __future__ import annotations

import json

from healthtrack.core.llm.provider import ProviderResponse

_DEFAULT_RESPONSE = json.dumps({
    "insights": "Your readings look steady over the last 30 days.",
    "recommendations": [
        "Keep logging measurements at the same time each day.",
        "Aim for consistent sleep and hydration.",
        "Review your trends with a healthcare provider at your next visit.",
    ],
    "anomalies": [],
})


class MockProvider:
    """Returns a canned response and records what it was asked.

    ``errors`` are raised, in order, by the first calls before the canned
    response is returned. Useful for exercising retry behaviour.
    """

    name = "mock"

    def __init__(
        self,
        response_content: str = _DEFAULT_RESPONSE,
        errors: list[Exception] | None = None,
    ) -> None:
        self.response_content = response_content
        self.errors = list(errors or [])
        self.last_system_message: str = ""
        self.last_user_message: str = ""
        self.call_count: int = 0

    async def generate(
        self,
        system_message: str,
        user_message: str,
        max_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> ProviderResponse:
        self.last_system_message = system_message
        self.last_user_message = user_message
        self.call_count += 1
        if self.errors:
            raise self.errors.pop(0)
        return ProviderResponse(
            content=self.response_content,
            input_tokens=len(system_message.split()) + len(user_message.split()),
            output_tokens=len(self.response_content.split()),
            model="mock",
            latency_ms=0.0,
        )
