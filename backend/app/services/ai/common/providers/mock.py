"""Mock provider: deterministic responses for tests and unconfigured deployments.

Without a canned response the mock behaves like an unreachable model and
raises ``ProviderError``, so callers take their offline path.
"""

from __future__ import annotations

import time

from app.core.errors import ProviderError

from .base import BaseProvider, ProviderResult


class MockProvider(BaseProvider):
    name = "mock"

    def __init__(self, response_text: str | None = None) -> None:
        self.response_text = response_text
        self.calls: list[dict] = []

    async def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        model: str = "",
        temperature: float = 0.3,
        max_tokens: int = 1024,
        timeout_seconds: float = 8.0,
    ) -> ProviderResult:
        self.calls.append(
            {
                "prompt": prompt,
                "system_prompt": system_prompt,
                "model": model,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        if self.response_text is None:
            raise ProviderError("mock provider has no model configured")

        t0 = time.monotonic()
        text = self.response_text
        elapsed = (time.monotonic() - t0) * 1000
        return ProviderResult(
            raw_text=text,
            model=model or "mock-v1",
            provider=self.name,
            prompt_tokens=len(prompt.split()),
            completion_tokens=len(text.split()),
            latency_ms=round(elapsed, 2),
        )
