"""Anthropic / Claude provider."""

from __future__ import annotations

import logging
import time

from app.core.errors import ProviderError

from .base import BaseProvider, ProviderResult, require_text

logger = logging.getLogger(__name__)


class ClaudeProvider(BaseProvider):
    name = "claude"

    def __init__(self, api_key: str) -> None:
        self._api_key = api_key

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
        model = model or "claude-3-5-haiku-20241022"
        t0 = time.monotonic()

        payload: dict = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            payload["system"] = system_prompt

        data = await self._post_json(
            "https://api.anthropic.com/v1/messages",
            headers={
                "x-api-key": self._api_key,
                "anthropic-version": "2023-06-01",
                "content-type": "application/json",
            },
            payload=payload,
            timeout_seconds=timeout_seconds,
        )

        elapsed = (time.monotonic() - t0) * 1000
        blocks = data.get("content") or []
        if not blocks:
            raise ProviderError("Claude response has no content blocks")
        text = "".join(
            block.get("text", "") for block in blocks if isinstance(block, dict) and block.get("type", "text") == "text"
        )
        usage = data.get("usage") or {}

        return ProviderResult(
            raw_text=require_text(self.name, text),
            model=model,
            provider=self.name,
            prompt_tokens=usage.get("input_tokens", 0),
            completion_tokens=usage.get("output_tokens", 0),
            latency_ms=round(elapsed, 2),
        )
