"""Abstract base for all AI providers."""

from __future__ import annotations

import abc
from dataclasses import dataclass

import httpx

from app.core.errors import ProviderError


@dataclass(frozen=True)
class ProviderResult:
    """Immutable result returned by every provider."""

    raw_text: str
    model: str
    provider: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    latency_ms: float = 0.0


class BaseProvider(abc.ABC):
    """Contract that every AI provider must implement.

    ``generate`` is a single round trip with no retries. Any transport error,
    timeout, non-2xx status or empty completion is raised as ``ProviderError``.
    """

    name: str = "base"

    @abc.abstractmethod
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
        """Send *prompt* and return a ``ProviderResult``."""

    async def _post_json(
        self,
        url: str,
        *,
        headers: dict[str, str],
        payload: dict,
        timeout_seconds: float,
    ) -> dict:
        try:
            async with httpx.AsyncClient(timeout=timeout_seconds) as client:
                resp = await client.post(url, headers=headers, json=payload)
                resp.raise_for_status()
                return resp.json()
        except httpx.TimeoutException as exc:
            raise ProviderError(f"{self.name} request timed out after {timeout_seconds}s") from exc
        except httpx.HTTPStatusError as exc:
            raise ProviderError(f"{self.name} returned HTTP {exc.response.status_code}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise ProviderError(f"{self.name} request failed: {exc}") from exc


def require_text(provider: str, text: object) -> str:
    if not isinstance(text, str) or not text.strip():
        raise ProviderError(f"No response generated from {provider}")
    return text
