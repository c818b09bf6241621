"""Provider factory: returns the right provider instance or falls back to mock."""

from __future__ import annotations

import logging

from app.core.config import get_settings

from .base import BaseProvider, ProviderResult
from .claude import ClaudeProvider
from .groq import GroqProvider
from .mock import MockProvider
from .openai import OpenAIProvider

logger = logging.getLogger(__name__)

__all__ = [
    "get_provider",
    "BaseProvider",
    "ProviderResult",
    "MockProvider",
    "OpenAIProvider",
    "ClaudeProvider",
    "GroqProvider",
]

# provider name -> (settings attribute holding the key, env var name, class)
_KEYED_PROVIDERS: dict[str, tuple[str, str, type[BaseProvider]]] = {
    "openai": ("openai_api_key", "OPENAI_API_KEY", OpenAIProvider),
    "claude": ("anthropic_api_key", "ANTHROPIC_API_KEY", ClaudeProvider),
    "groq": ("groq_api_key", "GROQ_API_KEY", GroqProvider),
}


def get_provider(provider_name: str) -> BaseProvider:
    """Return a provider instance for *provider_name*.

    A provider outside the allowlist, without an API key, or with an unknown
    name resolves to an unconfigured ``MockProvider``. That mock raises on every
    call, which sends the expense agent down its heuristic path.
    """
    settings = get_settings()
    name = (provider_name or "").lower().strip()

    if name not in settings.ai_allowed_providers:
        logger.warning("Provider %r not in allowlist – falling back to mock", name)
        return MockProvider()

    if name == "mock":
        return MockProvider()

    entry = _KEYED_PROVIDERS.get(name)
    if entry is None:
        logger.warning("Unknown provider %r – falling back to mock", name)
        return MockProvider()

    key_attr, env_name, provider_cls = entry
    api_key = getattr(settings, key_attr)
    if not api_key:
        logger.warning("%s not set – falling back to mock", env_name)
        return MockProvider()

    return provider_cls(api_key=api_key)
