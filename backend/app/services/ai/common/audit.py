"""AI run log: records prompt / response metadata for every model call."""

from __future__ import annotations

import hashlib
import logging
from typing import Any

from app.core.config import get_settings

from .providers.base import ProviderResult

logger = logging.getLogger(__name__)


def build_run_metadata(
    *,
    scope: str,
    provider_result: ProviderResult,
    prompt_text: str,
    extra_meta: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the metadata dict for one model call.

    Prompt and response text are hashed; raw text is only included when
    ``AI_DEBUG_STORE_RAW=true`` because user messages carry personal spending data.
    """
    settings = get_settings()

    metadata: dict[str, Any] = {
        "scope": scope,
        "provider": provider_result.provider,
        "model": provider_result.model,
        "prompt_tokens": provider_result.prompt_tokens,
        "completion_tokens": provider_result.completion_tokens,
        "latency_ms": provider_result.latency_ms,
        "prompt_hash": hashlib.sha256(prompt_text.encode()).hexdigest(),
        "response_hash": hashlib.sha256(provider_result.raw_text.encode()).hexdigest(),
    }

    if settings.ai_debug_store_raw:
        metadata["prompt_raw"] = prompt_text
        metadata["response_raw"] = provider_result.raw_text

    if extra_meta:
        metadata.update(extra_meta)
    return metadata


def log_ai_run(
    *,
    scope: str,
    provider_result: ProviderResult,
    prompt_text: str,
    extra_meta: dict[str, Any] | None = None,
) -> dict[str, Any]:
    metadata = build_run_metadata(
        scope=scope,
        provider_result=provider_result,
        prompt_text=prompt_text,
        extra_meta=extra_meta,
    )
    logger.info(
        "AI run scope=%s provider=%s model=%s latency_ms=%.2f tokens=%d/%d",
        scope,
        provider_result.provider,
        provider_result.model,
        provider_result.latency_ms,
        provider_result.prompt_tokens,
        provider_result.completion_tokens,
        extra={"extra_data": metadata},
    )
    return metadata
