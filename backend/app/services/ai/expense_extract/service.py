"""Expense extraction agent: model path with heuristic fallback.

The agent never reports a model failure to its caller. A provider error, a
timeout, a non-JSON reply or a reply without an ``expenses`` list all route to
``extract_heuristic``. Only empty input and unexpected orchestration errors
produce ``success=False``.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
import time
import uuid
from datetime import datetime, timezone
from typing import Any

from app.core.config import get_settings
from app.core.errors import ParseError, ValidationError
from app.services.expense_categories import CategoryVocabulary, default_vocabulary

from ..common import router as ai_router
from ..common.audit import log_ai_run
from ..common.json_tools import parse_json_object
from ..common.providers.base import BaseProvider
from .contracts import (
    DEFAULT_MODEL_CONFIDENCE,
    ExpenseCandidate,
    ExtractionRequest,
    ExtractionResult,
)
from .heuristic import extract_heuristic
from .scoring import score_confidence, summarize

logger = logging.getLogger(__name__)

SCOPE = "expense_extract"

EXPENSE_EXTRACT_SYSTEM_PROMPT = (
    "Você é um especialista em análise financeira. Extraia gastos de textos e "
    "retorne APENAS JSON válido, sem explicações adicionais."
)

CATEGORY_EXAMPLES = (
    ('"almoço", "jantar", "comida", "restaurante"', "alimentação"),
    ('"uber", "taxi", "ônibus", "gasolina"', "transporte"),
    ('"médico", "farmácia", "remédio"', "saúde"),
    ('"supermercado", "mercado"', "supermercado"),
)

_LEADING_NUMBER_RE = re.compile(r"^[-+]?\d+(?:[.,]\d+)?")


def build_prompt(text: str, language: str, vocabulary: CategoryVocabulary) -> str:
    """Deterministic instruction prompt for one message."""
    examples = "\n".join(f"- {words} → {category}" for words, category in CATEGORY_EXAMPLES)
    return (
        "Analise o seguinte texto e extraia todas as informações de gastos/despesas encontradas.\n\n"
        "IMPORTANTE: Retorne APENAS um JSON válido, sem texto adicional, seguindo EXATAMENTE este formato:\n"
        "{\n"
        '  "expenses": [\n'
        "    {\n"
        '      "description": "descrição clara do gasto",\n'
        '      "amount": valor_numerico_sem_simbolos,\n'
        '      "category": "categoria_do_gasto",\n'
        '      "currency": "BRL",\n'
        '      "confidence": 0.9\n'
        "    }\n"
        "  ]\n"
        "}\n\n"
        f"Categorias disponíveis: {', '.join(vocabulary.labels)}\n\n"
        f"Exemplos de categorização:\n{examples}\n\n"
        f'Texto para análise: "{text}"\n\n'
        f"Idioma: {language}"
    )


def _coerce_amount(value: Any) -> float:
    """Numeric parse of a model-supplied amount; 0 when unparsable."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        try:
            amount = float(value)
        except OverflowError:
            return 0.0
    else:
        match = _LEADING_NUMBER_RE.match(str(value).strip())
        if not match:
            return 0.0
        amount = float(match.group(0).replace(",", "."))
    return amount if math.isfinite(amount) else 0.0


def _coerce_confidence(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return DEFAULT_MODEL_CONFIDENCE
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return DEFAULT_MODEL_CONFIDENCE
    if math.isnan(confidence):
        return DEFAULT_MODEL_CONFIDENCE
    return min(max(confidence, 0.0), 1.0)


def coerce_candidates(
    parsed: dict[str, Any],
    *,
    vocabulary: CategoryVocabulary,
    default_currency: str,
) -> list[ExpenseCandidate]:
    """Turn the parsed model reply into candidates.

    Lenient by intent: a missing category becomes the vocabulary default and a
    missing currency the default currency. Only unusable amounts drop an item.
    Categories are not checked against the vocabulary here.
    """
    expenses = parsed.get("expenses")
    if not isinstance(expenses, list):
        raise ParseError("Model reply has no 'expenses' array")

    candidates: list[ExpenseCandidate] = []
    for item in expenses:
        if not isinstance(item, dict):
            logger.debug("Skipping non-object expense entry: %r", item)
            continue
        amount = _coerce_amount(item.get("amount"))
        if amount <= 0:
            logger.debug("Skipping expense with non-positive amount: %r", item.get("amount"))
            continue
        candidates.append(
            ExpenseCandidate(
                description=str(item.get("description") or ""),
                amount=amount,
                category=str(item.get("category") or "").strip() or vocabulary.default,
                currency=str(item.get("currency") or "").strip() or default_currency,
                confidence=_coerce_confidence(item.get("confidence")),
            )
        )
    return candidates


class ExpenseExtractionAgent:
    """Long-lived extraction component; holds configuration only."""

    def __init__(
        self,
        provider: BaseProvider,
        *,
        vocabulary: CategoryVocabulary = default_vocabulary,
        model: str = "",
        temperature: float = 0.1,
        max_tokens: int = 1000,
        timeout_seconds: float = 8.0,
        call_timeout_seconds: float | None = None,
        default_currency: str = "BRL",
    ) -> None:
        self.provider = provider
        self.vocabulary = vocabulary
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds
        self.call_timeout_seconds = call_timeout_seconds or None
        self.default_currency = default_currency

    @classmethod
    def from_settings(
        cls,
        *,
        override_provider: str | None = None,
        override_model: str | None = None,
    ) -> "ExpenseExtractionAgent":
        settings = get_settings()
        config = ai_router.resolve(
            override_provider=override_provider,
            override_model=override_model,
        )
        return cls(
            config.provider,
            model=config.model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout_seconds=config.timeout_seconds,
            call_timeout_seconds=settings.ai_expense_call_timeout_seconds,
            default_currency=settings.default_currency,
        )

    async def run(self, request: ExtractionRequest) -> ExtractionResult:
        return await self.extract(request.text, request.language)

    async def extract(self, text: str, language: str = "portuguese") -> ExtractionResult:
        session_id = uuid.uuid4().hex
        t0 = time.monotonic()

        if not text or not text.strip():
            error = ValidationError("Text input is required and cannot be empty")
            return ExtractionResult.failure(
                error_kind=type(error).__name__,
                error_message=str(error),
                session_id=session_id,
            )

        try:
            logger.info("Extracting expenses session=%s text_length=%d", session_id, len(text))
            candidates, source = await self._extract_candidates(text, language or "portuguese")
            summary = summarize(candidates)
            result = ExtractionResult(
                success=True,
                candidates=candidates,
                summary=summary,
                confidence=score_confidence(candidates),
                extracted_at=datetime.now(timezone.utc),
                source=source,
                session_id=session_id,
                processing_time_ms=round((time.monotonic() - t0) * 1000, 2),
            )
        except Exception as exc:
            logger.exception("Expense extraction failed session=%s", session_id)
            return ExtractionResult.failure(
                error_kind=type(exc).__name__,
                error_message=str(exc) or "Unknown error",
                session_id=session_id,
            )

        logger.info(
            "Extraction done session=%s source=%s expenses=%d total=%.2f categories=%s",
            session_id,
            source,
            summary.total_expenses,
            summary.total_amount,
            ", ".join(summary.categories),
        )
        return result

    async def _extract_candidates(self, text: str, language: str) -> tuple[list[ExpenseCandidate], str]:
        prompt = build_prompt(text, language, self.vocabulary)
        try:
            candidates = await self._extract_with_model(prompt)
        except Exception as exc:
            logger.warning(
                "Model extraction failed (%s: %s), using heuristic extraction",
                type(exc).__name__,
                exc,
            )
            return extract_heuristic(text, currency=self.default_currency), "heuristic"

        logger.info("Model extracted %d expenses", len(candidates))
        return candidates, "model"

    async def _extract_with_model(self, prompt: str) -> list[ExpenseCandidate]:
        call = self.provider.generate(
            prompt,
            system_prompt=EXPENSE_EXTRACT_SYSTEM_PROMPT,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            timeout_seconds=self.timeout_seconds,
        )
        if self.call_timeout_seconds:
            result = await asyncio.wait_for(call, timeout=self.call_timeout_seconds)
        else:
            result = await call

        log_ai_run(scope=SCOPE, provider_result=result, prompt_text=prompt)
        parsed = parse_json_object(result.raw_text)
        return coerce_candidates(
            parsed,
            vocabulary=self.vocabulary,
            default_currency=self.default_currency,
        )
