"""Aggregate confidence and summary over a candidate list."""

from __future__ import annotations

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

from .contracts import ExpenseCandidate, ExtractionSummary


def score_confidence(candidates: Sequence[ExpenseCandidate]) -> float:
    """Mean candidate confidence rounded to two decimals; 0 for no candidates."""
    if not candidates:
        return 0.0
    total = sum((Decimal(str(c.confidence)) for c in candidates), Decimal("0"))
    mean = total / len(candidates)
    return float(mean.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def summarize(candidates: Sequence[ExpenseCandidate]) -> ExtractionSummary:
    total = sum((Decimal(str(c.amount)) for c in candidates), Decimal("0"))
    categories: list[str] = []
    for candidate in candidates:
        if candidate.category not in categories:
            categories.append(candidate.category)
    return ExtractionSummary(
        total_expenses=len(candidates),
        total_amount=float(total),
        categories=categories,
    )
