"""Expense extract scope contracts: candidates, summary and the agent result."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

DEFAULT_MODEL_CONFIDENCE = 0.8
HEURISTIC_CONFIDENCE = 0.4


class ExtractionRequest(BaseModel):
    text: str
    language: str = "portuguese"


class ExpenseCandidate(BaseModel):
    """An extracted expense; ``category`` is still free text at this point."""

    description: str = ""
    amount: float = Field(..., gt=0)
    category: str
    currency: str
    confidence: float

    @field_validator("confidence")
    @classmethod
    def confidence_range(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            msg = f"Confidence must be 0.0-1.0, got {v}"
            raise ValueError(msg)
        return v


class ExtractionSummary(BaseModel):
    total_expenses: int = 0
    total_amount: float = 0.0
    categories: list[str] = []


class ExtractionResult(BaseModel):
    success: bool
    candidates: list[ExpenseCandidate] = []
    summary: ExtractionSummary = ExtractionSummary()
    confidence: float = 0.0
    extracted_at: datetime | None = None
    source: Literal["model", "heuristic"] | None = None
    session_id: str = ""
    processing_time_ms: float = 0.0
    error_kind: str | None = None
    error_message: str | None = None

    @classmethod
    def failure(cls, *, error_kind: str, error_message: str, session_id: str = "") -> "ExtractionResult":
        return cls(
            success=False,
            error_kind=error_kind,
            error_message=error_message,
            session_id=session_id,
        )
