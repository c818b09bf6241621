"""Expense endpoints: extract-and-store plus per-owner CRUD."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.auth import CurrentUser, get_current_user
from app.core.config import get_settings
from app.core.dependencies import get_db
from app.core.errors import NotFoundError, ValidationError
from app.schemas.expense import (
    CategoriesResponse,
    ExpenseCreate,
    ExpenseListResponse,
    ExpenseOut,
    ExpenseQuery,
    ExpenseStoreSummary,
    ExpenseUpdate,
    ExtractedExpensesData,
    ExtractExpensesRequest,
    ExtractExpensesResponse,
    ExtractionSummaryOut,
)
from app.services import expense_service
from app.services.ai.expense_extract.contracts import ExtractionRequest
from app.services.ai.expense_extract.service import ExpenseExtractionAgent
from app.services.expense_categories import default_vocabulary

router = APIRouter()
logger = logging.getLogger(__name__)


AgentFactory = Callable[..., ExpenseExtractionAgent]


def get_agent_factory() -> AgentFactory:
    """Dependency returning the agent constructor; tests swap in a fake provider."""
    return ExpenseExtractionAgent.from_settings


def _expense_query(
    category: Optional[str] = Query(None),
    currency: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> ExpenseQuery:
    return ExpenseQuery(
        category=category,
        currency=currency,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )


@router.post(
    "/expenses/extract",
    response_model=ExtractExpensesResponse,
    summary="Extract expenses from a message and store them",
)
async def extract_expenses(
    payload: ExtractExpensesRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    agent_factory: AgentFactory = Depends(get_agent_factory),
):
    agent = agent_factory(
        override_provider=payload.override_provider,
        override_model=payload.override_model,
    )
    language = payload.language or get_settings().default_language
    result = await agent.run(ExtractionRequest(text=payload.text, language=language))

    if not result.success:
        if result.error_kind == ValidationError.__name__:
            raise HTTPException(400, result.error_message)
        logger.error(
            "Extraction failed session=%s kind=%s: %s",
            result.session_id,
            result.error_kind,
            result.error_message,
        )
        raise HTTPException(500, "Failed to extract expenses")

    stored = expense_service.persist_candidates(db, result.candidates, current_user)
    skipped = len(result.candidates) - len(stored)

    logger.info(
        "Extract request=%s owner=%s extracted=%d stored=%d skipped=%d",
        result.session_id,
        current_user.id,
        len(result.candidates),
        len(stored),
        skipped,
    )

    return ExtractExpensesResponse(
        success=True,
        message="Expenses extracted and persisted successfully",
        data=ExtractedExpensesData(
            expenses=[ExpenseOut.model_validate(e) for e in stored],
            summary=ExtractionSummaryOut(**result.summary.model_dump()),
            extracted_at=result.extracted_at,
            confidence=result.confidence,
            source=result.source or "",
            skipped=skipped,
        ),
        request_id=result.session_id,
        timestamp=datetime.now(timezone.utc),
    )


@router.get("/expenses/categories", response_model=CategoriesResponse)
def list_categories():
    return CategoriesResponse(
        categories=expense_service.valid_categories(),
        default=default_vocabulary.default,
    )


@router.get("/expenses/summary", response_model=ExpenseStoreSummary)
def expenses_summary(
    query: ExpenseQuery = Depends(_expense_query),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ExpenseStoreSummary(**expense_service.summarize_expenses(db, current_user, query))


@router.post("/expenses", response_model=ExpenseOut, status_code=201)
def create_expense(
    payload: ExpenseCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        expense = expense_service.create_expense(db, payload, current_user)
    except ValidationError as exc:
        raise HTTPException(400, str(exc)) from exc
    return ExpenseOut.model_validate(expense)


@router.get("/expenses", response_model=ExpenseListResponse)
def list_expenses(
    query: ExpenseQuery = Depends(_expense_query),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    rows = expense_service.list_expenses(db, current_user, query)
    return ExpenseListResponse(items=[ExpenseOut.model_validate(r) for r in rows], count=len(rows))


@router.get("/expenses/{expense_id}", response_model=ExpenseOut)
def get_expense(
    expense_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        expense = expense_service.get_expense(db, expense_id, current_user)
    except NotFoundError as exc:
        raise HTTPException(404, str(exc)) from exc
    return ExpenseOut.model_validate(expense)


@router.patch("/expenses/{expense_id}", response_model=ExpenseOut)
def update_expense(
    expense_id: uuid.UUID,
    payload: ExpenseUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        expense = expense_service.update_expense(db, expense_id, payload, current_user)
    except NotFoundError as exc:
        raise HTTPException(404, str(exc)) from exc
    except ValidationError as exc:
        db.rollback()
        raise HTTPException(400, str(exc)) from exc
    return ExpenseOut.model_validate(expense)


@router.delete("/expenses/{expense_id}", status_code=204)
def delete_expense(
    expense_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        expense_service.delete_expense(db, expense_id, current_user)
    except NotFoundError as exc:
        raise HTTPException(404, str(exc)) from exc
