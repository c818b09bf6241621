"""Per-owner expense store.

Every write goes through the strict category gate (``CategoryVocabulary.normalize``).
``persist_candidates`` is the best-effort batch used after extraction: each
candidate is committed on its own and a rejected one does not stop the rest.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.auth import CurrentUser
from app.core.errors import NotFoundError, ValidationError
from app.models.expense import Expense
from app.schemas.expense import ExpenseQuery, ExpenseUpdate
from app.services.expense_categories import CategoryVocabulary, default_vocabulary

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def _to_money(value: Any) -> Decimal:
    try:
        amount = Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    except (ArithmeticError, ValueError, TypeError):
        raise ValidationError(f"Invalid amount: {value!r}")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("Amount is required and must be greater than 0")
    return amount


def _require_text(value: Optional[str], field: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{field} is required and cannot be empty")
    return cleaned


def _owned_query(db: Session, owner: CurrentUser):
    return db.query(Expense).filter(Expense.owner_id == owner.id)


def _parse_id(expense_id: str | uuid.UUID) -> uuid.UUID:
    if isinstance(expense_id, uuid.UUID):
        return expense_id
    try:
        return uuid.UUID(str(expense_id))
    except ValueError:
        raise NotFoundError("Expense not found")


def create_expense(
    db: Session,
    data: Any,
    owner: CurrentUser,
    *,
    vocabulary: CategoryVocabulary = default_vocabulary,
) -> Expense:
    """Validate and store one expense for *owner*.

    *data* is anything with ``description``, ``amount``, ``category`` and
    ``currency`` attributes (an ``ExpenseCreate`` or an extraction candidate).
    """
    description = _require_text(data.description, "Description")
    amount = _to_money(data.amount)
    _require_text(data.category, "Category")
    category = vocabulary.normalize(data.category)
    currency = _require_text(data.currency, "Currency").upper()

    expense = Expense(
        owner_id=owner.id,
        description=description,
        amount=amount,
        category=category,
        currency=currency,
    )
    db.add(expense)
    db.commit()
    db.refresh(expense)

    logger.info(
        "Expense created id=%s owner=%s amount=%s category=%s currency=%s",
        expense.id,
        owner.id,
        expense.amount,
        expense.category,
        expense.currency,
    )
    return expense


def persist_candidates(
    db: Session,
    candidates: Iterable[Any],
    owner: CurrentUser,
    *,
    vocabulary: CategoryVocabulary = default_vocabulary,
) -> list[Expense]:
    """Store candidates one by one; failures are logged and skipped."""
    stored: list[Expense] = []
    for candidate in candidates:
        try:
            stored.append(create_expense(db, candidate, owner, vocabulary=vocabulary))
        except Exception as exc:
            db.rollback()
            logger.warning(
                "Failed to persist expense description=%r category=%r: %s",
                getattr(candidate, "description", None),
                getattr(candidate, "category", None),
                exc,
            )
    return stored


def get_expense(db: Session, expense_id: str | uuid.UUID, owner: CurrentUser) -> Expense:
    expense = _owned_query(db, owner).filter(Expense.id == _parse_id(expense_id)).first()
    if expense is None:
        logger.info("Expense not found id=%s owner=%s", expense_id, owner.id)
        raise NotFoundError("Expense not found")
    return expense


def _filtered(db: Session, owner: CurrentUser, query: ExpenseQuery):
    q = _owned_query(db, owner)
    if query.category:
        q = q.filter(Expense.category == query.category.strip().lower())
    if query.currency:
        q = q.filter(func.upper(Expense.currency) == query.currency.strip().upper())
    if query.start_date:
        q = q.filter(Expense.created_at >= query.start_date)
    if query.end_date:
        q = q.filter(Expense.created_at <= query.end_date)
    return q


def list_expenses(db: Session, owner: CurrentUser, query: Optional[ExpenseQuery] = None) -> list[Expense]:
    """Newest first, with offset/limit pagination."""
    query = query or ExpenseQuery()
    rows = (
        _filtered(db, owner, query)
        .order_by(Expense.created_at.desc(), Expense.id)
        .offset(query.offset)
        .limit(query.limit)
        .all()
    )
    logger.info("Expenses retrieved owner=%s returned=%d", owner.id, len(rows))
    return rows


def update_expense(
    db: Session,
    expense_id: str | uuid.UUID,
    data: ExpenseUpdate,
    owner: CurrentUser,
    *,
    vocabulary: CategoryVocabulary = default_vocabulary,
) -> Expense:
    expense = get_expense(db, expense_id, owner)
    changes = data.model_dump(exclude_unset=True)

    if "description" in changes:
        expense.description = _require_text(changes["description"], "Description")
    if "amount" in changes:
        expense.amount = _to_money(changes["amount"])
    if "category" in changes:
        expense.category = vocabulary.normalize(_require_text(changes["category"], "Category"))
    if "currency" in changes:
        expense.currency = _require_text(changes["currency"], "Currency").upper()

    db.commit()
    db.refresh(expense)
    logger.info("Expense updated id=%s fields=%s", expense.id, sorted(changes))
    return expense


def delete_expense(db: Session, expense_id: str | uuid.UUID, owner: CurrentUser) -> None:
    expense = get_expense(db, expense_id, owner)
    db.delete(expense)
    db.commit()
    logger.info("Expense deleted id=%s owner=%s", expense_id, owner.id)


def _distinct_in_order(values: Sequence[str]) -> list[str]:
    seen: list[str] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


def summarize_expenses(db: Session, owner: CurrentUser, query: Optional[ExpenseQuery] = None) -> dict[str, Any]:
    """Totals over every expense matching the filters (pagination is ignored)."""
    query = query or ExpenseQuery()
    rows = _filtered(db, owner, query).order_by(Expense.created_at.desc(), Expense.id).all()

    total = sum((Decimal(str(row.amount)) for row in rows), Decimal("0"))
    count = len(rows)
    average = (total / count).quantize(CENT, rounding=ROUND_HALF_UP) if count else Decimal("0")

    return {
        "total_expenses": count,
        "total_amount": float(total),
        "categories": _distinct_in_order([row.category for row in rows]),
        "currencies": _distinct_in_order([row.currency for row in rows]),
        "average_amount": float(average),
    }


def valid_categories(vocabulary: CategoryVocabulary = default_vocabulary) -> list[str]:
    return list(vocabulary.labels)
