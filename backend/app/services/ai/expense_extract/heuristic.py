"""Keyword/regex expense extraction used when the model path is unavailable.

Pure function of the input text: no I/O, no randomness. Every number in the
text is a potential expense; the words around it pick the description and the
category.
"""

from __future__ import annotations

import logging
import math
import re

from app.services.expense_categories import DEFAULT_CATEGORY

from .contracts import HEURISTIC_CONFIDENCE, ExpenseCandidate

logger = logging.getLogger(__name__)

# Optional "R$" prefix, integer or two-decimal amount with "," or "." separator.
MONEY_RE = re.compile(r"(?:R\$\s*)?(\d+(?:[.,]\d{2})?)")

GENERIC_DESCRIPTION = "Gasto"

# Order matters: the first keyword present in the context names the expense.
DESCRIPTION_KEYWORDS: tuple[str, ...] = (
    "almoço",
    "jantar",
    "lanche",
    "comida",
    "restaurante",
    "padaria",
    "uber",
    "taxi",
    "ônibus",
    "metro",
    "gasolina",
    "combustível",
    "médico",
    "hospital",
    "farmácia",
    "remédio",
    "consulta",
    "supermercado",
    "mercado",
    "açougue",
    "cinema",
    "teatro",
    "show",
    "festa",
    "luz",
    "água",
    "gás",
    "internet",
    "aluguel",
    "roupa",
    "calçado",
    "loja",
    "shopping",
)

# Order matters: the first category with a matching keyword wins.
CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("alimentação", ("comida", "almoço", "jantar", "lanche", "restaurante", "padaria")),
    ("transporte", ("uber", "taxi", "ônibus", "metro", "gasolina", "combustível", "estacionamento")),
    ("saúde", ("médico", "hospital", "clínica", "exame", "consulta", "medicamento")),
    ("educação", ("curso", "livro", "escola", "universidade", "material")),
    ("lazer", ("cinema", "teatro", "show", "festa", "viagem", "hotel")),
    ("moradia", ("aluguel", "condomínio", "luz", "água", "gás", "internet")),
    ("vestuário", ("roupa", "calçado", "loja", "shopping")),
    ("serviços", ("manutenção", "reparo", "serviço", "conserto")),
    ("supermercado", ("supermercado", "mercado", "açougue", "padaria")),
)


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:]


def _parse_amount(raw: str) -> float:
    return float(raw.replace(",", "."))


def describe(context: str, trailing: str, amount: float) -> str:
    """Build a description from the keyword found in *context*.

    Without a keyword, the first word of the *trailing* text longer than two
    characters is used, then the generic label.
    """
    suffix = f"R$ {amount:.2f}"
    for keyword in DESCRIPTION_KEYWORDS:
        if keyword in context:
            return f"{_capitalize(keyword)} - {suffix}"

    words = [word for word in trailing.strip().lower().split() if len(word) > 2]
    if words:
        return f"{_capitalize(words[0])} - {suffix}"
    return f"{GENERIC_DESCRIPTION} - {suffix}"


def categorize(context: str) -> str:
    text = context.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category
    return DEFAULT_CATEGORY


def extract_heuristic(text: str, *, currency: str = "BRL") -> list[ExpenseCandidate]:
    """Extract candidates from *text* in left-to-right order of the amounts.

    The local context of a match is the text between the previous match and
    this one, plus the text between this match and the next one.
    """
    matches = list(MONEY_RE.finditer(text or ""))
    candidates: list[ExpenseCandidate] = []

    for index, match in enumerate(matches):
        amount = _parse_amount(match.group(1))
        if amount <= 0 or not math.isfinite(amount):
            continue

        before_start = matches[index - 1].end() if index > 0 else 0
        after_end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
        before = text[before_start : match.start()]
        after = text[match.end() : after_end]
        context = f"{before} {after}".lower()

        candidates.append(
            ExpenseCandidate(
                description=describe(context, after, amount),
                amount=amount,
                category=categorize(context),
                currency=currency,
                confidence=HEURISTIC_CONFIDENCE,
            )
        )

    logger.info("Heuristic extraction found %d expenses", len(candidates))
    return candidates
