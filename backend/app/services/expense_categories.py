"""Closed expense category vocabulary.

Labels are canonical lowercase Portuguese strings; clients and stored rows use
exactly these values.
"""

from __future__ import annotations

from collections.abc import Iterable

from app.core.errors import ValidationError

VALID_EXPENSE_CATEGORIES: tuple[str, ...] = (
    "alimentação",
    "transporte",
    "saúde",
    "educação",
    "lazer",
    "moradia",
    "vestuário",
    "serviços",
    "combustível",
    "farmácia",
    "supermercado",
    "restaurante",
    "outros",
)

DEFAULT_CATEGORY = "outros"


class CategoryVocabulary:
    """Fixed, ordered set of category labels with strict normalization."""

    def __init__(
        self,
        labels: Iterable[str] = VALID_EXPENSE_CATEGORIES,
        default: str = DEFAULT_CATEGORY,
    ) -> None:
        self._labels = tuple(label.strip().lower() for label in labels)
        self._members = frozenset(self._labels)
        default = default.strip().lower()
        if default not in self._members:
            raise ValueError(f"Default category {default!r} is not part of the vocabulary")
        self._default = default

    @property
    def labels(self) -> tuple[str, ...]:
        return self._labels

    @property
    def default(self) -> str:
        return self._default

    def __contains__(self, label: object) -> bool:
        return isinstance(label, str) and self.is_valid(label)

    def __iter__(self):
        return iter(self._labels)

    def __len__(self) -> int:
        return len(self._labels)

    def is_valid(self, label: str) -> bool:
        return label.strip().lower() in self._members

    def normalize(self, label: str) -> str:
        """Return the canonical member for *label* or raise ``ValidationError``.

        Matching ignores case and surrounding whitespace only; there is no
        synonym mapping and no pass-through for unknown values.
        """
        normalized = (label or "").strip().lower()
        if normalized not in self._members:
            raise ValidationError(
                f'Invalid category: "{label}". Valid categories: {", ".join(self._labels)}'
            )
        return normalized


default_vocabulary = CategoryVocabulary()
