"""Search data models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class Category(str, Enum):
    """Closed set of record categories emitted by the documentation generator."""

    PAGE = "page"
    SECTION = "section"
    TYPE = "type"
    METHOD = "method"
    FUNCTION = "function"
    OTHER = "other"

    @property
    def tier_bonus(self) -> float:
        return CATEGORY_TIER_BONUS[self]

    @classmethod
    def parse(cls, value: Any) -> Category | None:
        """Return the category for a raw label, or None when unrecognized."""

        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


# Strictly decreasing across tiers; method and function share one tier.
CATEGORY_TIER_BONUS: dict[Category, float] = {
    Category.PAGE: 4.0,
    Category.SECTION: 3.0,
    Category.TYPE: 2.0,
    Category.METHOD: 1.0,
    Category.FUNCTION: 1.0,
    Category.OTHER: 0.0,
}


class Field(str, Enum):
    """Indexed fields of a document, in postings sort order."""

    TITLE = "title"
    CATEGORY = "category"
    TEXT = "text"

    @property
    def weight(self) -> float:
        return FIELD_WEIGHTS[self]

    @property
    def rank(self) -> int:
        return _FIELD_ORDER[self]


FIELD_WEIGHTS: dict[Field, float] = {
    Field.TITLE: 5.0,
    Field.CATEGORY: 3.0,
    Field.TEXT: 1.0,
}

_FIELD_ORDER: dict[Field, int] = {field: idx for idx, field in enumerate(Field)}

REQUIRED_RECORD_FIELDS: tuple[str, ...] = ("location", "page", "title", "category", "text")


@dataclass(frozen=True, slots=True)
class Document:
    """An accepted documentation record with its stable corpus ordinal."""

    doc_id: int
    location: str
    page: str
    title: str
    category: Category
    text: str

    def field_text(self, field: Field) -> str:
        if field is Field.TITLE:
            return self.title
        if field is Field.CATEGORY:
            return self.category.value
        return self.text

    def to_dict(self) -> dict[str, Any]:
        return {
            "doc_id": self.doc_id,
            "location": self.location,
            "page": self.page,
            "title": self.title,
            "category": self.category.value,
            "text": self.text,
        }


@dataclass(frozen=True, slots=True)
class Posting:
    """Occurrences of one token in one field of one document.

    ``positions`` index the analyzed token stream of the field and ``spans``
    hold the matching character offsets in the raw field text.
    """

    doc_id: int
    field: Field
    positions: tuple[int, ...]
    spans: tuple[tuple[int, int], ...]

    @property
    def frequency(self) -> int:
        return len(self.positions)

    @property
    def weight(self) -> float:
        return self.field.weight

    def to_dict(self) -> dict[str, Any]:
        return {
            "d": self.doc_id,
            "f": self.field.value,
            "p": list(self.positions),
        }
