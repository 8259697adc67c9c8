from __future__ import annotations

from enum import Enum
from typing import Any

from .exceptions import InvalidComparator


class Comparator(str, Enum):
    """Comparators that may be interpolated into a compiled statement."""

    EQ = "="
    NE = "<>"
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="
    IN = "IN"
    NOT_IN = "NOT IN"

    # Pattern matching
    LIKE = "LIKE"
    ILIKE = "ILIKE"
    NOT_LIKE = "NOT LIKE"
    NOT_ILIKE = "NOT ILIKE"

    # JSONB array membership
    ANY_OF = "?|"
    ALL_OF = "?&"

    @property
    def is_range(self) -> bool:
        return self in RANGE_COMPARATORS

    @property
    def is_pattern(self) -> bool:
        return self in PATTERN_COMPARATORS

    @property
    def is_membership(self) -> bool:
        return self in (Comparator.IN, Comparator.NOT_IN)

    @property
    def is_negated(self) -> bool:
        return self in NEGATED_COMPARATORS


RANGE_COMPARATORS = frozenset(
    {Comparator.GT, Comparator.LT, Comparator.GE, Comparator.LE}
)
PATTERN_COMPARATORS = frozenset(
    {Comparator.LIKE, Comparator.ILIKE, Comparator.NOT_LIKE, Comparator.NOT_ILIKE}
)
NEGATED_COMPARATORS = frozenset(
    {Comparator.NE, Comparator.NOT_IN, Comparator.NOT_LIKE, Comparator.NOT_ILIKE}
)

ALLOWED_COMPARATORS: list[str] = [c.value for c in Comparator]


def ensure_comparator(value: Any) -> Comparator:
    """
    Return the allow-listed comparator for *value*.

    Matching is exact: ``"in"`` or ``" = "`` are rejected like any other
    string outside the list.

    Raises:
        InvalidComparator: If *value* is not an allow-listed comparator.
    """
    if isinstance(value, Comparator):
        return value
    if isinstance(value, str) and value in ALLOWED_COMPARATORS:
        return Comparator(value)
    raise InvalidComparator(value, ALLOWED_COMPARATORS)


def positive(comparator: Comparator) -> Comparator:
    """Strip the negation from a pattern or membership comparator."""
    return {
        Comparator.NOT_IN: Comparator.IN,
        Comparator.NOT_LIKE: Comparator.LIKE,
        Comparator.NOT_ILIKE: Comparator.ILIKE,
        Comparator.NE: Comparator.EQ,
    }.get(comparator, comparator)
