"""
Criteria compilation exception hierarchy.

All exceptions inherit from ``CriteriaError`` and provide ``to_dict()``
for API-friendly error responses. None of them is retryable: they signal
a malformed or hostile request, or a mismatch between the request and the
entity graph.
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any


class CriteriaError(Exception):
    """Base exception for all criteria compilation errors."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": str(self),
        }


class InvalidComparator(CriteriaError):
    """
    Comparator outside the allow-list.

    Comparators are interpolated into the statement as text, so this is
    raised before any SQL is produced for the request.
    """

    def __init__(self, comparator: Any, allowed: list[str]) -> None:
        self.comparator = comparator
        self.allowed = allowed
        self.suggestions = (
            get_close_matches(comparator, allowed, n=3, cutoff=0.6)
            if isinstance(comparator, str)
            else []
        )

        message = f"Comparator not allowed: {comparator!r}."
        if self.suggestions:
            message += f" Did you mean: {', '.join(self.suggestions)}?"
        message += f" Allowed comparators: {', '.join(allowed)}"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "INVALID_COMPARATOR",
            "comparator": str(self.comparator),
            "suggestions": self.suggestions,
            "allowed": list(self.allowed),
        }


class MalformedCriteria(CriteriaError):
    """A criteria node is missing a field its kind requires."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.message = message
        self.path = path
        super().__init__(f"{message} (at {path})" if path else message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "MALFORMED_CRITERIA",
            "message": self.message,
            "path": self.path,
        }


class UnknownJoinPath(CriteriaError):
    """No junction table is registered for a (child, parent) kind pair."""

    def __init__(self, child: str, parent: str, known: list[str] | None = None) -> None:
        self.child = child
        self.parent = parent
        self.known = sorted(known or [])
        message = f"No join path from '{child}' to parent '{parent}'."
        if self.known:
            message += f" Known paths: {', '.join(self.known)}"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "UNKNOWN_JOIN_PATH",
            "child": self.child,
            "parent": self.parent,
            "known": self.known,
        }


class AmbiguousAttributeResolution(CriteriaError):
    """Zero or several EAV attribute definitions match one metadata name."""

    def __init__(self, data_type: int, name: str, count: int) -> None:
        self.data_type = data_type
        self.name = name
        self.count = count
        found = "no attribute" if count == 0 else f"{count} attributes"
        super().__init__(
            f"Expected exactly one attribute '{name}' for data type {data_type}, "
            f"found {found}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "AMBIGUOUS_ATTRIBUTE",
            "data_type": self.data_type,
            "name": self.name,
            "count": self.count,
        }


__all__: list[str] = [
    "AmbiguousAttributeResolution",
    "CriteriaError",
    "InvalidComparator",
    "MalformedCriteria",
    "UnknownJoinPath",
]
