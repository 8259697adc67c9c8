"""Exceptions for the SQLAlchemy persistence layer."""

from __future__ import annotations

from biograph_query.exceptions import CriteriaError


class PersistenceError(CriteriaError):
    """Base exception for all SQLAlchemy-specific persistence errors."""


class SessionManagementError(PersistenceError):
    """Raised when session creation or management fails."""


class TransactionError(PersistenceError):
    """Raised when a transaction could not be completed."""


__all__: list[str] = [
    "PersistenceError",
    "SessionManagementError",
    "TransactionError",
]
