"""
Predicate strategies and the strategy factory.

Usage::

    from biograph_query.strategies import StrategyKind, build_strategy

    strategy = build_strategy(StrategyKind.PATH)
"""

from __future__ import annotations

from .base import PredicateStrategy, StrategyKind, compile_conditions
from .containment import ContainmentStrategy
from .path import PathStrategy

DEFAULT_STRATEGY = StrategyKind.CONTAINMENT

_STRATEGIES: dict[StrategyKind, type[PredicateStrategy]] = {
    StrategyKind.PATH: PathStrategy,
    StrategyKind.CONTAINMENT: ContainmentStrategy,
}


def build_strategy(kind: StrategyKind | str = DEFAULT_STRATEGY) -> PredicateStrategy:
    """Return a fresh strategy for *kind* (``"path"`` or ``"containment"``)."""
    return _STRATEGIES[StrategyKind(kind)]()


__all__ = [
    "DEFAULT_STRATEGY",
    "ContainmentStrategy",
    "PathStrategy",
    "PredicateStrategy",
    "StrategyKind",
    "build_strategy",
    "compile_conditions",
]
