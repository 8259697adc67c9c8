from __future__ import annotations

from typing import TYPE_CHECKING

from ..comparators import Comparator
from .base import PredicateStrategy, StrategyKind

if TYPE_CHECKING:
    from ..allocator import ParameterAllocator
    from ..criteria import Leaf


class PathStrategy(PredicateStrategy):
    """
    Explicit path extraction.

    ``(d.metadata->$2->>'value')::float >= $3`` for scalars. Loop
    attributes use the array operators for ``?|``/``?&`` and an element-wise
    ``EXISTS`` sub-select for everything else.
    """

    @property
    def kind(self) -> StrategyKind:
        return StrategyKind.PATH

    def compile_attribute(
        self,
        leaf: Leaf,
        comparator: Comparator,
        allocator: ParameterAllocator,
        prefix: str,
    ) -> str:
        return self.path_attribute(leaf, comparator, allocator, prefix)

    def compile_loop(
        self,
        leaf: Leaf,
        comparator: Comparator,
        allocator: ParameterAllocator,
        prefix: str,
    ) -> str:
        if comparator in (Comparator.ANY_OF, Comparator.ALL_OF):
            return self.array_membership(leaf, comparator, allocator, prefix)
        return self.element_match(leaf, comparator, allocator, prefix)
