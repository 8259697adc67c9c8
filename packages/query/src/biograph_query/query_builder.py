"""
Public entry point.

Example::

    builder = QueryBuilder(strategy="path")
    statement, parameters = builder.compose(
        {
            "dataType": 1,
            "model": "Data",
            "content": [
                {
                    "fieldName": "mass",
                    "fieldType": "float",
                    "comparator": ">=",
                    "fieldValue": "1.5",
                    "fieldUnit": "M☉",
                }
            ],
        }
    )
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .allocator import ParameterAllocator
from .compiler import CriteriaCompiler
from .criteria import CriteriaFactory, CriteriaRequest, Nested, QueryFlags
from .cte import CteAssembler
from .graph import EntityGraph
from .settings import QuerySettings
from .statement import StatementBuilder
from .strategies import PredicateStrategy, StrategyKind, build_strategy

if TYPE_CHECKING:
    from .statement import CompiledStatement

logger = logging.getLogger(__name__)


class QueryBuilder:
    """
    Compose criteria trees into parameterized PostgreSQL statements.

    A builder holds no per-request state: every ``compose`` call gets its
    own allocator, so one instance can serve concurrent callers.
    """

    def __init__(
        self,
        strategy: PredicateStrategy | StrategyKind | str | None = None,
        graph: EntityGraph | None = None,
        settings: QuerySettings | None = None,
    ) -> None:
        self.settings = settings or QuerySettings()
        if strategy is None:
            strategy = self.settings.strategy_kind
        self.strategy = (
            strategy
            if isinstance(strategy, PredicateStrategy)
            else build_strategy(strategy)
        )
        self.graph = graph or EntityGraph.default()
        self._compiler = CriteriaCompiler(self.strategy, self.graph)
        self._assembler = CteAssembler(self.graph)
        self._statements = StatementBuilder(
            self.graph, include_metadata=self.settings.include_metadata
        )

    def compose(
        self,
        criteria: Nested | CriteriaRequest | Mapping[str, Any],
        flags: QueryFlags | None = None,
    ) -> CompiledStatement:
        """
        Compile *criteria* into one statement and its ordered parameters.

        *criteria* may be a request dictionary, a parsed
        :class:`CriteriaRequest` or a bare :class:`Nested` root. Explicit
        *flags* override the ones carried by the request.

        Raises:
            InvalidComparator: A comparator is outside the allow-list.
            MalformedCriteria: A node lacks fields its kind requires.
            UnknownJoinPath: Two nested kinds have no junction table.
        """
        if isinstance(criteria, Mapping):
            criteria = CriteriaFactory.from_dict(criteria, graph=self.graph)
        if isinstance(criteria, CriteriaRequest):
            root = criteria.root
            flags = flags or criteria.flags
        else:
            root = criteria
        flags = flags or QueryFlags()

        allocator = ParameterAllocator()
        compiled = self._compiler.compile(root, allocator)
        ctes = self._assembler.assemble(compiled, flags)
        result = self._statements.build(compiled, ctes, allocator)
        logger.debug(
            "Composed %s query (%s strategy): %d CTE(s), %d parameter(s)",
            root.model.value,
            self.strategy.kind.value,
            len(ctes),
            len(result.parameters),
        )
        return result


def compose(
    criteria: Nested | CriteriaRequest | Mapping[str, Any],
    flags: QueryFlags | None = None,
    *,
    strategy: PredicateStrategy | StrategyKind | str | None = None,
    graph: EntityGraph | None = None,
) -> CompiledStatement:
    """Compile *criteria* with a throwaway :class:`QueryBuilder`."""
    return QueryBuilder(strategy=strategy, graph=graph).compose(criteria, flags)
