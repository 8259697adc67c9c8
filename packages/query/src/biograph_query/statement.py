"""
Final statement assembly.

Concatenates, in order: WITH clause (omitted without CTEs), SELECT, FROM
the root table, the CTE joins, the root WHERE clause and, outside leaf
search aggregation, a GROUP BY over every selected column.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .compiler import ROOT_ALIAS
from .cte import Projection

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .allocator import ParameterAllocator
    from .compiler import CompiledNode
    from .cte import CommonTableExpression
    from .graph import EntityGraph

_PLACEHOLDER = re.compile(r"\$(\d+)")


@dataclass(frozen=True)
class CompiledStatement:
    """
    A statement ready for positional execution.

    Unpacks as ``statement, parameters = compiled``.
    """

    statement: str
    parameters: tuple[Any, ...] = ()

    def __iter__(self) -> Iterator[Any]:
        return iter((self.statement, list(self.parameters)))

    def placeholders(self) -> list[int]:
        """Distinct placeholder numbers used in the statement, ascending."""
        return sorted({int(n) for n in _PLACEHOLDER.findall(self.statement)})


class StatementBuilder:
    def __init__(self, graph: EntityGraph, include_metadata: bool = True) -> None:
        self._graph = graph
        self._include_metadata = include_metadata

    def build(
        self,
        root: CompiledNode,
        ctes: list[CommonTableExpression],
        allocator: ParameterAllocator,
    ) -> CompiledStatement:
        description = self._graph.describe(root.kind)
        columns = [
            Projection(f"{ROOT_ALIAS}.{column}")
            for column in ("id", "type", "owner", *description.default_columns)
        ]
        for cte in ctes:
            columns.extend(cte.projections)
        if self._include_metadata:
            columns.append(Projection(f"{ROOT_ALIAS}.metadata"))
        selected = ", ".join(column.render() for column in columns)

        aggregates = [pair for cte in ctes for pair in cte.aggregates]

        parts = []
        if ctes:
            parts.append("WITH " + ", ".join(cte.definition for cte in ctes))
        if aggregates:
            # labels come from the request, so they are bound, never inlined
            pairs = ", ".join(
                f"{allocator.bind(key)}::text, {column}" for key, column in aggregates
            )
            parts.append(
                f"SELECT DISTINCT ON ({ROOT_ALIAS}.id) {selected}, "
                f"array_agg(json_build_object({pairs})) "
                f"OVER (PARTITION BY {ROOT_ALIAS}.id) AS parents"
            )
        else:
            parts.append(f"SELECT DISTINCT {selected}")
        parts.append(f"FROM {description.table} {ROOT_ALIAS}")
        parts.extend(cte.join for cte in ctes)
        parts.append(f"WHERE {root.where}")
        if not aggregates:
            parts.append(
                "GROUP BY " + ", ".join(column.expression for column in columns)
            )
        return CompiledStatement(" ".join(parts), tuple(allocator.parameters))
