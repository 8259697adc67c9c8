"""
Recursive criteria compilation.

``CriteriaCompiler.compile`` walks a :class:`~biograph_query.criteria.Nested`
tree once, in pre-order, and produces a :class:`CompiledNode` tree:

- the root keeps only its WHERE clause (``d.type = $1 AND (...)``),
- every nested node gets a CTE name (``nested_1``, ``nested_2``, ...) and a
  full ``SELECT ... FROM ... WHERE ...`` body with unqualified columns.

Placeholders are numbered in the order values are met during the walk.
Every comparator in the tree is checked against the allow-list before the
walk starts, so an invalid one never reaches a fragment.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .comparators import ensure_comparator
from .criteria import (
    PERSONAL_DETAILS_PROPERTIES,
    Junction,
    Leaf,
    Nested,
    PersonalDetails,
    Specialized,
)
from .exceptions import MalformedCriteria
from .graph import EntityKind
from .strategies import compile_conditions

if TYPE_CHECKING:
    from .allocator import ParameterAllocator
    from .criteria import Node
    from .graph import EntityGraph
    from .strategies import PredicateStrategy

logger = logging.getLogger(__name__)

ROOT_ALIAS = "d"
# table alias inside a nested CTE that also joins personal details
NESTED_ALIAS = "t"
PERSONAL_DETAILS_TABLE = "personal_details"

_UPPER_CASED = frozenset({"givenName", "surname"})


@dataclass
class CompiledNode:
    """One compiled criteria node and its compiled nested children."""

    node: Nested
    alias: str
    number: int
    where: str
    body: str | None = None
    joins_personal_details: bool = False
    children: list[CompiledNode] = field(default_factory=list)

    @property
    def is_root(self) -> bool:
        return self.number == 0

    @property
    def kind(self) -> EntityKind:
        return self.node.model

    def walk(self) -> list[CompiledNode]:
        """This node's descendants in pre-order (the node itself excluded)."""
        nodes: list[CompiledNode] = []
        for child in self.children:
            nodes.append(child)
            nodes.extend(child.walk())
        return nodes


def check_comparators(node: Node) -> None:
    """
    Validate every comparator in *node* and its descendants.

    Raises:
        InvalidComparator: On the first comparator outside the allow-list.
    """
    if isinstance(node, Leaf):
        ensure_comparator(node.comparator)
    elif isinstance(node, Specialized | PersonalDetails):
        for condition in node.conditions:
            if condition.comparator is not None:
                ensure_comparator(condition.comparator)
    else:
        for child in node.content:
            check_comparators(child)


class CriteriaCompiler:
    """Compile a criteria tree with one predicate strategy over one graph."""

    def __init__(self, strategy: PredicateStrategy, graph: EntityGraph) -> None:
        self._strategy = strategy
        self._graph = graph

    def compile(self, root: Nested, allocator: ParameterAllocator) -> CompiledNode:
        check_comparators(root)
        return self._compile_node(root, allocator, ROOT_ALIAS, 0)

    # -- internals -----------------------------------------------------------

    def _compile_node(
        self,
        node: Nested,
        allocator: ParameterAllocator,
        alias: str,
        number: int,
    ) -> CompiledNode:
        description = self._graph.describe(node.model)
        is_root = number == 0
        joins_pd = any(
            isinstance(element, PersonalDetails) and element.conditions
            for element in node.content
        )
        if joins_pd and node.model is not EntityKind.SUBJECT:
            raise MalformedCriteria(
                "Personal details only apply to Subject criteria",
                node.model.value,
            )

        if is_root:
            prefix = f"{ROOT_ALIAS}."
        elif joins_pd:
            prefix = f"{NESTED_ALIAS}."
        else:
            prefix = ""
        pd_alias = "pd" if is_root else f"pd_{number}"

        compiled = CompiledNode(
            node=node,
            alias=alias,
            number=number,
            where=prefix + _type_clause(node.data_type, allocator),
            joins_personal_details=joins_pd,
        )

        predicates = []
        for element in node.content:
            if isinstance(element, Nested):
                # fail before emitting anything for an unreachable kind pair
                self._graph.lookup_join(element.model, node.model)
                child_alias = allocator.next_cte_alias()
                compiled.children.append(
                    self._compile_node(
                        element, allocator, child_alias, allocator.cte_count
                    )
                )
                continue
            if isinstance(element, PersonalDetails):
                fragment = compile_conditions(
                    element.conditions,
                    allocator,
                    f"{pd_alias}.",
                    PERSONAL_DETAILS_PROPERTIES,
                    transform=_upper_names,
                )
            elif isinstance(element, Specialized):
                if element.kind is not node.model:
                    raise MalformedCriteria(
                        f"{element.kind.value} conditions inside "
                        f"{node.model.value} criteria",
                        node.model.value,
                    )
                fragment = self._strategy.compile_specialized(
                    element, allocator, prefix, description.specialized_properties
                )
            else:
                fragment = self._strategy.compile_leaf(element, allocator, prefix)
            if fragment:
                predicates.append(fragment)

        if predicates:
            compiled.where += f" AND {_combine(predicates, node.junction)}"

        if not is_root:
            columns = list(description.subquery_columns)
            if node.get_metadata:
                columns.append("metadata")
            source = description.table
            if joins_pd:
                source += (
                    f" {NESTED_ALIAS} LEFT JOIN {PERSONAL_DETAILS_TABLE} AS {pd_alias}"
                    f" ON {pd_alias}.id = {NESTED_ALIAS}.personal_info"
                )
            compiled.body = (
                f"SELECT {', '.join(prefix + c for c in columns)} "
                f"FROM {source} WHERE {compiled.where}"
            )

        logger.debug(
            "Compiled %s node %s with %d predicate(s), position now %d",
            node.model.value,
            alias,
            len(predicates),
            allocator.position,
        )
        return compiled


def _type_clause(data_type: int | tuple[int, ...], allocator: ParameterAllocator) -> str:
    if isinstance(data_type, tuple):
        return f"type IN ({','.join(allocator.bind_all(data_type))})"
    return f"type = {allocator.bind(data_type)}"


def _combine(predicates: list[str], junction: Junction) -> str:
    if len(predicates) == 1:
        return f"({predicates[0]})"
    joined = f" {junction.value} ".join(f"({p})" for p in predicates)
    return f"({joined})"


def _upper_names(prop: str, value: Any) -> Any:
    if prop in _UPPER_CASED and isinstance(value, str):
        return value.upper()
    return value
