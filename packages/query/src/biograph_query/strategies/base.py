"""
Predicate compilation strategy.

A strategy turns one :class:`~biograph_query.criteria.Leaf` or
:class:`~biograph_query.criteria.Specialized` node into a SQL fragment,
binding every value through the :class:`ParameterAllocator`. Only
identifiers from the entity graph and allow-listed comparators are ever
written into the fragment as text.

Two strategies exist:

- ``PathStrategy`` extracts ``metadata->name->>'value'``, casts it and
  compares it with the bound value.
- ``ContainmentStrategy`` answers equality with the JSONB ``@>`` operator
  against a single-key probe document and falls back to path extraction
  for what containment cannot express.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..comparators import Comparator, ensure_comparator
from ..criteria import FieldType
from ..exceptions import MalformedCriteria

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from ..allocator import ParameterAllocator
    from ..criteria import Condition, Leaf, Specialized


class StrategyKind(str, Enum):
    PATH = "path"
    CONTAINMENT = "containment"


class PredicateStrategy(ABC):
    """
    Strategy interface for compiling criteria nodes into SQL fragments.

    ``prefix`` is the table qualifier including its dot (``"d."`` at the
    root, ``""`` or ``"t."`` inside a nested CTE).
    """

    @property
    @abstractmethod
    def kind(self) -> StrategyKind:
        """The selector this strategy answers to."""
        ...

    def compile_leaf(
        self, leaf: Leaf, allocator: ParameterAllocator, prefix: str = ""
    ) -> str:
        comparator = ensure_comparator(leaf.comparator)
        if comparator in (Comparator.ANY_OF, Comparator.ALL_OF) and not leaf.is_in_loop:
            raise MalformedCriteria(
                f"Comparator '{comparator.value}' only applies to loop attributes",
                leaf.field_name,
            )
        if leaf.is_list and not comparator.is_membership and not leaf.is_in_loop:
            raise MalformedCriteria(
                f"List value needs IN or NOT IN, got '{comparator.value}'",
                leaf.field_name,
            )
        if leaf.is_in_loop:
            return self.compile_loop(leaf, comparator, allocator, prefix)
        return self.compile_attribute(leaf, comparator, allocator, prefix)

    @abstractmethod
    def compile_attribute(
        self,
        leaf: Leaf,
        comparator: Comparator,
        allocator: ParameterAllocator,
        prefix: str,
    ) -> str:
        """Compile a leaf over a scalar ``{value, unit}`` attribute."""
        ...

    @abstractmethod
    def compile_loop(
        self,
        leaf: Leaf,
        comparator: Comparator,
        allocator: ParameterAllocator,
        prefix: str,
    ) -> str:
        """Compile a leaf over a repeated ``{values, units}`` attribute."""
        ...

    def compile_specialized(
        self,
        node: Specialized,
        allocator: ParameterAllocator,
        prefix: str,
        columns: Mapping[str, str],
    ) -> str | None:
        """
        Compile conditions on real entity columns into one conjunction.

        Returns ``None`` when the node carries no condition.
        """
        return compile_conditions(node.conditions, allocator, prefix, columns)

    # -- shared path extraction ---------------------------------------------

    def path_attribute(
        self,
        leaf: Leaf,
        comparator: Comparator,
        allocator: ParameterAllocator,
        prefix: str,
    ) -> str:
        name = allocator.bind(leaf.field_name)
        extract = f"({prefix}metadata->{name}->>'value')::{leaf.field_type.value}"
        if comparator.is_membership:
            placeholders = allocator.bind_all(leaf.values)
            clause = f"{extract} {comparator.value} ({','.join(placeholders)})"
        else:
            clause = f"{extract} {comparator.value} {allocator.bind(leaf.values[0])}"
        return clause + self.path_unit(leaf, name, allocator, prefix)

    @staticmethod
    def path_unit(
        leaf: Leaf, name: str, allocator: ParameterAllocator, prefix: str
    ) -> str:
        units = leaf.units
        if not units:
            return ""
        extract = f"({prefix}metadata->{name}->>'unit')::text"
        if len(units) == 1:
            return f" AND {extract} LIKE {allocator.bind(units[0])}"
        return f" AND {extract} IN ({','.join(allocator.bind_all(units))})"

    @staticmethod
    def array_membership(
        leaf: Leaf,
        comparator: Comparator,
        allocator: ParameterAllocator,
        prefix: str,
    ) -> str:
        name = allocator.bind(leaf.field_name)
        placeholders = allocator.bind_all(leaf.values)
        return (
            f"({prefix}metadata->{name}->'values' {comparator.value} "
            f"ARRAY[{','.join(placeholders)}])"
        )

    @staticmethod
    def element_match(
        leaf: Leaf,
        comparator: Comparator,
        allocator: ParameterAllocator,
        prefix: str,
    ) -> str:
        """
        Existential sub-select over the unnested ``values`` array.

        Pattern comparators are applied element-wise as given. A list value
        under a non-membership comparator tests every value, joined with
        ``OR``. Negated equality and membership become ``NOT EXISTS`` of the
        positive test.
        """
        name = allocator.bind(leaf.field_name)
        element = "value"
        if leaf.field_type is not FieldType.TEXT and not comparator.is_pattern:
            element = f"value::{leaf.field_type.value}"

        negate = comparator in (Comparator.NE, Comparator.NOT_IN)
        if comparator.is_membership:
            placeholders = allocator.bind_all(leaf.values)
            test = f"{element} IN ({','.join(placeholders)})"
        else:
            operator = Comparator.EQ if negate else comparator
            test = " OR ".join(
                f"{element} {operator.value} {placeholder}"
                for placeholder in allocator.bind_all(leaf.values)
            )

        exists = (
            f"EXISTS (SELECT 1 FROM jsonb_array_elements_text("
            f"{prefix}metadata->{name}->'values') WHERE {test})"
        )
        return f"NOT {exists}" if negate else exists


def compile_conditions(
    conditions: tuple[Condition, ...],
    allocator: ParameterAllocator,
    prefix: str,
    columns: Mapping[str, str],
    transform: Callable[[str, Any], Any] | None = None,
) -> str | None:
    """
    Compile ``(property, comparator, value)`` triples over real columns.

    Scalar values default to ``=`` and tuples to ``IN``. *transform* may
    rewrite a value before it is bound.
    """
    clauses = []
    for condition in conditions:
        column = columns.get(condition.property)
        if column is None:
            raise MalformedCriteria(
                f"Unknown property '{condition.property}'", condition.property
            )
        if condition.is_list:
            comparator = ensure_comparator(condition.comparator or Comparator.IN)
            values = condition.value
            if transform is not None:
                values = tuple(transform(condition.property, v) for v in values)
            placeholders = allocator.bind_all(values)
            clauses.append(
                f"{prefix}{column} {comparator.value} ({','.join(placeholders)})"
            )
        else:
            comparator = ensure_comparator(condition.comparator or Comparator.EQ)
            value = condition.value
            if transform is not None:
                value = transform(condition.property, value)
            clauses.append(f"{prefix}{column} {comparator.value} {allocator.bind(value)}")
    return " AND ".join(clauses) or None
