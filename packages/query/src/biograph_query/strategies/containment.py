from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .. import metadata
from ..comparators import Comparator
from ..exceptions import MalformedCriteria
from .base import StrategyKind
from .path import PathStrategy

if TYPE_CHECKING:
    from ..allocator import ParameterAllocator
    from ..criteria import Leaf

logger = logging.getLogger(__name__)


class ContainmentStrategy(PathStrategy):
    """
    JSONB containment.

    Equality and inequality on scalar attributes compile to
    ``[NOT ]d.metadata @> $n`` where ``$n`` is the JSON text of
    ``{"name": {"value": v}}``; a single unit adds a second probe
    ``{"name": {"unit": u}}``. On loop attributes ``=``, ``<>`` and ``?&``
    probe ``{"name": {"values": [...]}}``. Range, pattern and membership
    comparators are answered by path extraction.
    """

    @property
    def kind(self) -> StrategyKind:
        return StrategyKind.CONTAINMENT

    def compile_attribute(
        self,
        leaf: Leaf,
        comparator: Comparator,
        allocator: ParameterAllocator,
        prefix: str,
    ) -> str:
        if comparator not in (Comparator.EQ, Comparator.NE):
            logger.debug(
                "Comparator %s on '%s' falls back to path extraction",
                comparator.value,
                leaf.field_name,
            )
            return self.path_attribute(leaf, comparator, allocator, prefix)

        negate = "NOT " if comparator is Comparator.NE else ""
        probe = metadata.scalar_probe(leaf.field_name, _coerce(leaf, leaf.values[0]))
        clause = f"{negate}{prefix}metadata @> {allocator.bind(metadata.dumps(probe))}"

        units = leaf.units
        if len(units) == 1:
            unit = metadata.unit_probe(leaf.field_name, units[0])
            clause += f" AND {prefix}metadata @> {allocator.bind(metadata.dumps(unit))}"
        elif units:
            name = allocator.bind(leaf.field_name)
            clause += self.path_unit(leaf, name, allocator, prefix)
        return clause

    def compile_loop(
        self,
        leaf: Leaf,
        comparator: Comparator,
        allocator: ParameterAllocator,
        prefix: str,
    ) -> str:
        if comparator in (Comparator.EQ, Comparator.NE, Comparator.ALL_OF):
            negate = "NOT " if comparator is Comparator.NE else ""
            values = [_coerce(leaf, value) for value in leaf.values]
            probe = metadata.loop_probe(leaf.field_name, values)
            return f"{negate}{prefix}metadata @> {allocator.bind(metadata.dumps(probe))}"
        return super().compile_loop(leaf, comparator, allocator, prefix)


def _coerce(leaf: Leaf, value: Any) -> Any:
    try:
        return leaf.field_type.coerce(value)
    except (TypeError, ValueError) as exc:
        raise MalformedCriteria(
            f"Value {value!r} is not a valid {leaf.field_type.value}",
            leaf.field_name,
        ) from exc
