"""
Fluent builder for criteria trees.

Example::

    criteria = (
        CriteriaBuilder(EntityKind.SUBJECT, data_type=1)
        .specialized(sex=["F", "M"])
        .nested(EntityKind.SAMPLE, data_type=2, label="tumour")
            .where("Diagnosis Age", "integer", "<=", 365, unit="days")
        .end_nested()
        .build()
    )
"""

from __future__ import annotations

from typing import Any

from .comparators import Comparator
from .criteria import (
    Condition,
    FieldType,
    Junction,
    Leaf,
    Nested,
    PersonalDetails,
    Specialized,
)
from .graph import EntityKind


class _Frame:
    def __init__(self, kind: EntityKind, data_type: Any, **options: Any) -> None:
        self.kind = kind
        self.data_type = tuple(data_type) if isinstance(data_type, list) else data_type
        self.options = options
        self.content: list[Any] = []

    def freeze(self) -> Nested:
        return Nested(
            data_type=self.data_type,
            model=self.kind,
            content=tuple(self.content),
            **self.options,
        )


class CriteriaBuilder:
    """
    Fluent builder for composing criteria trees.

    Conditions added at the same level are combined with the level's
    junction (AND unless ``junction="OR"``). ``nested()`` opens a child
    level and ``end_nested()`` closes it.
    """

    def __init__(
        self,
        kind: EntityKind,
        data_type: int | list[int] | tuple[int, ...],
        *,
        junction: Junction | str = Junction.AND,
        label: str | None = None,
        get_metadata: bool = False,
    ) -> None:
        self._stack = [
            _Frame(
                kind,
                data_type,
                junction=Junction(junction),
                label=label,
                get_metadata=get_metadata,
            )
        ]

    # -- conditions ----------------------------------------------------------

    def where(
        self,
        field_name: str,
        field_type: FieldType | str,
        comparator: Comparator | str,
        value: Any,
        *,
        unit: str | list[str] | None = None,
        loop: bool = False,
        case_insensitive: bool = False,
    ) -> CriteriaBuilder:
        """Add a metadata condition to the current level."""
        is_list = isinstance(value, list | tuple)
        self._stack[-1].content.append(
            Leaf(
                field_name=field_name,
                field_type=FieldType.parse(field_type),
                comparator=comparator.value
                if isinstance(comparator, Comparator)
                else comparator,
                field_value=tuple(value) if is_list else value,
                field_unit=tuple(unit) if isinstance(unit, list) else unit,
                is_list=is_list,
                is_in_loop=loop,
                case_insensitive=case_insensitive,
            )
        )
        return self

    def specialized(
        self, comparators: dict[str, str] | None = None, **values: Any
    ) -> CriteriaBuilder:
        """Add conditions on the current entity's own columns."""
        frame = self._stack[-1]
        frame.content.append(
            Specialized(kind=frame.kind, conditions=_conditions(values, comparators))
        )
        return self

    def personal_details(
        self, comparators: dict[str, str] | None = None, **values: Any
    ) -> CriteriaBuilder:
        """Add conditions on the Subject's personal details."""
        self._stack[-1].content.append(
            PersonalDetails(conditions=_conditions(values, comparators))
        )
        return self

    # -- nesting -------------------------------------------------------------

    def nested(
        self,
        kind: EntityKind,
        data_type: int | list[int] | tuple[int, ...],
        *,
        junction: Junction | str = Junction.AND,
        label: str | None = None,
        get_metadata: bool = False,
    ) -> CriteriaBuilder:
        """Open a nested level.  Close with ``end_nested()``."""
        self._stack.append(
            _Frame(
                kind,
                data_type,
                junction=Junction(junction),
                label=label,
                get_metadata=get_metadata,
            )
        )
        return self

    def end_nested(self) -> CriteriaBuilder:
        if len(self._stack) == 1:
            raise ValueError("No nested level to close")
        frame = self._stack.pop()
        self._stack[-1].content.append(frame.freeze())
        return self

    # -- build ---------------------------------------------------------------

    def build(self) -> Nested:
        """
        Return the root node.

        Raises:
            ValueError: If nested levels are still open.
        """
        if len(self._stack) > 1:
            raise ValueError(
                f"{len(self._stack) - 1} nested level(s) still open; "
                f"call end_nested() before build()"
            )
        return self._stack[0].freeze()


def _conditions(
    values: dict[str, Any], comparators: dict[str, str] | None
) -> tuple[Condition, ...]:
    comparators = comparators or {}
    return tuple(
        Condition(
            property=prop,
            value=tuple(value) if isinstance(value, list) else value,
            comparator=comparators.get(prop),
        )
        for prop, value in values.items()
    )
