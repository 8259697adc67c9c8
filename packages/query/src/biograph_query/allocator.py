from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable


class ParameterAllocator:
    """
    Placeholder bookkeeping for one ``compose`` call.

    Placeholders are 1-based (``$1``, ``$2``, ...) and every bound value is
    appended in emission order, so ``len(parameters) == position`` holds
    after every call. CTE names (``nested_1``, ``nested_2``, ...) come from
    an independent counter. Never share an instance between calls.
    """

    def __init__(self) -> None:
        self.position = 0
        self.parameters: list[Any] = []
        self._cte_count = 0

    def bind(self, value: Any) -> str:
        """Append one value and return its placeholder."""
        self.parameters.append(value)
        self.position += 1
        return f"${self.position}"

    def bind_all(self, values: Iterable[Any]) -> list[str]:
        """Bind each value to its own placeholder, flattening the sequence."""
        return [self.bind(value) for value in values]

    def next_cte_alias(self) -> str:
        self._cte_count += 1
        return f"nested_{self._cte_count}"

    @property
    def cte_count(self) -> int:
        return self._cte_count
