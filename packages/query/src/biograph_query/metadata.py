"""
The per-record metadata document shape.

Each attribute maps to a descriptor, either scalar::

    {"mass": {"value": 1.5, "unit": "M☉"}}

or repeated ("loop")::

    {"band": {"values": ["U", "B"], "units": ["nm", "nm"]}}

The containment strategy builds probe documents in this shape and the
write-side EAV projector reads stored documents in it, so both go through
the helpers below.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence

VALUE = "value"
VALUES = "values"
UNIT = "unit"
UNITS = "units"


def scalar_probe(name: str, value: Any) -> dict[str, Any]:
    return {name: {VALUE: value}}


def unit_probe(name: str, unit: str) -> dict[str, Any]:
    return {name: {UNIT: unit}}


def loop_probe(name: str, values: Sequence[Any]) -> dict[str, Any]:
    return {name: {VALUES: list(values)}}


def dumps(document: Mapping[str, Any]) -> str:
    """Serialize a probe document the way it is bound as a JSONB parameter."""
    return json.dumps(document, separators=(",", ":"), ensure_ascii=False)


def is_loop(descriptor: Mapping[str, Any]) -> bool:
    return isinstance(descriptor.get(VALUES), list)


def iter_entries(descriptor: Mapping[str, Any]) -> Iterator[tuple[Any, Any]]:
    """
    Yield ``(value, unit)`` pairs stored in one descriptor.

    A loop yields one pair per element; missing units are ``None``.
    A descriptor holding neither ``value`` nor ``values`` yields nothing.
    """
    if is_loop(descriptor):
        units = descriptor.get(UNITS) or []
        for index, value in enumerate(descriptor[VALUES]):
            yield value, units[index] if index < len(units) else None
    elif descriptor.get(VALUE) is not None:
        yield descriptor[VALUE], descriptor.get(UNIT)
