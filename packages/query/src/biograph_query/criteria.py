"""
Criteria AST.

A search request is a tree of four node kinds:

- :class:`Leaf`: one condition over a metadata attribute,
- :class:`Specialized`: conditions over real columns of the current entity
  (Subject ``code``/``sex``, Sample ``biobank``/``biobankCode``),
- :class:`PersonalDetails`: conditions over the personal details row a
  Subject points to,
- :class:`Nested`: a sub-query rooted at another data type, one level
  deeper in the entity graph.

Nodes are frozen and never touched by the compiler. Requests arrive as
camelCase JSON and are turned into nodes by :class:`CriteriaFactory`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from .comparators import ensure_comparator
from .exceptions import InvalidComparator, MalformedCriteria
from .graph import EntityGraph, EntityKind

if TYPE_CHECKING:
    from collections.abc import Mapping


class FieldType(str, Enum):
    """SQL cast applied to an extracted metadata value."""

    TEXT = "text"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATE = "date"

    @classmethod
    def parse(cls, value: Any, path: str | None = None) -> FieldType:
        if isinstance(value, FieldType):
            return value
        if isinstance(value, str):
            try:
                return cls(value.lower())
            except ValueError:
                pass
        raise MalformedCriteria(
            f"Unknown field type {value!r}; expected one of "
            f"{', '.join(t.value for t in cls)}",
            path,
        )

    def coerce(self, value: Any) -> Any:
        """Convert a request value to the JSON type stored in metadata."""
        if self is FieldType.INTEGER:
            return int(value)
        if self is FieldType.FLOAT:
            return float(value)
        if self is FieldType.BOOLEAN:
            if isinstance(value, bool):
                return value
            return str(value).lower() == "true"
        return value


class Junction(str, Enum):
    AND = "AND"
    OR = "OR"


@dataclass(frozen=True)
class Leaf:
    field_name: str
    field_type: FieldType
    comparator: str
    field_value: Any = None
    field_unit: str | tuple[str, ...] | None = None
    is_list: bool = False
    is_in_loop: bool = False
    case_insensitive: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.field_value, list):
            object.__setattr__(self, "field_value", tuple(self.field_value))
        if isinstance(self.field_value, tuple) and not self.is_list:
            raise MalformedCriteria(
                "'fieldValue' list requires 'isList'", self.field_name
            )

    @property
    def values(self) -> tuple[Any, ...]:
        """The bound value(s), upper-cased for case-insensitive text."""
        raw = self.field_value if self.is_list else (self.field_value,)
        if self.case_insensitive and self.field_type is FieldType.TEXT:
            return tuple(v.upper() if isinstance(v, str) else v for v in raw)
        return tuple(raw)

    @property
    def units(self) -> tuple[str, ...]:
        if self.field_unit is None:
            return ()
        if isinstance(self.field_unit, tuple):
            return self.field_unit
        return (self.field_unit,)


@dataclass(frozen=True)
class Condition:
    """One ``(property, comparator, value)`` triple."""

    property: str
    value: Any
    comparator: str | None = None

    @property
    def is_list(self) -> bool:
        return isinstance(self.value, tuple)


@dataclass(frozen=True)
class Specialized:
    kind: EntityKind
    conditions: tuple[Condition, ...]


@dataclass(frozen=True)
class PersonalDetails:
    conditions: tuple[Condition, ...]


@dataclass(frozen=True)
class Nested:
    data_type: int | tuple[int, ...]
    model: EntityKind = EntityKind.DATA
    content: tuple[Node, ...] = ()
    junction: Junction = Junction.AND
    label: str | None = None
    get_metadata: bool = False

    @property
    def children(self) -> tuple[Nested, ...]:
        return tuple(node for node in self.content if isinstance(node, Nested))


Node = Leaf | Specialized | PersonalDetails | Nested


@dataclass(frozen=True)
class QueryFlags:
    """Request-level switches that are not part of the tree itself."""

    wants_subject: bool = False
    wants_personal_info: bool = False
    leaf_search: bool = False


@dataclass(frozen=True)
class CriteriaRequest:
    root: Nested
    flags: QueryFlags = QueryFlags()


# camelCase property -> personal_details column
PERSONAL_DETAILS_PROPERTIES: Mapping[str, str] = {
    "givenName": "given_name",
    "surname": "surname",
    "birthDate": "birth_date",
}


class CriteriaFactory:
    """
    Build criteria trees from camelCase request dictionaries.

    Supports:
    - ``from_dict(data)``: parse a request into a :class:`CriteriaRequest`
    - ``from_json(text)``: same, from a JSON string
    - ``validate(data)``: list every structural problem without raising
    """

    # ------------------------------------------------------------------ #
    # Public API                                                          #
    # ------------------------------------------------------------------ #

    @staticmethod
    def from_dict(
        data: Mapping[str, Any], *, graph: EntityGraph | None = None
    ) -> CriteriaRequest:
        """
        Parse a request dictionary.

        Raises:
            MalformedCriteria: On the first node missing a required field.
        """
        return _Parser(graph or EntityGraph.default()).request(data)

    @staticmethod
    def from_json(text: str, *, graph: EntityGraph | None = None) -> CriteriaRequest:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedCriteria(f"Invalid JSON: {exc}", path="<root>") from exc
        if not isinstance(data, dict):
            raise MalformedCriteria(
                "Top-level JSON value must be an object", path="<root>"
            )
        return CriteriaFactory.from_dict(data, graph=graph)

    @staticmethod
    def validate(
        data: Mapping[str, Any], *, graph: EntityGraph | None = None
    ) -> list[str]:
        """Return every structural error message; empty when valid."""
        parser = _Parser(graph or EntityGraph.default(), collect=True)
        parser.request(data)
        return parser.errors


class _Parser:
    def __init__(self, graph: EntityGraph, collect: bool = False) -> None:
        self._graph = graph
        self._collect = collect
        self.errors: list[str] = []

    def _fail(self, message: str, path: str) -> None:
        if not self._collect:
            raise MalformedCriteria(message, path)
        self.errors.append(f"{path}: {message}")

    def _check_comparator(self, comparator: Any, path: str) -> None:
        try:
            ensure_comparator(comparator)
        except InvalidComparator as exc:
            if not self._collect:
                raise
            self.errors.append(f"{path}: {exc}")

    def request(self, data: Mapping[str, Any]) -> CriteriaRequest:
        flags = QueryFlags(
            wants_subject=bool(data.get("wantsSubject")),
            wants_personal_info=bool(data.get("wantsPersonalInfo")),
            leaf_search=bool(data.get("leafSearch")),
        )
        root = self.nested(data, "<root>")
        return CriteriaRequest(root=root, flags=flags)

    def node(self, data: Any, path: str) -> Node | None:
        if not isinstance(data, dict):
            self._fail("Criteria node must be an object", path)
            return None
        if not data:
            return None
        if "dataType" in data:
            return self.nested(data, path)
        if data.get("personalDetails"):
            return self.personal_details(data, path)
        if "specializedQuery" in data:
            return self.specialized(data, path)
        return self.leaf(data, path)

    def nested(self, data: Mapping[str, Any], path: str) -> Nested:
        data_type = data.get("dataType")
        if isinstance(data_type, list):
            if not data_type or not all(_is_int(dt) for dt in data_type):
                self._fail("'dataType' list must hold integer ids", path)
            data_type = tuple(data_type)
        elif not _is_int(data_type):
            self._fail("'dataType' must be an integer id or a list of ids", path)

        try:
            model = EntityKind.parse(data.get("model") or EntityKind.DATA, path)
        except MalformedCriteria as exc:
            self._fail(exc.message, path)
            model = EntityKind.DATA

        content = data.get("content") or []
        if not isinstance(content, list):
            self._fail("'content' must be a list", path)
            content = []
        nodes = []
        for idx, child in enumerate(content):
            node = self.node(child, f"{path}.content[{idx}]")
            if node is not None:
                nodes.append(node)

        return Nested(
            data_type=data_type,
            model=model,
            content=tuple(nodes),
            junction=Junction.OR if data.get("junction") == "OR" else Junction.AND,
            label=data.get("label") or None,
            get_metadata=bool(data.get("getMetadata")),
        )

    def leaf(self, data: Mapping[str, Any], path: str) -> Leaf | None:
        if data.get("comparator"):
            self._check_comparator(data["comparator"], path)
        for required in ("fieldName", "fieldType", "comparator"):
            if not data.get(required):
                self._fail(f"Leaf requires '{required}'", path)
                return None
        if data.get("fieldValue") is None:
            self._fail("Leaf requires 'fieldValue'", path)
            return None

        try:
            field_type = FieldType.parse(data["fieldType"], path)
        except MalformedCriteria as exc:
            self._fail(exc.message, path)
            return None

        is_list = bool(data.get("isList"))
        value = data["fieldValue"]
        if is_list:
            if not isinstance(value, list) or not value:
                self._fail("'isList' leaf requires a non-empty 'fieldValue' list", path)
                return None
            value = tuple(value)
        elif isinstance(value, list):
            self._fail("'fieldValue' list requires 'isList'", path)
            return None

        unit = data.get("fieldUnit") or None
        if isinstance(unit, list):
            unit = tuple(unit) or None

        return Leaf(
            field_name=data["fieldName"],
            field_type=field_type,
            comparator=data["comparator"],
            field_value=value,
            field_unit=unit,
            is_list=is_list,
            is_in_loop=bool(data.get("isInLoop")),
            case_insensitive=bool(data.get("caseInsensitive")),
        )

    def specialized(self, data: Mapping[str, Any], path: str) -> Specialized | None:
        try:
            kind = EntityKind.parse(data["specializedQuery"], path)
        except MalformedCriteria as exc:
            self._fail(exc.message, path)
            return None
        properties = self._graph.describe(kind).specialized_properties
        if not properties:
            self._fail(f"{kind.value} has no specialized properties", path)
            return None
        return Specialized(
            kind=kind, conditions=self.conditions(data, properties, path)
        )

    def personal_details(
        self, data: Mapping[str, Any], path: str
    ) -> PersonalDetails:
        return PersonalDetails(
            conditions=self.conditions(data, PERSONAL_DETAILS_PROPERTIES, path)
        )

    def conditions(
        self, data: Mapping[str, Any], properties: Mapping[str, str], path: str
    ) -> tuple[Condition, ...]:
        conditions = []
        for prop in properties:
            value = data.get(prop)
            if value is None or value == "" or value == []:
                continue
            comparator = data.get(f"{prop}Comparator") or None
            if comparator is not None:
                self._check_comparator(comparator, f"{path}.{prop}Comparator")
            conditions.append(
                Condition(
                    property=prop,
                    value=tuple(value) if isinstance(value, list) else value,
                    comparator=comparator,
                )
            )
        return tuple(conditions)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
