"""
Entity graph model.

Subjects, Samples and generic Data records relate to each other through
many-to-many junction tables, one per (child kind, parent kind) pair.
Junction columns keep the naming of the tables that own them:

    ``child_column``   holds the id of the child row
                       (e.g. ``data_parentSample`` holds a Data id),
    ``parent_column``  holds the id of the parent row
                       (e.g. ``sample_childrenData`` holds a Sample id).

The graph is immutable. Build it once with :meth:`EntityGraph.default` and
pass it by reference to whoever compiles queries or maintains links.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from .exceptions import MalformedCriteria, UnknownJoinPath

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


class EntityKind(str, Enum):
    """The three polymorphic entity kinds."""

    SUBJECT = "Subject"
    SAMPLE = "Sample"
    DATA = "Data"

    @property
    def table(self) -> str:
        return self.value.lower()

    @classmethod
    def parse(cls, value: Any, path: str | None = None) -> EntityKind:
        if isinstance(value, EntityKind):
            return value
        for kind in cls:
            if isinstance(value, str) and value.lower() == kind.table:
                return kind
        raise MalformedCriteria(f"Unknown entity model: {value!r}", path)


@dataclass(frozen=True)
class JoinPath:
    """One junction table linking a child kind to a parent kind."""

    table: str
    child_column: str
    parent_column: str
    alias: str


@dataclass(frozen=True)
class EntityDescription:
    """Table and column layout of one entity kind."""

    table: str
    # projected by the root query, after id, type and owner
    default_columns: tuple[str, ...] = ()
    # selected inside a nested CTE
    subquery_columns: tuple[str, ...] = ("id",)
    # camelCase property -> column for specialized conditions
    specialized_properties: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({})
    )


def _key(child: EntityKind, parent: EntityKind) -> str:
    return f"{child.table}_{parent.table}"


class EntityGraph:
    """
    Immutable registry of join paths and entity descriptions.

    Join paths are looked up by the key ``"{child}_{parent}"``. A relation
    between two kinds always goes through exactly one junction table.
    """

    def __init__(
        self,
        joins: Mapping[tuple[EntityKind, EntityKind], JoinPath],
        entities: Mapping[EntityKind, EntityDescription],
    ) -> None:
        self._joins = MappingProxyType(
            {_key(child, parent): path for (child, parent), path in joins.items()}
        )
        self._entities = MappingProxyType(dict(entities))

    def lookup_join(self, child: EntityKind, parent: EntityKind) -> JoinPath:
        """
        Return the junction linking *child* rows to *parent* rows.

        Raises:
            UnknownJoinPath: If the pair has no registered junction.
        """
        try:
            return self._joins[_key(child, parent)]
        except KeyError:
            raise UnknownJoinPath(
                child.value, parent.value, list(self._joins)
            ) from None

    def describe(self, kind: EntityKind) -> EntityDescription:
        return self._entities[kind]

    def join_paths(self) -> Iterable[tuple[str, JoinPath]]:
        return self._joins.items()

    @classmethod
    def default(cls) -> EntityGraph:
        """The standard Subject/Sample/Data graph."""
        subject, sample, data = EntityKind.SUBJECT, EntityKind.SAMPLE, EntityKind.DATA
        joins = {
            (data, data): JoinPath(
                "data_childrendata__data_parentdata",
                "data_parentData",
                "data_childrenData",
                "dtdt",
            ),
            (data, sample): JoinPath(
                "data_parentsample__sample_childrendata",
                "data_parentSample",
                "sample_childrenData",
                "dtsm",
            ),
            (data, subject): JoinPath(
                "data_parentsubject__subject_childrendata",
                "data_parentSubject",
                "subject_childrenData",
                "dtsb",
            ),
            (sample, sample): JoinPath(
                "sample_parentsample__sample_childrensample",
                "sample_parentSample",
                "sample_childrenSample",
                "smsm",
            ),
            (sample, subject): JoinPath(
                "sample_donor__subject_childrensample",
                "sample_donor",
                "subject_childrenSample",
                "smsb",
            ),
            (subject, subject): JoinPath(
                "subject_parentsubject__subject_childrensubject",
                "subject_parentSubject",
                "subject_childrenSubject",
                "sbsb",
            ),
        }
        entities = {
            subject: EntityDescription(
                table="subject",
                default_columns=("code", "sex"),
                subquery_columns=("id", "code", "sex", "personal_info"),
                specialized_properties=MappingProxyType(
                    {"code": "code", "sex": "sex"}
                ),
            ),
            sample: EntityDescription(
                table="sample",
                default_columns=("biobank", "biobank_code"),
                subquery_columns=("id", "biobank_code"),
                specialized_properties=MappingProxyType(
                    {"biobank": "biobank", "biobankCode": "biobank_code"}
                ),
            ),
            data: EntityDescription(table="data"),
        }
        return cls(joins, entities)
