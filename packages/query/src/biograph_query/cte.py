"""
Common table expression assembly.

Walks a compiled tree and decides, per node, what it contributes to the
final statement:

- the root contributes its WHERE clause only (see ``statement``),
- auxiliary one-hop lookups (``s`` subject, ``pd`` personal details,
  ``bb`` biobank) are added from request flags, in that fixed order,
- every nested node becomes ``nested_k AS (...)`` joined to its parent
  through the junction registered for ``(child kind, parent kind)``.

Nested CTEs follow the auxiliary ones in pre-order, so output is stable
for a given tree.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .compiler import PERSONAL_DETAILS_TABLE, ROOT_ALIAS
from .graph import EntityKind

if TYPE_CHECKING:
    from .compiler import CompiledNode
    from .criteria import QueryFlags
    from .graph import EntityGraph

logger = logging.getLogger(__name__)

SUBJECT_ALIAS = "s"
PERSONAL_DETAILS_ALIAS = "pd"
BIOBANK_ALIAS = "bb"

_SUBJECT_BODY = "SELECT id, code, sex, personal_info FROM subject"
_PERSONAL_DETAILS_BODY = (
    f"SELECT id, given_name, surname, birth_date FROM {PERSONAL_DETAILS_TABLE}"
)
_BIOBANK_BODY = "SELECT id, biobank_id, acronym AS biobank_acronym, name FROM biobank"


@dataclass(frozen=True)
class Projection:
    """A selected column, optionally renamed."""

    expression: str
    alias: str | None = None

    def render(self) -> str:
        if self.alias:
            return f"{self.expression} AS {self.alias}"
        return self.expression


@dataclass(frozen=True)
class CommonTableExpression:
    """
    One named sub-query plus the JOIN that attaches it to the main query.

    ``projections`` are plain columns it adds to the main SELECT;
    ``aggregates`` are ``(key, column)`` pairs folded into the ``parents``
    array in leaf-search mode.
    """

    alias: str
    body: str
    join: str
    projections: tuple[Projection, ...] = ()
    aggregates: tuple[tuple[str, str], ...] = ()

    @property
    def definition(self) -> str:
        return f"{self.alias} AS ({self.body})"


class CteAssembler:
    """Turn a compiled tree into an ordered list of CTEs."""

    def __init__(self, graph: EntityGraph) -> None:
        self._graph = graph

    def assemble(
        self, root: CompiledNode, flags: QueryFlags
    ) -> list[CommonTableExpression]:
        ctes = self._auxiliary(root, flags)
        parents = {child.alias: root for child in root.children}
        for compiled in root.walk():
            parents.update({child.alias: compiled for child in compiled.children})
            ctes.append(
                self._nested(compiled, parents[compiled.alias], flags.leaf_search)
            )
        logger.debug(
            "Assembled %d CTE(s): %s", len(ctes), ", ".join(c.alias for c in ctes)
        )
        return ctes

    # -- auxiliary lookups ---------------------------------------------------

    def _auxiliary(
        self, root: CompiledNode, flags: QueryFlags
    ) -> list[CommonTableExpression]:
        ctes: list[CommonTableExpression] = []
        wants_subject = flags.wants_subject and root.kind is not EntityKind.SUBJECT

        if wants_subject:
            path = self._graph.lookup_join(root.kind, EntityKind.SUBJECT)
            ctes.append(
                CommonTableExpression(
                    alias=SUBJECT_ALIAS,
                    body=_SUBJECT_BODY,
                    join=(
                        f'LEFT JOIN {path.table} AS {path.alias} '
                        f'ON {path.alias}."{path.child_column}" = {ROOT_ALIAS}.id '
                        f"LEFT JOIN {SUBJECT_ALIAS} "
                        f'ON {SUBJECT_ALIAS}.id = {path.alias}."{path.parent_column}"'
                    ),
                    projections=(
                        Projection(f"{SUBJECT_ALIAS}.code", "subject_code"),
                        Projection(f"{SUBJECT_ALIAS}.sex", "subject_sex"),
                    ),
                )
            )

        if root.kind is EntityKind.SUBJECT:
            owner = ROOT_ALIAS
        elif wants_subject:
            owner = SUBJECT_ALIAS
        else:
            owner = None
        if owner and (flags.wants_personal_info or root.joins_personal_details):
            projections: tuple[Projection, ...] = ()
            if flags.wants_personal_info:
                projections = tuple(
                    Projection(f"{PERSONAL_DETAILS_ALIAS}.{column}")
                    for column in ("given_name", "surname", "birth_date")
                )
            ctes.append(
                CommonTableExpression(
                    alias=PERSONAL_DETAILS_ALIAS,
                    body=_PERSONAL_DETAILS_BODY,
                    join=(
                        f"LEFT JOIN {PERSONAL_DETAILS_ALIAS} "
                        f"ON {PERSONAL_DETAILS_ALIAS}.id = {owner}.personal_info"
                    ),
                    projections=projections,
                )
            )

        if root.kind is EntityKind.SAMPLE:
            ctes.append(
                CommonTableExpression(
                    alias=BIOBANK_ALIAS,
                    body=_BIOBANK_BODY,
                    join=(
                        f"LEFT JOIN {BIOBANK_ALIAS} "
                        f"ON {BIOBANK_ALIAS}.id = {ROOT_ALIAS}.biobank"
                    ),
                    projections=(Projection(f"{BIOBANK_ALIAS}.biobank_acronym"),),
                )
            )
        return ctes

    # -- nested criteria -----------------------------------------------------

    def _nested(
        self, compiled: CompiledNode, parent: CompiledNode, leaf_search: bool
    ) -> CommonTableExpression:
        path = self._graph.lookup_join(compiled.kind, parent.kind)
        junction = f"{path.alias}_{compiled.number}"
        join = (
            f"INNER JOIN {path.table} AS {junction} "
            f'ON {junction}."{path.parent_column}" = {parent.alias}.id '
            f"INNER JOIN {compiled.alias} "
            f'ON {junction}."{path.child_column}" = {compiled.alias}.id'
        )

        aggregates: tuple[tuple[str, str], ...] = ()
        label = compiled.node.label
        if leaf_search and label:
            columns = ["id"]
            if compiled.node.get_metadata:
                columns.append("metadata")
                if compiled.kind is EntityKind.SAMPLE:
                    columns.append("biobank_code")
                elif compiled.kind is EntityKind.SUBJECT:
                    columns.extend(("code", "sex"))
            aggregates = tuple(
                (f"{label}_{column}", f"{compiled.alias}.{column}")
                for column in columns
            )

        if compiled.body is None:
            raise ValueError(f"CTE {compiled.alias} has no body")
        return CommonTableExpression(
            alias=compiled.alias,
            body=compiled.body,
            join=join,
            aggregates=aggregates,
        )
