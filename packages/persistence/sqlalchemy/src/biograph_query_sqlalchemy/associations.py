"""Junction-table writes for the Subject/Sample/Data graph."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import column, insert, select, table

from biograph_query.graph import EntityGraph

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.sql.expression import TableClause

    from biograph_query.graph import EntityKind, JoinPath

logger = logging.getLogger(__name__)


def junction_table(path: JoinPath) -> TableClause:
    return table(path.table, column(path.child_column), column(path.parent_column))


class AssociationWriter:
    """
    Links child records to their parents.

    Junction names and columns come from the same :class:`EntityGraph` the
    query compiler joins through, so written links are the ones queries
    follow.
    """

    def __init__(
        self, session: AsyncSession, graph: EntityGraph | None = None
    ) -> None:
        self._session = session
        self._graph = graph or EntityGraph.default()

    async def link_parents(
        self,
        child_kind: EntityKind,
        child_id: int,
        parent_kind: EntityKind,
        parent_ids: Iterable[int],
    ) -> list[int]:
        """
        Insert the junction rows missing between *child_id* and *parent_ids*.

        Existing links are kept and nothing is deleted. Returns the parent
        ids that were newly linked, in request order.

        Raises:
            UnknownJoinPath: The two kinds have no junction table.
        """
        path = self._graph.lookup_join(child_kind, parent_kind)
        junction = junction_table(path)
        child = junction.c[path.child_column]
        parent = junction.c[path.parent_column]

        result = await self._session.execute(
            select(parent).where(child == child_id)
        )
        linked = set(result.scalars().all())
        missing = [pid for pid in dict.fromkeys(parent_ids) if pid not in linked]

        if missing:
            await self._session.execute(
                insert(junction),
                [
                    {path.child_column: child_id, path.parent_column: pid}
                    for pid in missing
                ],
            )
        logger.info(
            "Linked %s %s to %d new %s parent(s) via %s",
            child_kind.value,
            child_id,
            len(missing),
            parent_kind.value,
            path.table,
        )
        return missing
