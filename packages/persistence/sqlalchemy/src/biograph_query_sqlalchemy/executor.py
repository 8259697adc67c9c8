"""Execution of compiled statements on an async session."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from biograph_query import QueryBuilder

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.ext.asyncio import AsyncSession

    from biograph_query import CompiledStatement, CriteriaRequest, Nested, QueryFlags

logger = logging.getLogger(__name__)


class StatementExecutor:
    """
    Runs :class:`CompiledStatement` objects through the session's driver.

    Compiled statements use PostgreSQL ``$n`` placeholders, so they bypass
    SQLAlchemy's own parameter handling and go straight to the driver
    connection via ``exec_driver_sql``. The session must be bound to the
    asyncpg dialect.
    """

    def __init__(
        self, session: AsyncSession, builder: QueryBuilder | None = None
    ) -> None:
        self._session = session
        self._builder = builder or QueryBuilder()

    async def fetch(self, compiled: CompiledStatement) -> list[Mapping[str, Any]]:
        connection = await self._session.connection()
        # values are never logged
        logger.debug(
            "Executing statement with %d parameter(s)", len(compiled.parameters)
        )
        result = await connection.exec_driver_sql(
            compiled.statement, compiled.parameters
        )
        return list(result.mappings().all())

    async def search(
        self,
        criteria: Nested | CriteriaRequest | Mapping[str, Any],
        flags: QueryFlags | None = None,
    ) -> list[Mapping[str, Any]]:
        """Compose *criteria* with this executor's builder and fetch the rows."""
        return await self.fetch(self._builder.compose(criteria, flags))
