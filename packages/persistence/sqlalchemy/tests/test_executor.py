from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncConnection

from biograph_query import CompiledStatement, QueryBuilder, data_type_tree
from biograph_query_sqlalchemy import StatementExecutor


@pytest.fixture
def connection(session) -> AsyncMock:
    connection = AsyncMock(spec=AsyncConnection)
    result = MagicMock()
    result.mappings.return_value.all.return_value = [{"id": 1, "type": 3}]
    connection.exec_driver_sql.return_value = result
    session.connection.return_value = connection
    return connection


@pytest.mark.asyncio()
async def test_fetch_passes_placeholders_through(session, connection):
    compiled = CompiledStatement("SELECT id, type FROM data WHERE type = $1", (3,))

    rows = await StatementExecutor(session).fetch(compiled)

    assert rows == [{"id": 1, "type": 3}]
    connection.exec_driver_sql.assert_awaited_once_with(
        "SELECT id, type FROM data WHERE type = $1", (3,)
    )


@pytest.mark.asyncio()
async def test_fetch_tree_query(session, connection):
    await StatementExecutor(session).fetch(data_type_tree(5))
    statement, parameters = connection.exec_driver_sql.await_args.args
    assert statement.startswith("WITH RECURSIVE")
    assert parameters == (5,)


@pytest.mark.asyncio()
async def test_search_composes_with_the_builder(session, connection):
    executor = StatementExecutor(session, QueryBuilder(strategy="path"))

    await executor.search({"dataType": 3, "model": "Data"})

    statement, parameters = connection.exec_driver_sql.await_args.args
    assert statement.startswith("SELECT DISTINCT d.id, d.type, d.owner")
    assert parameters == (3,)
