"""Raw SQL execution over SQLAlchemy sessions and connections."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import Result, text
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

Params = Mapping[str, Any] | None


def _rows(result: Result) -> list[dict[str, Any]]:
    if not result.returns_rows:
        return []
    return [dict(row) for row in result.mappings().all()]


class SqlExecutor:
    """Runs ``text()`` statements with named ``:param`` binds on a Session or Connection."""

    def __init__(self, bind: Session | Connection):
        self.bind = bind

    def execute(self, sql: str, params: Params = None) -> Result:
        logger.debug("Executing SQL: %s", sql)
        return self.bind.execute(text(sql), dict(params or {}))

    def execute_rows(self, sql: str, params: Params = None) -> list[dict[str, Any]]:
        return _rows(self.execute(sql, params))

    def execute_batch(self, statements: Sequence[str], params: Params = None) -> list[list[dict[str, Any]]]:
        """Run ``statements`` in order on one connection, one result set per statement."""
        return [self.execute_rows(sql, params) for sql in statements]

    def execute_non_query(self, sql: str, params: Params = None) -> int:
        """Run a write statement and return the affected-row count."""
        return self.execute(sql, params).rowcount

    def execute_scalar(self, sql: str, params: Params = None) -> Any:
        return self.execute(sql, params).scalar()


class AsyncSqlExecutor:
    """Async twin of :class:`SqlExecutor` over an AsyncSession or AsyncConnection."""

    def __init__(self, bind: AsyncSession | AsyncConnection):
        self.bind = bind

    async def execute(self, sql: str, params: Params = None) -> Result:
        logger.debug("Executing SQL: %s", sql)
        return await self.bind.execute(text(sql), dict(params or {}))

    async def execute_rows(self, sql: str, params: Params = None) -> list[dict[str, Any]]:
        return _rows(await self.execute(sql, params))

    async def execute_batch(self, statements: Sequence[str], params: Params = None) -> list[list[dict[str, Any]]]:
        return [await self.execute_rows(sql, params) for sql in statements]

    async def execute_non_query(self, sql: str, params: Params = None) -> int:
        return (await self.execute(sql, params)).rowcount

    async def execute_scalar(self, sql: str, params: Params = None) -> Any:
        return (await self.execute(sql, params)).scalar()
