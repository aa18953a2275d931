from __future__ import annotations

from multirepo.dialects.base import Dialect, DialectRenderer, join_sql, splice_order
from multirepo.schemas.paging import PagingRequest


class LimitOffsetRenderer(DialectRenderer):
    """LIMIT/OFFSET paging shared by PostgreSQL, MySQL and SQLite.

    These dialects have no legacy idiom and accept a missing ORDER BY, in
    which case the page is taken from an unordered result.
    """

    def _window_plain(self, base_query: str, order: str, page: PagingRequest, legacy: bool) -> str:
        return join_sql(
            f"SELECT * FROM ({base_query}) AS X",
            order,
            f"LIMIT {page.page_size} OFFSET {page.offset}",
        )

    def _window_cte(self, cte: str, order: str, page: PagingRequest, legacy: bool) -> str:
        return f"{splice_order(cte, order)} SELECT * FROM T LIMIT {page.page_size} OFFSET {page.offset}"


class PostgreSqlRenderer(LimitOffsetRenderer):
    dialect = Dialect.POSTGRESQL


class MySqlRenderer(LimitOffsetRenderer):
    dialect = Dialect.MYSQL


class SqliteRenderer(LimitOffsetRenderer):
    dialect = Dialect.SQLITE
