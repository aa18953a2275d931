from __future__ import annotations

from multirepo.dialects.base import Dialect, DialectRenderer, join_sql
from multirepo.schemas.paging import PagingRequest


class SqlServerRenderer(DialectRenderer):
    """SQL Server paging.

    2012+ (major version 11) uses OFFSET/FETCH; older servers number rows
    with ROW_NUMBER() and filter on the range. Both idioms need an ORDER BY,
    so a constant order stands in when none is given. T-SQL rejects ORDER BY
    inside a CTE, so the CTE form orders in the terminal select instead of
    splicing the order into the CTE.
    """

    dialect = Dialect.SQLSERVER
    total_alias = "[TOTAL]"
    fallback_order = "ORDER BY (SELECT 0)"
    modern_since = 11

    def _window_plain(self, base_query: str, order: str, page: PagingRequest, legacy: bool) -> str:
        if legacy:
            return (
                f"SELECT * FROM (SELECT ROW_NUMBER() OVER ({order}) AS [ROWNUMBER], * FROM ({base_query}) AS T) AS N "
                f"WHERE [ROWNUMBER] BETWEEN {page.row_start} AND {page.row_end} ORDER BY [ROWNUMBER]"
            )
        return join_sql(
            f"SELECT * FROM ({base_query}) AS T",
            order,
            f"OFFSET {page.offset} ROWS FETCH NEXT {page.page_size} ROWS ONLY",
        )

    def _window_cte(self, cte: str, order: str, page: PagingRequest, legacy: bool) -> str:
        if legacy:
            return (
                f"{cte}, R AS (SELECT ROW_NUMBER() OVER ({order}) AS [ROWNUMBER], * FROM T) "
                f"SELECT * FROM R WHERE [ROWNUMBER] BETWEEN {page.row_start} AND {page.row_end} ORDER BY [ROWNUMBER]"
            )
        return join_sql(
            f"{cte} SELECT * FROM T",
            order,
            f"OFFSET {page.offset} ROWS FETCH NEXT {page.page_size} ROWS ONLY",
        )
