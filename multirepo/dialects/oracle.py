from __future__ import annotations

from multirepo.dialects.base import Dialect, DialectRenderer, join_sql, splice_order
from multirepo.schemas.paging import PagingRequest


class OracleRenderer(DialectRenderer):
    """Oracle paging.

    12c+ uses OFFSET/FETCH. Older servers wrap the ordered query twice:
    the inner select keeps ``ROWNUM <= row_end`` and the outer one drops
    rows numbered below ``row_start``. ROWNUM is assigned after the inner
    ORDER BY is applied, so the order must sit inside the innermost select.
    """

    dialect = Dialect.ORACLE
    total_alias = '"TOTAL"'
    alias_keyword = ""
    modern_since = 12

    def _window_plain(self, base_query: str, order: str, page: PagingRequest, legacy: bool) -> str:
        if legacy:
            return (
                f'SELECT * FROM (SELECT X.*, ROWNUM AS "ROWNUMBER" FROM ({join_sql(base_query, order)}) X '
                f'WHERE ROWNUM <= {page.row_end}) T WHERE "ROWNUMBER" >= {page.row_start}'
            )
        return join_sql(
            f"SELECT * FROM ({base_query}) T",
            order,
            f"OFFSET {page.offset} ROWS FETCH NEXT {page.page_size} ROWS ONLY",
        )

    def _window_cte(self, cte: str, order: str, page: PagingRequest, legacy: bool) -> str:
        ordered = splice_order(cte, order)
        if legacy:
            return (
                f"{ordered}, R AS (SELECT ROWNUM AS ROWNUMBER, T.* FROM T WHERE ROWNUM <= {page.row_end}) "
                f"SELECT * FROM R WHERE ROWNUMBER >= {page.row_start}"
            )
        return f"{ordered} SELECT * FROM T OFFSET {page.offset} ROWS FETCH NEXT {page.page_size} ROWS ONLY"
