import logging

import pytest

from multirepo.dialects.base import Dialect
from multirepo.errors import ConfigurationError, FormatError
from multirepo.planner import PageQueryPlanner, plan
from multirepo.schemas.paging import PagingRequest, order_spec

Q = "SELECT * FROM students WHERE age > 18"
CTE = "WITH T AS (SELECT * FROM students WHERE age > 18)"


def page_of(dialect, version=None, order_field="age", ascending=False, is_cte_form=False, base=None):
    base = base or (CTE if is_cte_form else Q)
    return plan(base, is_cte_form, order_field, ascending, 10, 2, dialect, version)


class TestSqlServer:
    def test_modern(self):
        query = page_of(Dialect.SQLSERVER, 15)
        assert query.count_sql == f"SELECT COUNT(*) AS [TOTAL] FROM ({Q}) AS T"
        assert query.page_sql == f"SELECT * FROM ({Q}) AS T ORDER BY age DESC OFFSET 10 ROWS FETCH NEXT 10 ROWS ONLY"

    def test_legacy(self):
        query = page_of(Dialect.SQLSERVER, 10)
        assert query.count_sql == f"SELECT COUNT(*) AS [TOTAL] FROM ({Q}) AS T"
        assert query.page_sql == (
            f"SELECT * FROM (SELECT ROW_NUMBER() OVER (ORDER BY age DESC) AS [ROWNUMBER], * FROM ({Q}) AS T) AS N "
            "WHERE [ROWNUMBER] BETWEEN 11 AND 20 ORDER BY [ROWNUMBER]"
        )

    def test_legacy_without_order_uses_constant_order(self):
        query = page_of(Dialect.SQLSERVER, 10, order_field=None)
        assert "ROW_NUMBER() OVER (ORDER BY (SELECT 0))" in query.page_sql
        assert query.count_sql == f"SELECT COUNT(*) AS [TOTAL] FROM ({Q}) AS T"

    def test_modern_without_order_uses_constant_order(self):
        query = page_of(Dialect.SQLSERVER, 14, order_field="")
        assert query.page_sql == (
            f"SELECT * FROM ({Q}) AS T ORDER BY (SELECT 0) OFFSET 10 ROWS FETCH NEXT 10 ROWS ONLY"
        )

    def test_unknown_version_is_modern(self):
        assert "OFFSET 10 ROWS" in page_of(Dialect.SQLSERVER, None).page_sql

    def test_cte_modern_orders_in_terminal_select(self):
        query = page_of(Dialect.SQLSERVER, 13, is_cte_form=True)
        assert query.count_sql == f"{CTE} SELECT COUNT(*) AS [TOTAL] FROM T"
        assert query.page_sql == f"{CTE} SELECT * FROM T ORDER BY age DESC OFFSET 10 ROWS FETCH NEXT 10 ROWS ONLY"

    def test_cte_legacy(self):
        query = page_of(Dialect.SQLSERVER, 10, is_cte_form=True)
        assert query.page_sql == (
            f"{CTE}, R AS (SELECT ROW_NUMBER() OVER (ORDER BY age DESC) AS [ROWNUMBER], * FROM T) "
            "SELECT * FROM R WHERE [ROWNUMBER] BETWEEN 11 AND 20 ORDER BY [ROWNUMBER]"
        )


class TestOracle:
    def test_legacy(self):
        query = page_of(Dialect.ORACLE, 11)
        assert query.count_sql == f'SELECT COUNT(*) AS "TOTAL" FROM ({Q}) T'
        assert query.page_sql == (
            f'SELECT * FROM (SELECT X.*, ROWNUM AS "ROWNUMBER" FROM ({Q} ORDER BY age DESC) X '
            'WHERE ROWNUM <= 20) T WHERE "ROWNUMBER" >= 11'
        )

    def test_legacy_without_order(self):
        query = page_of(Dialect.ORACLE, 11, order_field=None)
        assert query.page_sql == (
            f'SELECT * FROM (SELECT X.*, ROWNUM AS "ROWNUMBER" FROM ({Q}) X '
            'WHERE ROWNUM <= 20) T WHERE "ROWNUMBER" >= 11'
        )

    def test_modern(self):
        query = page_of(Dialect.ORACLE, 19)
        assert query.page_sql == f"SELECT * FROM ({Q}) T ORDER BY age DESC OFFSET 10 ROWS FETCH NEXT 10 ROWS ONLY"

    def test_cte_legacy(self):
        query = page_of(Dialect.ORACLE, 11, is_cte_form=True)
        spliced = "WITH T AS (SELECT * FROM students WHERE age > 18 ORDER BY age DESC)"
        assert query.count_sql == f'{CTE} SELECT COUNT(*) AS "TOTAL" FROM T'
        assert query.page_sql == (
            f"{spliced}, R AS (SELECT ROWNUM AS ROWNUMBER, T.* FROM T WHERE ROWNUM <= 20) "
            "SELECT * FROM R WHERE ROWNUMBER >= 11"
        )

    def test_cte_modern(self):
        query = page_of(Dialect.ORACLE, 21, is_cte_form=True)
        assert query.page_sql == (
            "WITH T AS (SELECT * FROM students WHERE age > 18 ORDER BY age DESC) "
            "SELECT * FROM T OFFSET 10 ROWS FETCH NEXT 10 ROWS ONLY"
        )


class TestLimitOffset:
    @pytest.mark.parametrize("dialect", [Dialect.POSTGRESQL, Dialect.MYSQL, Dialect.SQLITE])
    def test_plain(self, dialect):
        query = page_of(dialect, 16)
        assert query.count_sql == f"SELECT COUNT(*) AS TOTAL FROM ({Q}) AS T"
        assert query.page_sql == f"SELECT * FROM ({Q}) AS X ORDER BY age DESC LIMIT 10 OFFSET 10"

    @pytest.mark.parametrize("dialect", [Dialect.POSTGRESQL, Dialect.MYSQL, Dialect.SQLITE])
    def test_without_order_paginates_unordered(self, dialect):
        query = page_of(dialect, order_field=None)
        assert query.page_sql == f"SELECT * FROM ({Q}) AS X LIMIT 10 OFFSET 10"
        assert "ORDER BY" not in query.page_sql

    def test_cte(self):
        query = page_of(Dialect.POSTGRESQL, is_cte_form=True)
        assert query.count_sql == f"{CTE} SELECT COUNT(*) AS TOTAL FROM T"
        assert query.page_sql == (
            "WITH T AS (SELECT * FROM students WHERE age > 18 ORDER BY age DESC) SELECT * FROM T LIMIT 10 OFFSET 10"
        )


class TestPlanInputs:
    def test_count_syntax_is_substituted_verbatim(self):
        query = plan(Q, False, None, True, 10, 1, Dialect.MYSQL, count_syntax="COUNT(1)")
        assert query.count_sql == f"SELECT COUNT(1) AS TOTAL FROM ({Q}) AS T"

    def test_explicit_direction_is_kept(self):
        query = plan(Q, False, "age DESC, name", True, 10, 1, Dialect.SQLITE)
        assert "ORDER BY age DESC, name LIMIT" in query.page_sql

    def test_order_spec(self):
        query = plan(Q, False, order_spec(("age", "desc"), "id"), True, 10, 1, Dialect.SQLITE)
        assert "ORDER BY age DESC, id ASC LIMIT" in query.page_sql

    def test_trailing_semicolon_is_dropped(self):
        query = plan(f"{Q};  ", False, None, True, 10, 1, Dialect.SQLITE)
        assert query.count_sql == f"SELECT COUNT(*) AS TOTAL FROM ({Q}) AS T"

    def test_dialect_name(self):
        assert "FETCH NEXT" in plan(Q, False, "age", True, 10, 1, "mssql", 12).page_sql

    def test_unknown_dialect(self):
        with pytest.raises(ConfigurationError):
            plan(Q, False, "age", True, 10, 1, "firebird")

    def test_cte_without_parenthesis(self):
        with pytest.raises(FormatError):
            plan("WITH T AS SELECT 1", True, "age", True, 10, 1, Dialect.SQLITE)

    @pytest.mark.parametrize("page_size,page_index", [(0, 1), (10, 0)])
    def test_invalid_page(self, page_size, page_index):
        with pytest.raises(ValueError):
            plan(Q, False, "age", True, page_size, page_index, Dialect.SQLITE)

    @pytest.mark.parametrize("base", ["", "   "])
    def test_empty_query(self, base):
        with pytest.raises(ValueError, match="must not be empty"):
            plan(base, False, None, True, 10, 1, Dialect.SQLITE)

    def test_logs_planned_sql_at_debug(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="multirepo.planner"):
            query = plan(Q, False, "age", True, 10, 1, Dialect.SQLITE)
        assert query.count_sql in caplog.text
        assert query.page_sql in caplog.text


class TestPageQueryPlanner:
    def test_binds_dialect_version_and_count_syntax(self):
        planner = PageQueryPlanner("mssql", 10, count_syntax="COUNT_BIG(*)")
        query = planner.plan(Q, PagingRequest(page_size=10, page_index=2))
        assert planner.dialect is Dialect.SQLSERVER
        assert query.count_sql == f"SELECT COUNT_BIG(*) AS [TOTAL] FROM ({Q}) AS T"
        assert "BETWEEN 11 AND 20" in query.page_sql
        assert "OVER (ORDER BY (SELECT 0))" in query.page_sql

    def test_cte_form(self):
        planner = PageQueryPlanner(Dialect.SQLITE)
        query = planner.plan(CTE, PagingRequest(page_size=5), "name", is_cte_form=True)
        assert query.page_sql.endswith("ORDER BY name ASC) SELECT * FROM T LIMIT 5 OFFSET 0")

    def test_unknown_dialect_fails_at_construction(self):
        with pytest.raises(ConfigurationError):
            PageQueryPlanner("access")
