"""Count + page statement synthesis for raw SQL queries."""

from __future__ import annotations

import logging

from multirepo.dialects.base import Dialect, PageQuery
from multirepo.dialects.registry import get_renderer
from multirepo.ordering import order_clause
from multirepo.schemas.paging import OrderSpec, PagingRequest

logger = logging.getLogger(__name__)

DEFAULT_COUNT_SYNTAX = "COUNT(*)"


def _normalize_query(base_query: str) -> str:
    if not base_query or not base_query.strip():
        msg = "Base query must not be empty"
        raise ValueError(msg)
    return base_query.strip().rstrip(";").rstrip()


def plan(
    base_query: str,
    is_cte_form: bool,
    order_field: str | OrderSpec | None,
    ascending: bool,
    page_size: int,
    page_index: int,
    dialect: Dialect | str,
    server_version_major: int | None = None,
    count_syntax: str = DEFAULT_COUNT_SYNTAX,
) -> PageQuery:
    """Plan the count and page statements for ``base_query``.

    Args:
        base_query: A SELECT statement, or ``WITH T AS (...)`` text when
            ``is_cte_form`` is set. A trailing ``;`` is dropped.
        is_cte_form: Whether ``base_query`` is a CTE head ending in the
            definition of ``T``.
        order_field: Raw ORDER BY text (without the keywords), an OrderSpec,
            or None for no caller-specified order.
        ascending: Direction appended to raw order text that names none.
        page_size: Rows per page, >= 1.
        page_index: 1-based page number.
        dialect: Target dialect or its name.
        server_version_major: Major server version; None assumes a modern server.
        count_syntax: Aggregate substituted into the count statement.

    Returns:
        The count statement and the page statement.

    Raises:
        ConfigurationError: If the dialect is not supported.
        FormatError: If CTE text has no closing parenthesis.
        ValueError: If the query is empty or the page request is out of range.
    """
    query = _normalize_query(base_query)
    page = PagingRequest(page_size=page_size, page_index=page_index)
    renderer = get_renderer(dialect)
    page_query = renderer.render(
        query,
        is_cte_form,
        order_clause(order_field, ascending),
        page,
        server_version_major,
        count_syntax or DEFAULT_COUNT_SYNTAX,
    )
    logger.debug("Planned %s count query: %s", renderer.dialect, page_query.count_sql)
    logger.debug("Planned %s page query: %s", renderer.dialect, page_query.page_sql)
    return page_query


class PageQueryPlanner:
    """``plan`` bound to one connection's dialect, server version and count syntax."""

    def __init__(
        self,
        dialect: Dialect | str,
        server_version_major: int | None = None,
        count_syntax: str = DEFAULT_COUNT_SYNTAX,
    ):
        self.dialect = Dialect.parse(dialect)
        self.server_version_major = server_version_major
        self.count_syntax = count_syntax

    def plan(
        self,
        base_query: str,
        paging: PagingRequest,
        order_field: str | OrderSpec | None = None,
        ascending: bool = True,
        is_cte_form: bool = False,
    ) -> PageQuery:
        return plan(
            base_query,
            is_cte_form,
            order_field,
            ascending,
            paging.page_size,
            paging.page_index,
            self.dialect,
            self.server_version_major,
            self.count_syntax,
        )
