from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass

from multirepo.errors import ConfigurationError, FormatError
from multirepo.schemas.paging import PagingRequest


class Dialect(enum.StrEnum):
    SQLSERVER = "sqlserver"
    MYSQL = "mysql"
    ORACLE = "oracle"
    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"

    @classmethod
    def parse(cls, value: str | Dialect) -> Dialect:
        """Resolve a dialect from its name or a common alias, case-insensitively.

        Raises:
            ConfigurationError: If the name is not a supported dialect.
        """
        if isinstance(value, Dialect):
            return value
        dialect = _DIALECT_ALIASES.get(str(value).strip().lower().replace("_", "").replace(" ", ""))
        if dialect is None:
            msg = f"Unsupported dialect: {value!r}"
            raise ConfigurationError(msg)
        return dialect


_DIALECT_ALIASES: dict[str, Dialect] = {
    "sqlserver": Dialect.SQLSERVER,
    "mssql": Dialect.SQLSERVER,
    "mysql": Dialect.MYSQL,
    "mariadb": Dialect.MYSQL,
    "oracle": Dialect.ORACLE,
    "sqlite": Dialect.SQLITE,
    "sqlite3": Dialect.SQLITE,
    "postgresql": Dialect.POSTGRESQL,
    "postgres": Dialect.POSTGRESQL,
    "npgsql": Dialect.POSTGRESQL,
    "pgsql": Dialect.POSTGRESQL,
}


@dataclass(frozen=True)
class PageQuery:
    """The two statements of a paged query: total count first, page second."""

    count_sql: str
    page_sql: str

    @property
    def statements(self) -> tuple[str, str]:
        return (self.count_sql, self.page_sql)

    @property
    def batch(self) -> str:
        """Both statements as one ``;``-separated batch, for multi-statement drivers."""
        return f"{self.count_sql};\n{self.page_sql};"


def split_cte(cte: str) -> tuple[str, str]:
    """Split CTE text at its last closing parenthesis.

    Returns:
        (text before the parenthesis, the parenthesis and everything after it)

    Raises:
        FormatError: If the text has no closing parenthesis.
    """
    index = cte.rfind(")")
    if index < 0:
        msg = "CTE query has no closing parenthesis to insert the order clause before"
        raise FormatError(msg)
    return cte[:index], cte[index:]


def splice_order(cte: str, order: str) -> str:
    """Insert ``order`` immediately before the last closing parenthesis of ``cte``."""
    head, tail = split_cte(cte)
    if not order:
        return cte
    return f"{head.rstrip()} {order}{tail}"


def join_sql(*parts: str) -> str:
    """Join SQL fragments with single spaces, skipping empty ones."""
    return " ".join(part for part in parts if part)


class DialectRenderer(ABC):
    """Renders count and windowed page statements for one SQL dialect.

    ``render`` is the template method: it validates the CTE shape, applies
    the dialect's order fallback and picks the legacy or modern windowing
    idiom from the server version. Subclasses only supply the idioms.
    """

    dialect: Dialect
    # Column alias of the count statement, quoted as the dialect expects.
    total_alias: str = "TOTAL"
    # Keyword between a derived table and its alias ("" where AS is not allowed).
    alias_keyword: str = "AS "
    # ORDER BY used when the caller gives none ("" = paginate unordered).
    fallback_order: str = ""
    # First major server version that supports the modern idiom; None = no legacy idiom.
    modern_since: int | None = None

    def render(
        self,
        base_query: str,
        is_cte_form: bool,
        order: str,
        page: PagingRequest,
        server_version_major: int | None = None,
        count_syntax: str = "COUNT(*)",
    ) -> PageQuery:
        if is_cte_form:
            split_cte(base_query)
        return PageQuery(
            count_sql=self.render_count(base_query, is_cte_form, count_syntax),
            page_sql=self.render_window(base_query, is_cte_form, order, page, server_version_major),
        )

    def is_legacy(self, server_version_major: int | None) -> bool:
        if self.modern_since is None or server_version_major is None:
            return False
        return server_version_major < self.modern_since

    def render_count(self, base_query: str, is_cte_form: bool, count_syntax: str) -> str:
        if is_cte_form:
            return f"{base_query} SELECT {count_syntax} AS {self.total_alias} FROM T"
        return f"SELECT {count_syntax} AS {self.total_alias} FROM ({base_query}) {self.alias_keyword}T"

    def render_window(
        self,
        base_query: str,
        is_cte_form: bool,
        order: str,
        page: PagingRequest,
        server_version_major: int | None = None,
    ) -> str:
        order = order or self.fallback_order
        legacy = self.is_legacy(server_version_major)
        if is_cte_form:
            return self._window_cte(base_query, order, page, legacy)
        return self._window_plain(base_query, order, page, legacy)

    @abstractmethod
    def _window_plain(self, base_query: str, order: str, page: PagingRequest, legacy: bool) -> str:
        """Page statement over ``(base_query)`` as a derived table."""

    @abstractmethod
    def _window_cte(self, cte: str, order: str, page: PagingRequest, legacy: bool) -> str:
        """Page statement over the CTE result ``T``."""
