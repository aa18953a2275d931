"""Dialect renderer registry and lookup."""

from __future__ import annotations

from multirepo.dialects.base import Dialect, DialectRenderer
from multirepo.dialects.limit_offset import MySqlRenderer, PostgreSqlRenderer, SqliteRenderer
from multirepo.dialects.oracle import OracleRenderer
from multirepo.dialects.sqlserver import SqlServerRenderer
from multirepo.errors import ConfigurationError

# Dialect → renderer class
RENDERER_REGISTRY: dict[Dialect, type[DialectRenderer]] = {
    Dialect.SQLSERVER: SqlServerRenderer,
    Dialect.MYSQL: MySqlRenderer,
    Dialect.ORACLE: OracleRenderer,
    Dialect.SQLITE: SqliteRenderer,
    Dialect.POSTGRESQL: PostgreSqlRenderer,
}


def get_renderer(dialect: Dialect | str) -> DialectRenderer:
    """Get the renderer for a dialect value or name."""
    resolved = Dialect.parse(dialect)
    cls = RENDERER_REGISTRY.get(resolved)
    if cls is None:
        msg = f"No page renderer registered for dialect: {resolved}"
        raise ConfigurationError(msg)
    return cls()
