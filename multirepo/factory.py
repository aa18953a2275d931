"""Repository construction from named connections."""

from __future__ import annotations

import logging

from sqlalchemy import make_url

from multirepo.async_repository import AsyncRepository
from multirepo.config import MultirepoSettings, RepositoryOptions, load_settings
from multirepo.database import async_session_factory, get_async_engine, get_engine, session_factory
from multirepo.dialects.base import Dialect
from multirepo.errors import ConfigurationError
from multirepo.repository import Repository

logger = logging.getLogger(__name__)


def _resolve(
    name: str | None,
    dialect: Dialect | str | None,
    settings: MultirepoSettings | None,
    options: RepositoryOptions | None,
) -> tuple[MultirepoSettings, str, RepositoryOptions]:
    settings = settings or load_settings()
    url = settings.resolve_url(name)
    # Fails on unknown backends before any connection is made.
    backend = Dialect.parse(make_url(url).get_backend_name())
    if dialect is not None and Dialect.parse(dialect) is not backend:
        msg = f"Connection {name or settings.default_connection!r} is {backend}, not {dialect}"
        raise ConfigurationError(msg)
    return settings, url, options or settings.repository_options()


def create_repository(
    name: str | None = None,
    dialect: Dialect | str | None = None,
    settings: MultirepoSettings | None = None,
    options: RepositoryOptions | None = None,
) -> Repository:
    """Open a session on a named connection and wrap it in a Repository.

    Args:
        name: Connection name; the settings' default connection when omitted.
        dialect: Expected dialect. Checked against the connection URL when given.
        settings: Settings to read connections from; loaded from the environment when omitted.
        options: Repository options; derived from the settings when omitted.

    Raises:
        ConfigurationError: Unknown connection name, unsupported backend or dialect mismatch.
    """
    settings, url, options = _resolve(name, dialect, settings, options)
    engine = get_engine(url, settings.echo, options.command_timeout)
    logger.info("Creating repository on connection %r (%s)", name or settings.default_connection, engine.dialect.name)
    return Repository(session_factory(engine)(), options)


def create_async_repository(
    name: str | None = None,
    dialect: Dialect | str | None = None,
    settings: MultirepoSettings | None = None,
    options: RepositoryOptions | None = None,
) -> AsyncRepository:
    """Async counterpart of :func:`create_repository`. The URL must name an async driver."""
    settings, url, options = _resolve(name, dialect, settings, options)
    engine = get_async_engine(url, settings.echo, options.command_timeout)
    logger.info(
        "Creating async repository on connection %r (%s)", name or settings.default_connection, engine.dialect.name
    )
    return AsyncRepository(async_session_factory(engine)(), options)
