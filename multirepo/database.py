"""SQLAlchemy engines, session factories, declarative base and dialect resolution."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from sqlalchemy import Engine, create_engine, make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from multirepo.dialects.base import Dialect

# Driver name -> connect() keyword taking the statement timeout in seconds.
_TIMEOUT_ARGS = {
    "pysqlite": "timeout",
    "aiosqlite": "timeout",
    "asyncpg": "command_timeout",
    "pymysql": "read_timeout",
    "aiomysql": "read_timeout",
}


class Base(DeclarativeBase):
    pass


@dataclass(frozen=True)
class DialectInfo:
    dialect: Dialect
    server_version_major: int | None = None


def resolve_dialect(bind) -> DialectInfo:
    """Dialect and major server version of an engine or connection.

    ``server_version_info`` is only populated once the engine has connected,
    so pass a live connection to get the version.
    """
    dialect = bind.dialect
    version = getattr(dialect, "server_version_info", None)
    return DialectInfo(Dialect.parse(dialect.name), version[0] if version else None)


def connect_args(url: str, command_timeout: int | None) -> dict:
    """Driver connect() arguments carrying ``command_timeout`` where the driver has one."""
    if not command_timeout:
        return {}
    argument = _TIMEOUT_ARGS.get(make_url(url).get_driver_name())
    return {argument: command_timeout} if argument else {}


@lru_cache(maxsize=32)
def get_engine(url: str, echo: bool = False, command_timeout: int | None = None) -> Engine:
    """Engine for ``url``, created once per (url, echo, timeout)."""
    return create_engine(url, echo=echo, connect_args=connect_args(url, command_timeout))


@lru_cache(maxsize=32)
def get_async_engine(url: str, echo: bool = False, command_timeout: int | None = None) -> AsyncEngine:
    return create_async_engine(url, echo=echo, connect_args=connect_args(url, command_timeout))


def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(engine, expire_on_commit=False)


def async_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)
