"""Settings loaded from environment variables and .env file."""

import logging

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from multirepo.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONNECTION = "default"


class RepositoryOptions(BaseModel):
    """Per-repository values fixed at construction."""

    model_config = {"frozen": True}

    count_syntax: str = "COUNT(*)"
    command_timeout: int = Field(240, ge=0)

    @field_validator("count_syntax")
    @classmethod
    def count_syntax_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("count_syntax must not be blank")
        return v.strip()


class MultirepoSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="MULTIREPO_", env_file=".env", extra="ignore")

    database_url: str = ""
    count_syntax: str = "COUNT(*)"
    command_timeout: int = 240
    echo: bool = False

    # Named connections: name -> SQLAlchemy URL (JSON object in the environment)
    connections: dict[str, str] = {}
    default_connection: str = DEFAULT_CONNECTION

    def resolve_url(self, name: str | None = None) -> str:
        """URL of a named connection, falling back to ``database_url`` for the default name.

        Raises:
            ConfigurationError: If no URL is configured under ``name``.
        """
        name = name or self.default_connection
        url = self.connections.get(name)
        if url is None and name == self.default_connection:
            url = self.database_url or None
        if not url:
            msg = f"No connection configured under name: {name!r}"
            raise ConfigurationError(msg)
        return url

    def repository_options(self) -> RepositoryOptions:
        return RepositoryOptions(count_syntax=self.count_syntax, command_timeout=self.command_timeout)


def load_settings() -> MultirepoSettings:
    """Load settings from environment variables and .env file."""
    settings = MultirepoSettings()
    if not settings.connections and not settings.database_url:
        logger.warning("No database connection configured. Set MULTIREPO_DATABASE_URL or MULTIREPO_CONNECTIONS.")
    return settings
