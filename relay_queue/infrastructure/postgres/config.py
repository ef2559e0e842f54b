"""Configuration models for the asyncpg connection pool."""

from __future__ import annotations

from typing import Any, Literal
from urllib.parse import quote_plus

from pydantic import BaseModel, ConfigDict, Field, SecretStr, computed_field


class AsyncpgConnectionSettings(BaseModel):
    """Connection settings for a PostgreSQL database."""

    model_config = ConfigDict(extra="forbid")

    host: str = Field(default="localhost")
    port: int = Field(default=5432, ge=1, le=65535)
    database: str = Field(default="relay_queue")
    user: str = Field(default="postgres")
    password: SecretStr | None = Field(default=None)


class AsyncpgPoolSettings(BaseModel):
    """Connection pool settings."""

    model_config = ConfigDict(extra="forbid")

    min_size: int = Field(default=2, ge=1, le=100)
    max_size: int = Field(default=10, ge=1, le=200)
    max_inactive_connection_lifetime: float = Field(default=300.0, ge=0.0)
    command_timeout: float = Field(default=10.0, ge=1.0, le=300.0)


class AsyncpgStatementCacheSettings(BaseModel):
    """Statement cache settings for prepared statements."""

    model_config = ConfigDict(extra="forbid")

    max_size: int = Field(default=256, ge=0, le=1000)
    max_lifetime: int = Field(default=300, ge=0)
    max_cacheable_statement_size: int = Field(default=15360, ge=0)


class AsyncpgServerSettings(BaseModel):
    """PostgreSQL server settings passed to the connection."""

    model_config = ConfigDict(extra="forbid")

    application_name: str = Field(default="relay-queue")
    jit: Literal["on", "off"] = Field(default="off")


class AsyncpgConfig(BaseModel):
    """Complete configuration for an asyncpg connection pool.

    Examples
    --------
    >>> config = AsyncpgConfig(
    ...     connection=AsyncpgConnectionSettings(host="localhost", password=SecretStr("secret")),
    ...     pool=AsyncpgPoolSettings(min_size=2, max_size=10),
    ... )
    >>> async with AsyncConnectionPool(config) as pool:
    ...     await pool.afetchrow("SELECT 1")
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    connection: AsyncpgConnectionSettings = Field(default_factory=AsyncpgConnectionSettings)
    pool: AsyncpgPoolSettings = Field(default_factory=AsyncpgPoolSettings)
    statement_cache: AsyncpgStatementCacheSettings = Field(default_factory=AsyncpgStatementCacheSettings)
    server_settings: AsyncpgServerSettings = Field(default_factory=AsyncpgServerSettings)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def dsn(self) -> str:
        """Build PostgreSQL DSN from connection settings."""
        password = self.connection.password.get_secret_value() if self.connection.password else ""
        escaped_user = quote_plus(self.connection.user)
        escaped_password = quote_plus(password) if password else ""
        auth = f"{escaped_user}:{escaped_password}@" if escaped_password else f"{escaped_user}@"
        return f"postgresql://{auth}{self.connection.host}:{self.connection.port}/{self.connection.database}"

    def to_pool_params(self) -> dict[str, Any]:
        """Convert config to asyncpg.create_pool() parameters."""
        return {
            "dsn": self.dsn,
            **self.pool.model_dump(),
            "statement_cache_size": self.statement_cache.max_size,
            "max_cached_statement_lifetime": self.statement_cache.max_lifetime,
            "max_cacheable_statement_size": self.statement_cache.max_cacheable_statement_size,
            "server_settings": self.server_settings.model_dump(),
        }
