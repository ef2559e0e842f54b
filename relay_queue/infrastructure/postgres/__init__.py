"""PostgreSQL infrastructure with asyncpg.

Usage
-----
::

    async with AsyncConnectionPool(config) as pool:
        row = await pool.afetchrow("SELECT 1")
"""

from .config import (
    AsyncpgConfig,
    AsyncpgConnectionSettings,
    AsyncpgPoolSettings,
    AsyncpgServerSettings,
    AsyncpgStatementCacheSettings,
)
from .health import HealthCheckResult
from .pool import AsyncConnectionPool, IsolationLevel, PoolNotInitializedError

__all__ = [
    "AsyncConnectionPool",
    "AsyncpgConfig",
    "AsyncpgConnectionSettings",
    "AsyncpgPoolSettings",
    "AsyncpgServerSettings",
    "AsyncpgStatementCacheSettings",
    "HealthCheckResult",
    "IsolationLevel",
    "PoolNotInitializedError",
]
