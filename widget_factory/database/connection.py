from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import psycopg
from psycopg_pool import AsyncConnectionPool

from widget_factory.config.settings import Settings


def build_conninfo(settings: Settings) -> str:
    return (
        f"host={settings.db_host} "
        f"port={settings.db_port} "
        f"dbname={settings.db_database} "
        f"user={settings.db_username} "
        f"password={settings.db_password}"
    )


def create_pool(settings: Settings) -> AsyncConnectionPool:
    """Create an unopened pool; it is opened on first use by its owner."""
    return AsyncConnectionPool(
        build_conninfo(settings), min_size=1, max_size=4, open=False
    )


@asynccontextmanager
async def get_connection(
    pool: AsyncConnectionPool,
) -> AsyncGenerator[psycopg.AsyncConnection[Any], None]:
    """Yield a connection from the pool. Reads only, no commit needed."""
    async with pool.connection() as conn:
        yield conn
