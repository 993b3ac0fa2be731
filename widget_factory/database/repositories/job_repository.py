from typing import Any

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from widget_factory.database.connection import get_connection
from widget_factory.database.models import JobRecord, records_from_rows
from widget_factory.database.repositories.base import BaseJobStore
from widget_factory.jobs.exceptions import JobQueryError

_COLUMNS = (
    "id, user_id, widget_id, created_at, status, file_keys, "
    "result_data, error_message"
)


class JobRepository(BaseJobStore):
    """Reads widget jobs directly from PostgreSQL."""

    def __init__(self, pool: AsyncConnectionPool, table: str = "widget_jobs") -> None:
        self._pool = pool
        self._table = sql.Identifier(table)
        self._opened = False

    async def list_recent(
        self, user_id: str, widget_id: str, limit: int
    ) -> list[JobRecord]:
        query = sql.SQL(
            """
            SELECT {columns}
            FROM {table}
            WHERE user_id = %s
              AND widget_id = %s
            ORDER BY created_at DESC
            LIMIT %s
            """
        ).format(columns=sql.SQL(_COLUMNS), table=self._table)
        rows = await self._fetch(query, (user_id, widget_id, limit))
        return records_from_rows(rows)

    async def find_by_id(self, job_id: str) -> JobRecord | None:
        query = sql.SQL(
            """
            SELECT {columns}
            FROM {table}
            WHERE id = %s
            """
        ).format(columns=sql.SQL(_COLUMNS), table=self._table)
        rows = await self._fetch(query, (job_id,))
        if not rows:
            return None
        return JobRecord.from_row(rows[0])

    async def close(self) -> None:
        if self._opened:
            await self._pool.close()
            self._opened = False

    async def _fetch(
        self, query: sql.Composed, params: tuple[Any, ...]
    ) -> list[dict[str, Any]]:
        try:
            if not self._opened:
                await self._pool.open()
                self._opened = True
            async with get_connection(self._pool) as conn:
                async with conn.cursor(row_factory=dict_row) as cur:
                    await cur.execute(query, params)
                    return await cur.fetchall()
        except psycopg.Error as exc:
            raise JobQueryError(f"Job query failed: {exc}") from exc
