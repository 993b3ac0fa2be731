import os
import uuid
from collections.abc import AsyncGenerator, Generator
from datetime import datetime, timedelta, timezone
from typing import Any

import psycopg
import pytest
import pytest_asyncio
from psycopg import sql
from psycopg.types.json import Jsonb

from widget_factory.config.settings import Settings
from widget_factory.database.connection import build_conninfo, create_pool
from widget_factory.database.repositories.job_repository import JobRepository


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "widget_factory_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def jobs_table(test_settings: Settings) -> Generator[str, None, None]:
    """A throwaway widget_jobs table for the session."""
    table = f"widget_jobs_test_{uuid.uuid4().hex[:8]}"
    try:
        conn = psycopg.connect(build_conninfo(test_settings), connect_timeout=3)
    except psycopg.OperationalError as e:
        pytest.skip(f"PostgreSQL test DB not available: {e}. Set DB_* env vars")
    with conn:
        conn.execute(
            sql.SQL(
                """
                CREATE TABLE {} (
                    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
                    user_id text NOT NULL,
                    widget_id text NOT NULL,
                    created_at timestamptz NOT NULL DEFAULT NOW(),
                    status text NOT NULL DEFAULT 'pending',
                    file_keys jsonb,
                    result_data jsonb,
                    error_message text
                )
                """
            ).format(sql.Identifier(table))
        )
    try:
        yield table
    finally:
        with psycopg.connect(build_conninfo(test_settings)) as cleanup:
            cleanup.execute(sql.SQL("DROP TABLE IF EXISTS {}").format(sql.Identifier(table)))


@pytest.fixture
def db_conn(
    test_settings: Settings, jobs_table: str
) -> Generator[psycopg.Connection[Any], None, None]:
    with psycopg.connect(build_conninfo(test_settings)) as conn:
        yield conn
        conn.execute(sql.SQL("DELETE FROM {}").format(sql.Identifier(jobs_table)))
        conn.commit()


@pytest_asyncio.fixture
async def job_repo(
    test_settings: Settings, jobs_table: str
) -> AsyncGenerator[JobRepository, None]:
    repo = JobRepository(create_pool(test_settings), table=jobs_table)
    try:
        yield repo
    finally:
        await repo.close()


@pytest.fixture
def seed_job(db_conn: psycopg.Connection[Any], jobs_table: str):
    """Insert a job row and return its id."""

    def _seed(
        *,
        user_id: str = "anon_it",
        widget_id: str = "w-it",
        status: str = "pending",
        file_keys: list[str] | None = None,
        result_data: Any = None,
        age_seconds: int = 0,
    ) -> str:
        created_at = datetime.now(timezone.utc) - timedelta(seconds=age_seconds)
        with db_conn.cursor() as cur:
            cur.execute(
                sql.SQL(
                    """
                    INSERT INTO {} (user_id, widget_id, status, file_keys,
                                    result_data, created_at)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    RETURNING id
                    """
                ).format(sql.Identifier(jobs_table)),
                (
                    user_id,
                    widget_id,
                    status,
                    Jsonb(file_keys or []),
                    Jsonb(result_data) if result_data is not None else None,
                    created_at,
                ),
            )
            row = cur.fetchone()
            assert row is not None
        db_conn.commit()
        return str(row[0])

    return _seed
