from typing import Any

import httpx

from widget_factory.database.models import JobRecord, records_from_rows
from widget_factory.database.repositories.base import BaseJobStore
from widget_factory.jobs.exceptions import JobQueryError
from widget_factory.logging.logger import Log


class RestJobRepository(BaseJobStore):
    """Reads widget jobs through the PostgREST endpoint of the backend."""

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        rest_base_url: str,
        anon_key: str,
        table: str = "widget_jobs",
    ) -> None:
        self._http = http_client
        self._url = f"{rest_base_url.rstrip('/')}/{table}"
        self._headers = {
            "Authorization": f"Bearer {anon_key}",
            "apikey": anon_key,
        }

    async def list_recent(
        self, user_id: str, widget_id: str, limit: int
    ) -> list[JobRecord]:
        rows = await self._get(
            {
                "user_id": f"eq.{user_id}",
                "widget_id": f"eq.{widget_id}",
                "order": "created_at.desc",
                "limit": str(limit),
            }
        )
        return records_from_rows(rows)

    async def find_by_id(self, job_id: str) -> JobRecord | None:
        rows = await self._get({"id": f"eq.{job_id}", "select": "*"})
        if not rows:
            return None
        return JobRecord.from_row(rows[0])

    async def _get(self, params: dict[str, str]) -> list[dict[str, Any]]:
        try:
            response = await self._http.get(
                self._url, params=params, headers=self._headers
            )
        except httpx.HTTPError as exc:
            raise JobQueryError(f"Job query failed: {exc}") from exc

        if not response.is_success:
            Log.warning(
                f"Job query returned {response.status_code} {response.reason_phrase}"
            )
            raise JobQueryError(f"Job query failed: {response.status_code}")

        try:
            rows = response.json()
        except ValueError as exc:
            raise JobQueryError("Job query returned invalid JSON") from exc
        if not isinstance(rows, list):
            raise JobQueryError("Job query must return a list of rows")
        return [row for row in rows if isinstance(row, dict)]
