import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from widget_factory.jobs.exceptions import JobQueryError
from widget_factory.logging.logger import Log


class JobStatus(str, Enum):
    """Lifecycle of a widget job: pending -> in_progress -> completed | error."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.ERROR)


@dataclass(frozen=True)
class JobRecord:
    """Represents a row from the widget_jobs table. Read-only on the client."""

    id: str
    user_id: str
    widget_id: str
    created_at_ms: int
    status: JobStatus
    file_keys: list[str] = field(default_factory=list)
    result_data: Any = None
    error_message: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "JobRecord":
        """Build a record from a REST or database row.

        Raises:
            JobQueryError: if the row lacks an id or carries an unknown status.
        """
        if row.get("id") is None:
            raise JobQueryError("Job row is missing an id")
        raw_status = row.get("status")
        try:
            status = JobStatus(raw_status)
        except ValueError as exc:
            raise JobQueryError(f"Unknown job status: {raw_status!r}") from exc
        return cls(
            id=str(row["id"]),
            user_id=str(row.get("user_id") or ""),
            widget_id=str(row.get("widget_id") or ""),
            created_at_ms=_to_epoch_ms(row.get("created_at")),
            status=status,
            file_keys=_parse_file_keys(row.get("file_keys")),
            result_data=row.get("result_data"),
            error_message=row.get("error_message"),
        )


def records_from_rows(rows: list[dict[str, Any]]) -> list[JobRecord]:
    """Map rows to records, skipping rows that cannot be mapped."""
    records: list[JobRecord] = []
    for row in rows:
        try:
            records.append(JobRecord.from_row(row))
        except JobQueryError as exc:
            Log.warning(f"Skipping job row: {exc.message}", job_id=row.get("id"))
    return records


def _to_epoch_ms(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError as exc:
            raise JobQueryError(f"Invalid created_at: {value!r}") from exc
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp() * 1000)
    raise JobQueryError(f"Invalid created_at: {value!r}")


def _parse_file_keys(value: Any) -> list[str]:
    # file_keys is jsonb upstream but some triggers store it as a JSON string
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return []
    if not isinstance(value, list):
        return []
    return [key for key in value if isinstance(key, str)]
