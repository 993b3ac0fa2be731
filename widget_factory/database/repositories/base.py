from abc import ABC, abstractmethod

from widget_factory.database.models import JobRecord


class BaseJobStore(ABC):
    """Read-only contract for the job-records collaborator."""

    @abstractmethod
    async def list_recent(
        self, user_id: str, widget_id: str, limit: int
    ) -> list[JobRecord]:
        """Return the newest jobs for a user/widget, created_at descending.

        Raises:
            JobQueryError: on any query failure.
        """

    @abstractmethod
    async def find_by_id(self, job_id: str) -> JobRecord | None:
        """Return the job with this id, or None if no row exists.

        Raises:
            JobQueryError: on any query failure.
        """

    async def close(self) -> None:
        """Release resources held by the store."""
