import asyncio
from collections.abc import AsyncIterator, Callable

from widget_factory.database.models import JobStatus
from widget_factory.database.repositories.base import BaseJobStore
from widget_factory.jobs.decoder import decode_result
from widget_factory.jobs.exceptions import (
    InvalidResultFormatError,
    JobNotFoundError,
    JobQueryError,
    MonitoringFailedError,
    PollTimeoutError,
    ProcessingError,
)
from widget_factory.jobs.models import PollEvent, PollSession
from widget_factory.logging.logger import Log
from widget_factory.worker.scheduler import Clock, Sleep, epoch_ms, sleep_ms

PROGRESS_TEXT = {
    JobStatus.PENDING: "Queued for processing...",
    JobStatus.IN_PROGRESS: "Processing your files...",
}


class JobPoller:
    """Polls one job until it is terminal, the budget runs out, or a result
    has already been shown through another channel."""

    def __init__(
        self,
        job_store: BaseJobStore,
        *,
        interval_ms: int = 2_000,
        max_attempts: int = 150,
        max_consecutive_failures: int = 10,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = epoch_ms,
    ) -> None:
        self._job_store = job_store
        self._interval_ms = interval_ms
        self._max_attempts = max_attempts
        self._max_consecutive_failures = max_consecutive_failures
        self._sleep = sleep
        self._clock = clock

    def new_session(self, job_id: str) -> PollSession:
        return PollSession(
            job_id=job_id,
            max_attempts=self._max_attempts,
            interval_ms=self._interval_ms,
            started_at_ms=self._clock(),
        )

    async def poll(
        self,
        job_id: str,
        result_already_shown: Callable[[], bool],
    ) -> AsyncIterator[PollEvent]:
        """Yield progress events, then at most one terminal event.

        The stream ends without a terminal event if ``result_already_shown``
        turns true between attempts.
        """
        session = self.new_session(job_id)
        Log.info("Starting job monitoring", job_id=job_id)
        try:
            while session.active:
                await sleep_ms(self._sleep, session.interval_ms)
                if result_already_shown():
                    Log.info("Result already displayed, stopping poll", job_id=job_id)
                    return
                if self._deadline_passed(session):
                    yield self._timeout(session)
                    return

                session.attempt += 1
                event = await self._attempt(session)
                if event is not None:
                    yield event
                    if event.is_terminal:
                        return
                if session.attempt >= session.max_attempts:
                    yield self._timeout(session)
                    return
        finally:
            session.active = False

    async def _attempt(self, session: PollSession) -> PollEvent | None:
        try:
            job = await self._job_store.find_by_id(session.job_id)
        except JobQueryError as exc:
            session.consecutive_failures += 1
            Log.warning(
                f"Polling error: {exc}",
                job_id=session.job_id,
                failures=session.consecutive_failures,
            )
            if session.consecutive_failures >= self._max_consecutive_failures:
                return PollEvent(
                    status=None, error=MonitoringFailedError(), attempt=session.attempt
                )
            return None

        session.consecutive_failures = 0
        if job is None:
            Log.warning("Job disappeared while polling", job_id=session.job_id)
            return PollEvent(status=None, error=JobNotFoundError(), attempt=session.attempt)

        Log.debug(
            f"Job status: {job.status.value} (poll {session.attempt})",
            job_id=job.id,
        )
        if job.status is JobStatus.COMPLETED:
            try:
                result = decode_result(job.result_data, job.id)
            except InvalidResultFormatError as exc:
                Log.error(f"Unable to parse result data: {job.result_data!r}", job_id=job.id)
                return PollEvent(status=job.status, error=exc, attempt=session.attempt)
            Log.info("Processing completed", job_id=job.id, kind=result.kind)
            return PollEvent(status=job.status, result=result, attempt=session.attempt)

        if job.status is JobStatus.ERROR:
            error = ProcessingError(job.error_message or "Processing failed")
            Log.error(f"Job failed: {error.message}", job_id=job.id)
            return PollEvent(status=job.status, error=error, attempt=session.attempt)

        return PollEvent(
            status=job.status,
            progress_text=PROGRESS_TEXT[job.status],
            attempt=session.attempt,
        )

    def _deadline_passed(self, session: PollSession) -> bool:
        return self._clock() > session.deadline_ms

    @staticmethod
    def _timeout(session: PollSession) -> PollEvent:
        Log.warning(
            f"Giving up after {session.attempt} polls", job_id=session.job_id
        )
        return PollEvent(status=None, error=PollTimeoutError(), attempt=session.attempt)
