import asyncio
from collections.abc import Sequence

from widget_factory.jobs.exceptions import JobLocateTimeoutError, WidgetError
from widget_factory.jobs.locator import JobLocator
from widget_factory.jobs.models import NormalizedResult
from widget_factory.jobs.poller import JobPoller
from widget_factory.logging.logger import Log
from widget_factory.upload.client import UploadClient
from widget_factory.upload.exceptions import UploadError
from widget_factory.upload.models import FileBlob, UploadedFile
from widget_factory.view.base import BaseWidgetView
from widget_factory.worker.scheduler import Sleep, sleep_ms

UPLOADING_TEXT = "Uploading..."
UPLOAD_COMPLETE_TEXT = "Upload complete - starting processing..."
UPLOAD_FAILED_TEXT = "Upload failed"
START_MONITORING_FAILED = "Failed to start monitoring - please refresh and try again"


class ResultDelivery:
    """Delivers at most one terminal outcome per batch to the view.

    Progress and errors are dropped once any result is shown, including one
    pushed to the view out-of-band.
    """

    def __init__(self, view: BaseWidgetView) -> None:
        self._view = view
        self._delivered = False

    @property
    def delivered(self) -> bool:
        return self._delivered

    def result_shown(self) -> bool:
        return self._view.result_shown()

    def progress(self, text: str) -> None:
        if not self._delivered and not self._view.result_shown():
            self._view.on_progress(text)

    def result(self, result: NormalizedResult) -> None:
        if self._delivered or self._view.result_shown():
            Log.info("Result already displayed, dropping duplicate")
            return
        self._delivered = True
        self._view.on_result(result)

    def error(self, message: str) -> None:
        if self._delivered:
            return
        if self._view.result_shown():
            Log.info(f"Suppressing error, result already displayed: {message}")
            return
        self._delivered = True
        self._view.on_error(message)


class Orchestrator:
    """Upload -> wait for trigger -> locate job (one retry) -> poll -> view."""

    def __init__(
        self,
        *,
        upload_client: UploadClient,
        locator: JobLocator,
        poller: JobPoller,
        view: BaseWidgetView,
        user_id: str,
        widget_id: str,
        propagation_delay_ms: int = 1_500,
        locate_retry_delay_ms: int = 3_000,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._upload_client = upload_client
        self._locator = locator
        self._poller = poller
        self._view = view
        self._user_id = user_id
        self._widget_id = widget_id
        self._propagation_delay_ms = propagation_delay_ms
        self._locate_retry_delay_ms = locate_retry_delay_ms
        self._sleep = sleep

    async def handle_files(self, files: Sequence[FileBlob]) -> None:
        """Run one batch end to end. Outcomes go to the view, never raised."""
        if not files:
            return

        delivery = ResultDelivery(self._view)
        self._view.reset()
        delivery.progress(UPLOADING_TEXT)
        Log.info(f"Handling {len(files)} file(s)", widget_id=self._widget_id)

        try:
            batch = await self._upload_client.upload(files, self._user_id, self._widget_id)
        except UploadError as exc:
            Log.error(f"Upload failed at {exc.stage}: {exc.message}", widget_id=self._widget_id)
            delivery.error(exc.message)
            return
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            Log.error(f"Unexpected upload error: {exc}", widget_id=self._widget_id)
            delivery.error(UPLOAD_FAILED_TEXT)
            return

        delivery.progress(UPLOAD_COMPLETE_TEXT)
        try:
            await self._track(batch, delivery)
        except asyncio.CancelledError:
            raise
        except WidgetError as exc:
            delivery.error(exc.message)
        except Exception as exc:
            Log.error(f"Error tracking job: {exc}", widget_id=self._widget_id)
            delivery.error(START_MONITORING_FAILED)

    async def _track(self, batch: list[UploadedFile], delivery: ResultDelivery) -> None:
        await sleep_ms(self._sleep, self._propagation_delay_ms)
        job_id = await self._locator.locate(batch, self._user_id, self._widget_id)
        if job_id is None:
            Log.warning(
                "No job ID found, processing may still be in progress",
                widget_id=self._widget_id,
            )
            await sleep_ms(self._sleep, self._locate_retry_delay_ms)
            job_id = await self._locator.locate(batch, self._user_id, self._widget_id)

        if job_id is None:
            if delivery.result_shown():
                Log.info("Job not located but a result is already displayed")
                return
            raise JobLocateTimeoutError()

        async for event in self._poller.poll(job_id, delivery.result_shown):
            if event.result is not None:
                delivery.result(event.result)
            elif event.error is not None:
                delivery.error(event.error.message)
            elif event.progress_text:
                delivery.progress(event.progress_text)
