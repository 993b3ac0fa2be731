"""Per-widget lifecycle: one handle per widget root, no process-wide state."""

import asyncio
from collections.abc import Sequence
from typing import Any

import httpx

from widget_factory.config.settings import Settings
from widget_factory.database.repositories.base import BaseJobStore
from widget_factory.database.repositories.factory import JobStoreFactory
from widget_factory.identity.anon_id import AnonIdStore
from widget_factory.jobs.decoder import decode_result
from widget_factory.jobs.exceptions import InvalidResultFormatError
from widget_factory.jobs.locator import JobLocator
from widget_factory.jobs.models import NormalizedResult
from widget_factory.jobs.poller import JobPoller
from widget_factory.logging.logger import Log
from widget_factory.upload.client import UploadClient
from widget_factory.upload.models import FileBlob
from widget_factory.view.base import BaseWidgetView
from widget_factory.worker.orchestrator import Orchestrator
from widget_factory.worker.scheduler import Clock, ScheduledTask, Sleep, epoch_ms


class WidgetHandle:
    """Disposable handle owning one widget's HTTP client, job store and task."""

    def __init__(
        self,
        *,
        widget_id: str,
        view: BaseWidgetView,
        orchestrator: Orchestrator,
        http_client: httpx.AsyncClient,
        job_store: BaseJobStore,
        owns_http_client: bool = True,
    ) -> None:
        self.widget_id = widget_id
        self._view = view
        self._orchestrator = orchestrator
        self._http = http_client
        self._owns_http_client = owns_http_client
        self._job_store = job_store
        self._task: ScheduledTask | None = None
        self._closed = False

    @property
    def busy(self) -> bool:
        return self._task is not None and not self._task.done

    def submit(self, files: Sequence[FileBlob]) -> ScheduledTask:
        """Start processing a batch, cancelling any batch still in flight."""
        if self._closed:
            raise RuntimeError(f"Widget {self.widget_id} is closed")
        self.cancel()
        self._task = ScheduledTask(
            self._orchestrator.handle_files(list(files)),
            name=f"widget:{self.widget_id}",
        )
        return self._task

    async def handle_files(self, files: Sequence[FileBlob]) -> None:
        """Submit a batch and wait until its outcome reaches the view."""
        await self.submit(files).wait()

    def receive_webhook(self, payload: Any) -> NormalizedResult | None:
        """Show a result pushed out-of-band; an in-flight poll stops on its next tick."""
        try:
            result = decode_result(payload)
        except InvalidResultFormatError:
            Log.warning("Ignoring webhook payload with invalid format", widget_id=self.widget_id)
            return None
        Log.info("Result delivered by webhook", widget_id=self.widget_id)
        self._view.on_result(result)
        return result

    def cancel(self) -> bool:
        if self._task is None:
            return False
        cancelled = self._task.cancel()
        if cancelled:
            Log.info("Cancelled in-flight batch", widget_id=self.widget_id)
        return cancelled

    async def aclose(self) -> None:
        """Cancel any running batch and release the resources this handle owns."""
        if self._closed:
            return
        self._closed = True
        if self._task is not None:
            self._task.cancel()
            await self._task.wait()
        await self._job_store.close()
        if self._owns_http_client:
            await self._http.aclose()

    async def __aenter__(self) -> "WidgetHandle":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def create_widget(
    widget_id: str,
    view: BaseWidgetView,
    settings: Settings | None = None,
    *,
    user_id: str | None = None,
    http_client: httpx.AsyncClient | None = None,
    job_store: BaseJobStore | None = None,
    sleep: Sleep = asyncio.sleep,
    clock: Clock = epoch_ms,
) -> WidgetHandle:
    """Build a widget handle with all collaborators wired from settings."""
    if not widget_id:
        raise ValueError("widget_id is required")
    settings = settings or Settings()
    owns_http_client = http_client is None
    if user_id is None:
        user_id = AnonIdStore(settings.anon_id_path).get_or_create()
    if http_client is None:
        http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.http_timeout_seconds)
        )
    if job_store is None:
        job_store = JobStoreFactory.create(settings, http_client)

    upload_client = UploadClient(
        http_client=http_client,
        presign_endpoint=settings.resolved_presign_endpoint,
        anon_key=settings.supabase_anon_key,
        clock=clock,
    )
    locator = JobLocator(
        job_store,
        limit=settings.locate_limit,
        time_window_ms=settings.locate_time_window_ms,
        fallback_before_ms=settings.fallback_before_ms,
        fallback_after_ms=settings.fallback_after_ms,
        clock=clock,
    )
    poller = JobPoller(
        job_store,
        interval_ms=settings.poll_interval_ms,
        max_attempts=settings.max_poll_attempts,
        max_consecutive_failures=settings.max_consecutive_poll_failures,
        sleep=sleep,
        clock=clock,
    )
    orchestrator = Orchestrator(
        upload_client=upload_client,
        locator=locator,
        poller=poller,
        view=view,
        user_id=user_id,
        widget_id=widget_id,
        propagation_delay_ms=settings.trigger_propagation_delay_ms,
        locate_retry_delay_ms=settings.locate_retry_delay_ms,
        sleep=sleep,
    )
    Log.info("Initialized widget", widget_id=widget_id, user_id=user_id)
    return WidgetHandle(
        widget_id=widget_id,
        view=view,
        orchestrator=orchestrator,
        http_client=http_client,
        job_store=job_store,
        owns_http_client=owns_http_client,
    )
