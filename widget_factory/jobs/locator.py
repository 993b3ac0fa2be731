"""Correlates an upload batch with the job the storage trigger created for it.

Upload and job share no transaction id, so the match is heuristic and
evaluated in the store's newest-first order:

1. file-level: normalized basenames equal (exact) or one stem prefixes the
   other up to a separator such as ``_`` or ``-`` (heuristic_filename);
2. time window: the job is younger than ``time_window_ms``;
3. most-recent fallback: the newest job was created close to the moment
   the batch finished uploading.

The first job reaching any score wins; there is no global best match.
"""

import re
from collections.abc import Sequence

from widget_factory.database.models import JobRecord
from widget_factory.database.repositories.base import BaseJobStore
from widget_factory.jobs.exceptions import JobQueryError
from widget_factory.jobs.models import MatchCandidate, MatchStrength
from widget_factory.logging.logger import Log
from widget_factory.upload.models import UploadedFile
from widget_factory.worker.scheduler import Clock, epoch_ms

_TIMESTAMP_PREFIX = re.compile(r"^\d+_")


def normalize_basename(key: str) -> str:
    """Final path segment of a storage key without one leading ``<digits>_``."""
    basename = key.rsplit("/", 1)[-1]
    return _TIMESTAMP_PREFIX.sub("", basename, count=1)


def _stem(basename: str) -> str:
    stem, dot, _ = basename.rpartition(".")
    return stem if dot and stem else basename


def _is_word_prefix(prefix: str, stem: str) -> bool:
    """True if ``stem`` starts with ``prefix`` followed by a non-alphanumeric."""
    if not prefix or not stem.startswith(prefix):
        return False
    rest = stem[len(prefix):]
    return not rest or not rest[0].isalnum()


def match_key(uploaded_key: str, job_key: str) -> MatchStrength | None:
    """Compare one uploaded key with one job key."""
    uploaded = normalize_basename(uploaded_key)
    candidate = normalize_basename(job_key)
    if not uploaded or not candidate:
        return None
    if uploaded == candidate:
        return MatchStrength.EXACT
    uploaded_stem = _stem(uploaded).lower()
    candidate_stem = _stem(candidate).lower()
    if _is_word_prefix(uploaded_stem, candidate_stem) or _is_word_prefix(
        candidate_stem, uploaded_stem
    ):
        return MatchStrength.HEURISTIC_FILENAME
    return None


def match_files(batch: Sequence[UploadedFile], job: JobRecord) -> MatchStrength | None:
    """Strongest file-level match between the batch and a job's keys."""
    best: MatchStrength | None = None
    for uploaded in batch:
        for job_key in job.file_keys:
            strength = match_key(uploaded.storage_key, job_key)
            if strength is MatchStrength.EXACT:
                return strength
            if strength is not None:
                best = strength
    return best


class JobLocator:
    """Finds the job id for an upload batch. Never raises on query failures."""

    def __init__(
        self,
        job_store: BaseJobStore,
        *,
        limit: int = 5,
        time_window_ms: int = 60_000,
        fallback_before_ms: int = 10_000,
        fallback_after_ms: int = 60_000,
        clock: Clock = epoch_ms,
    ) -> None:
        self._job_store = job_store
        self._limit = limit
        self._time_window_ms = time_window_ms
        self._fallback_before_ms = fallback_before_ms
        self._fallback_after_ms = fallback_after_ms
        self._clock = clock

    async def locate(
        self,
        batch: Sequence[UploadedFile],
        user_id: str,
        widget_id: str,
    ) -> str | None:
        """Return the id of the job correlating to the batch, or None."""
        candidate = await self.find_candidate(batch, user_id, widget_id)
        if candidate is None:
            return None
        return candidate.job.id

    async def find_candidate(
        self,
        batch: Sequence[UploadedFile],
        user_id: str,
        widget_id: str,
    ) -> MatchCandidate | None:
        try:
            jobs = await self._job_store.list_recent(user_id, widget_id, self._limit)
        except JobQueryError as exc:
            Log.error(f"Failed to query jobs: {exc}", widget_id=widget_id)
            return None

        if not jobs:
            Log.info("No jobs found yet", widget_id=widget_id)
            return None

        candidate = self.select(batch, jobs)
        if candidate is None:
            Log.info(
                f"No job among {len(jobs)} recent jobs matches the upload",
                widget_id=widget_id,
            )
            return None
        Log.info(
            "Found matching job",
            job_id=candidate.job.id,
            strength=candidate.match_strength.value,
        )
        return candidate

    def select(
        self, batch: Sequence[UploadedFile], jobs: Sequence[JobRecord]
    ) -> MatchCandidate | None:
        """Apply the matching policy to jobs ordered newest first."""
        for job in jobs:
            strength = match_files(batch, job)
            if strength is not None:
                return MatchCandidate(job=job, match_strength=strength)

        now_ms = self._clock()
        for job in jobs:
            if now_ms - job.created_at_ms < self._time_window_ms:
                return MatchCandidate(job=job, match_strength=MatchStrength.TIME_WINDOW)

        most_recent = jobs[0]
        if batch and self._within_fallback(most_recent, batch):
            return MatchCandidate(
                job=most_recent, match_strength=MatchStrength.MOST_RECENT_FALLBACK
            )
        return None

    def _within_fallback(
        self, job: JobRecord, batch: Sequence[UploadedFile]
    ) -> bool:
        completed_ms = max(uploaded.uploaded_at_ms for uploaded in batch)
        delta = job.created_at_ms - completed_ms
        return -self._fallback_before_ms <= delta <= self._fallback_after_ms
