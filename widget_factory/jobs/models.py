from dataclasses import dataclass
from enum import Enum
from typing import Any

from widget_factory.database.models import JobRecord, JobStatus
from widget_factory.jobs.exceptions import WidgetError


class MatchStrength(str, Enum):
    """How a job was correlated with an upload batch, strongest first."""

    EXACT = "exact"
    HEURISTIC_FILENAME = "heuristic_filename"
    TIME_WINDOW = "time_window"
    MOST_RECENT_FALLBACK = "most_recent_fallback"


@dataclass(frozen=True)
class MatchCandidate:
    """A job selected during lookup together with its match strength."""

    job: JobRecord
    match_strength: MatchStrength


@dataclass(frozen=True)
class NormalizedResult:
    """Result payload of a completed job, ready for display."""

    kind: str
    headline: str
    text: str
    download_url: str | None = None
    download_urls: list[str] | None = None
    file_name: str | None = None
    file_names: list[str] | None = None
    metadata: dict[str, Any] | None = None


@dataclass
class PollSession:
    """State of one job's polling loop."""

    job_id: str
    max_attempts: int
    interval_ms: int
    started_at_ms: int
    attempt: int = 0
    consecutive_failures: int = 0
    active: bool = True

    @property
    def deadline_ms(self) -> int:
        return self.started_at_ms + self.max_attempts * self.interval_ms


@dataclass(frozen=True)
class PollEvent:
    """One observation emitted by the poller.

    Non-terminal events carry ``progress_text``; a terminal event carries
    exactly one of ``result`` or ``error``.
    """

    status: JobStatus | None
    result: NormalizedResult | None = None
    error: WidgetError | None = None
    progress_text: str | None = None
    attempt: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.result is not None or self.error is not None
