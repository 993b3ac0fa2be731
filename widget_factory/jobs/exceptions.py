class WidgetError(Exception):
    """Base exception for failures surfaced to the widget view.

    The message is user-facing and is passed to ``on_error`` as-is.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class JobQueryError(WidgetError):
    """Raised by a job store when a query fails (transport, status, or decoding)."""


class JobNotFoundError(WidgetError):
    """Raised when a polled job id no longer returns any row."""

    def __init__(self, message: str = "Job not found") -> None:
        super().__init__(message)


class JobLocateTimeoutError(WidgetError):
    """Raised when no job could be correlated with the upload batch."""

    def __init__(
        self, message: str = "Processing timeout - please refresh and try again"
    ) -> None:
        super().__init__(message)


class MonitoringFailedError(WidgetError):
    """Raised when status queries keep failing past the consecutive-failure limit."""

    def __init__(
        self, message: str = "Monitoring failed - please refresh and try again"
    ) -> None:
        super().__init__(message)


class PollTimeoutError(WidgetError):
    """Raised when the job is still running after the attempt budget."""

    def __init__(
        self, message: str = "Processing timeout - please refresh and try again"
    ) -> None:
        super().__init__(message)


class ProcessingError(WidgetError):
    """Raised when the job reached the error status."""

    def __init__(self, message: str = "Processing failed") -> None:
        super().__init__(message)


class InvalidResultFormatError(WidgetError):
    """Raised when a completed job's result payload cannot be decoded."""

    def __init__(self, message: str = "Invalid response format") -> None:
        super().__init__(message)
