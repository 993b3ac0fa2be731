from widget_factory.jobs.exceptions import WidgetError

STAGE_PRESIGN = "presign"
STAGE_PUT = "put"


class UploadError(WidgetError):
    """Raised when a file in the batch fails to upload; the batch is aborted."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(message)
        self.stage = stage
