from abc import ABC, abstractmethod

from widget_factory.jobs.models import NormalizedResult


class BaseWidgetView(ABC):
    """Contract for the display collaborator of a widget.

    ``result_shown`` must also report results delivered through channels
    other than the orchestrator (for example a webhook push).
    """

    @abstractmethod
    def reset(self) -> None:
        """Clear any previous progress, result or error."""

    @abstractmethod
    def on_progress(self, text: str) -> None:
        """Show a progress message."""

    @abstractmethod
    def on_result(self, result: NormalizedResult) -> None:
        """Show a finished result."""

    @abstractmethod
    def on_error(self, message: str) -> None:
        """Show a user-facing error message."""

    @abstractmethod
    def result_shown(self) -> bool:
        """Whether a result is currently displayed."""
