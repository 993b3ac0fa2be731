import sys
from typing import TextIO

from widget_factory.jobs.models import NormalizedResult
from widget_factory.view.base import BaseWidgetView

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


def format_file_size(size: int | float) -> str:
    """Human-readable size with base 1024, e.g. ``1536 -> "1.5 KB"``."""
    if size <= 0:
        return "0 Bytes"
    exponent = 0
    value = float(size)
    while value >= 1024 and exponent < len(_SIZE_UNITS) - 1:
        value /= 1024
        exponent += 1
    return f"{round(value, 2):g} {_SIZE_UNITS[exponent]}"


class ConsoleView(BaseWidgetView):
    """Writes widget progress, results and errors to a text stream."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream if stream is not None else sys.stdout
        self._result: NormalizedResult | None = None
        self._error: str | None = None

    @property
    def result(self) -> NormalizedResult | None:
        return self._result

    @property
    def error(self) -> str | None:
        return self._error

    def reset(self) -> None:
        self._result = None
        self._error = None

    def on_progress(self, text: str) -> None:
        self._write(f"... {text}")

    def on_result(self, result: NormalizedResult) -> None:
        self._result = result
        self._write(f"[{result.kind}] {result.headline}")
        if result.text:
            self._write(result.text)
        if result.download_url:
            self._write(f"  {result.file_name or 'Download Result'}: {result.download_url}")
        for index, url in enumerate(result.download_urls or []):
            names = result.file_names or []
            label = names[index] if index < len(names) else f"Download File {index + 1}"
            self._write(f"  {label}: {url}")
        for line in self._metadata_lines(result):
            self._write(f"  {line}")

    def on_error(self, message: str) -> None:
        self._error = message
        self._write(f"[error] {message}")

    def result_shown(self) -> bool:
        return self._result is not None

    @staticmethod
    def _metadata_lines(result: NormalizedResult) -> list[str]:
        metadata = result.metadata or {}
        lines = []
        compressed_size = metadata.get("compressedSize")
        if isinstance(compressed_size, (int, float)) and compressed_size:
            lines.append(f"Size: {format_file_size(compressed_size)}")
        if metadata.get("compressionLevel"):
            lines.append(f"Level: {metadata['compressionLevel']}")
        return lines

    def _write(self, line: str) -> None:
        self._stream.write(f"{line}\n")
        self._stream.flush()
