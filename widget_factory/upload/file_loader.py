import mimetypes
from pathlib import Path

from widget_factory.upload.models import FileBlob

DEFAULT_MIME_TYPE = "application/octet-stream"


def guess_mime_type(path: Path) -> str:
    """Guess the MIME type from the file extension."""
    mime_type, _ = mimetypes.guess_type(path.name)
    return mime_type or DEFAULT_MIME_TYPE


class FileLoader:
    """Reads local files into FileBlobs ready for upload."""

    def load(self, path: Path) -> FileBlob:
        """Read file bytes from disk.

        Raises:
            FileNotFoundError: if the path does not exist.
            IsADirectoryError: if the path is a directory.
        """
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        if path.is_dir():
            raise IsADirectoryError(f"Not a file: {path}")
        return FileBlob(
            name=path.name,
            mime_type=guess_mime_type(path),
            content=path.read_bytes(),
        )

    def load_many(self, paths: list[Path]) -> list[FileBlob]:
        return [self.load(path) for path in paths]
