from dataclasses import dataclass


@dataclass(frozen=True)
class FileBlob:
    """A file selected by the user, held in memory until uploaded."""

    name: str
    mime_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class UploadedFile:
    """A file that was PUT to object storage, addressed by its storage key."""

    storage_key: str
    original_name: str
    mime_type: str
    size_bytes: int
    uploaded_at_ms: int
