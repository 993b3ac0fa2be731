import secrets
import string
from pathlib import Path

from widget_factory.logging.logger import Log

ANON_PREFIX = "anon_"
_ALPHABET = string.digits + string.ascii_lowercase
_SUFFIX_LENGTH = 9


def generate_anon_id() -> str:
    """Return a fresh ``anon_<9 base36 chars>`` identifier."""
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(_SUFFIX_LENGTH))
    return f"{ANON_PREFIX}{suffix}"


class AnonIdStore:
    """Persists the anonymous user id in a local file, created once and reused."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def get_or_create(self) -> str:
        """Read the stored id, creating and persisting a new one if absent.

        Raises:
            OSError: if the id file cannot be written.
        """
        existing = self._read()
        if existing:
            return existing
        anon_id = generate_anon_id()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(anon_id, encoding="utf-8")
        Log.info(f"Created anonymous user id at {self._path}", user_id=anon_id)
        return anon_id

    def _read(self) -> str | None:
        if not self._path.exists():
            return None
        value = self._path.read_text(encoding="utf-8").strip()
        return value or None
