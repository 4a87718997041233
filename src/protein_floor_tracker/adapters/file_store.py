"""File-backed durable store."""

import logging
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path

from protein_floor_tracker.domain.errors import StorageUnavailableError
from protein_floor_tracker.services.store import DurableStore

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")

_logger = logging.getLogger(__name__)


@dataclass
class FileStore(DurableStore):
    """Stores each key as one UTF-8 file inside a data directory.

    Writes go through a temp file in the same directory followed by
    ``os.replace`` so a crash never leaves a half-written value behind.
    """

    directory: Path

    def get(self, key: str) -> str | None:
        """Return the file contents for a key, if present."""
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            _logger.warning("Failed to read %s: %s", path, exc)
            raise StorageUnavailableError(key, str(exc)) from exc

    def set(self, key: str, value: str) -> None:
        """Atomically replace the file for a key."""
        path = self._path_for(key)
        tmp_name: str | None = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.directory, prefix=f".{key}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as exc:
            _logger.warning("Failed to write %s: %s", path, exc)
            raise StorageUnavailableError(key, str(exc)) from exc
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)

    def _path_for(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"
