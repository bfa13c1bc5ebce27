"""Key-value blob stores backing the event log, settings and metrics.

The engine only relies on ``get``/``set``/``delete`` and a read-merge-write
``merge`` helper. Concurrent writers from other sessions may interleave;
last writer wins and lost updates are accepted.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from src.personalization.exceptions import StorageError

# Configure module logger
logger = logging.getLogger(__name__)

# Storage keys
EVENTS_KEY = "behavior_events"
SETTINGS_KEY = "personalization_settings"
METRICS_KEY = "personalization_metrics"


class BlobStore(ABC):
    """Minimal key-value contract over string blobs."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the blob stored under ``key``, or None if absent.

        Raises:
            StorageError: If the backend cannot be read.
        """

    @abstractmethod
    def set(self, key: str, blob: str) -> None:
        """Store ``blob`` under ``key``, replacing any previous value.

        Raises:
            StorageError: If the backend cannot be written.
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``. Missing keys are ignored."""

    def merge(
        self,
        key: str,
        update: Callable[[Optional[str]], str],
    ) -> str:
        """Read the current blob, apply ``update`` and write the result back.

        Args:
            key: Storage key.
            update: Function from the current blob (or None) to the new blob.

        Returns:
            The blob that was written.
        """
        current = self.get(key)
        new_blob = update(current)
        self.set(key, new_blob)
        return new_blob


class InMemoryBlobStore(BlobStore):
    """Dictionary-backed store, used for tests and ephemeral sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, blob: str) -> None:
        self._data[key] = blob

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data.keys())


class FileBlobStore(BlobStore):
    """Directory-backed store, one JSON file per key.

    Writes go through a temporary file and ``os.replace`` so a reader never
    sees a half-written blob.
    """

    def __init__(self, root_dir: str):
        self.root = Path(root_dir)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(str(root_dir), e) from e
        logger.info(f"Initialized FileBlobStore at {self.root}")

    def _path(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(key, e) from e

    def set(self, key: str, blob: str) -> None:
        path = self._path(key)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=f".{key}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(blob)
            os.replace(tmp_name, path)
        except OSError as e:
            raise StorageError(key, e) from e

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(key, e) from e


def load_json(store: BlobStore, key: str, default: Any) -> Any:
    """Read and decode a JSON blob, falling back to ``default``.

    Corrupt JSON is logged and treated as absent. Storage failures propagate
    so callers can decide whether they are fatal.
    """
    blob = store.get(key)
    if blob is None:
        return default
    try:
        return json.loads(blob)
    except (TypeError, ValueError) as e:
        logger.warning(
            "Discarding malformed stored blob",
            extra={"key": key, "error": str(e)},
        )
        return default


def dump_json(data: Any) -> str:
    return json.dumps(data, default=str, separators=(",", ":"))
