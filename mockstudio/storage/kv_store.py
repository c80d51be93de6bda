"""
Key/value blob storage for persisted Mock Studio state.

Every backend stores opaque strings (JSON documents) under string keys and
offers the same three operations: get, set, remove. Backends raise
StorageReadError / StorageWriteError on I/O failures; callers decide whether
to recover or surface them.
"""

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class StorageError(Exception):
    """Base class for persistence failures."""


class StorageReadError(StorageError):
    """A stored blob could not be read."""


class StorageWriteError(StorageError):
    """A blob could not be written or removed."""


class KeyValueStore:
    """Contract for durable key/value blob storage."""

    name = "abstract"

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    """Process-local store. Nothing survives a restart."""

    name = "memory"

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """
    One file per key under a base directory.

    Writes go to a temporary file in the same directory and are moved into
    place with os.replace, so a reader never sees a half-written blob.
    """

    name = "file"

    def __init__(self, base_dir: str):
        self._base = Path(base_dir)

    @property
    def base_dir(self) -> Path:
        return self._base

    def _path(self, key: str) -> Path:
        return self._base / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageReadError(f"Failed to read {path}: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            self._base.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self._base, prefix=f".{path.stem}-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(value)
                os.replace(tmp, path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageWriteError(f"Failed to write {path}: {e}") from e

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageWriteError(f"Failed to remove {path}: {e}") from e
