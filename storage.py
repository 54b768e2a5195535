"""Filesystem storage for uploaded source files."""
import logging
import re
import time
import uuid
from pathlib import Path
from typing import Union

from exceptions import StorageError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class LocalFileStorage:
    """
    Stores uploads as flat files under one directory.

    Keys are generated from a timestamp, a random part and the sanitized
    original name, and are never reused.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def generate_key(filename: str) -> str:
        name = _UNSAFE_CHARS.sub("_", Path(filename).name).strip("._") or "upload"
        return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{name}"

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key in (".", ".."):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self.root / key

    def put(self, data: bytes, key: str) -> str:
        path = self._path(key)
        if path.exists():
            raise StorageError(f"Storage key already in use: {key}")
        try:
            path.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Failed to store upload {key}: {e}") from e
        logger.debug("Stored %d bytes under %s", len(data), key)
        return key

    def get(self, key: str) -> bytes:
        try:
            return self._path(key).read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read upload {key}: {e}") from e

    def delete(self, key: str) -> bool:
        """Remove a stored file. Returns False when there was nothing to delete."""
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to delete upload {key}: {e}") from e
        return True
