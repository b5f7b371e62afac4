"""Filesystem access used by the builder, the linter and the operators.

The filesystem is passed around explicitly so tests and long-running
commands can swap in the cached variant.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path


class FileSystem:
    """Thin wrapper over the operating system's filesystem."""

    def read_text(self, path: str | Path) -> str:
        return Path(path).read_text(encoding="utf-8")

    def exists(self, path: str | Path) -> bool:
        return Path(path).exists()

    def is_dir(self, path: str | Path) -> bool:
        return Path(path).is_dir()

    def stat(self, path: str | Path) -> os.stat_result:
        return Path(path).stat()


class CachedFileSystem(FileSystem):
    """Keeps file contents in memory after the first read."""

    def __init__(self):
        self._cache: dict[str, str] = {}
        self._lock = threading.Lock()

    def read_text(self, path: str | Path) -> str:
        key = os.path.abspath(path)
        with self._lock:
            if key in self._cache:
                return self._cache[key]

        content = super().read_text(key)
        with self._lock:
            self._cache[key] = content
        return content

    def invalidate(self, path: str | Path | None = None) -> None:
        """Drop one cached file, or everything when no path is given."""
        with self._lock:
            if path is None:
                self._cache.clear()
            else:
                self._cache.pop(os.path.abspath(path), None)
