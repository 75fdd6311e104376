"""Local filesystem storage for exported messages and attachments."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class Storage(Protocol):
    """Filesystem operations the export pipeline depends on."""

    def exists(self, path: Path) -> bool:
        """Return True if `path` exists."""
        ...

    def create_directory(self, path: Path) -> None:
        """Create `path` and its parents; no-op if it already exists."""
        ...

    def write_file(self, path: Path, data: bytes | str, *, encoding: str = "utf-8") -> None:
        """Write `data` to `path`."""
        ...


class StorageError(OSError):
    """Raised when a directory or file cannot be written."""


class LocalStorage:
    """Storage backed by the local filesystem, with atomic file writes."""

    def exists(self, path: Path) -> bool:
        """Return True if `path` exists.

        Args:
            path: Path to check.

        Returns:
            Whether anything exists at `path`.
        """
        return path.exists()

    def create_directory(self, path: Path) -> None:
        """Create a directory tree.

        Args:
            path: Directory to create.

        Raises:
            StorageError: If the directory cannot be created.
        """
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to create directory {path}: {exc}") from exc

    def is_directory_writable(self, path: Path) -> bool:
        """Return True if `path` is an existing, writable directory."""
        return path.is_dir() and os.access(path, os.W_OK)

    def write_file(self, path: Path, data: bytes | str, *, encoding: str = "utf-8") -> None:
        """Atomically write `data` to `path` via a temp file and rename.

        Args:
            path: Target file.
            data: Bytes, or text encoded with `encoding`.
            encoding: Text encoding used when `data` is a string.
        """
        raw = data.encode(encoding) if isinstance(data, str) else data
        self.create_directory(path.parent)

        fd, tmp_name = tempfile.mkstemp(
            prefix=path.name + ".",
            suffix=".tmp",
            dir=str(path.parent),
        )
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(raw)
                handle.flush()
                os.fsync(handle.fileno())

            os.replace(tmp_path, path)
        finally:
            try:
                if tmp_path.exists():
                    tmp_path.unlink()
            except OSError:
                pass

        logger.debug("Wrote %d bytes to %s", len(raw), path)
