"""Local disk storage for uploaded call recordings."""

from __future__ import annotations

import logging
import os
import time
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Final
from uuid import uuid4

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS: Final[frozenset[str]] = frozenset(
    {"mp3", "wav", "m4a", "ogg", "flac", "mp4"}
)
DEFAULT_MAX_FILE_SIZE: Final[int] = 50 * 1024 * 1024
DEFAULT_RETENTION_DAYS: Final[int] = 30
_COPY_CHUNK_SIZE = 64 * 1024


class StorageError(RuntimeError):
    """Raised when an audio file cannot be accepted or persisted."""


class UnsupportedFileTypeError(StorageError):
    """Raised when the upload's extension is not on the allow-list."""


class FileTooLargeError(StorageError):
    """Raised when the upload exceeds the configured size ceiling."""


def file_extension(filename: str | None) -> str:
    """Return the lower-cased extension of ``filename`` without the dot."""

    if not filename or "." not in filename:
        return ""
    return filename.rsplit(".", 1)[1].strip().lower()


class FileStore:
    """Persist audio under ``base/{user_id}/{client_id}/`` with generated names."""

    def __init__(
        self,
        base_dir: str | os.PathLike[str],
        *,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        retention_days: int = DEFAULT_RETENTION_DAYS,
    ) -> None:
        self._base_dir = Path(base_dir)
        self._max_file_size = max_file_size
        self._retention_days = retention_days
        try:
            self._base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to create upload directory {self._base_dir}: {exc}") from exc

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    @property
    def max_file_size(self) -> int:
        return self._max_file_size

    def save_file(
        self,
        stream: BinaryIO,
        original_filename: str,
        user_id: int,
        client_id: int,
    ) -> str:
        """Copy ``stream`` into the tenant directory and return the stored path."""

        extension = file_extension(original_filename)
        if extension not in ALLOWED_EXTENSIONS:
            allowed = ", ".join(sorted(ALLOWED_EXTENSIONS))
            raise UnsupportedFileTypeError(f"File type not allowed. Accepted: {allowed}")

        directory = self._base_dir / str(int(user_id)) / str(int(client_id))
        directory.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S-%f")
        target = directory / f"{uuid4().hex[:8]}_{timestamp}.{extension}"

        written = 0
        try:
            with target.open("wb") as destination:
                while True:
                    chunk = stream.read(_COPY_CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > self._max_file_size:
                        break
                    destination.write(chunk)
        except OSError:
            self.delete_file(target)
            raise

        if written > self._max_file_size:
            self.delete_file(target)
            limit_mb = self._max_file_size // (1024 * 1024)
            raise FileTooLargeError(f"File size exceeds maximum allowed size of {limit_mb} MB")

        logger.info("Stored audio %s (%s bytes) as %s", original_filename, written, target)
        return str(target)

    def delete_file(self, file_path: str | os.PathLike[str]) -> None:
        """Remove a stored file, logging instead of raising on failure."""

        try:
            Path(file_path).unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to delete file %s: %s", file_path, exc)

    def file_size(self, file_path: str | os.PathLike[str]) -> int:
        return Path(file_path).stat().st_size

    def file_exists(self, file_path: str | os.PathLike[str]) -> bool:
        return Path(file_path).is_file()

    def cleanup_old_files(self) -> int:
        """Delete files older than the retention window; never raises."""

        cutoff = time.time() - self._retention_days * 86400
        removed = 0
        try:
            candidates = [path for path in self._base_dir.rglob("*") if path.is_file()]
        except OSError as exc:
            logger.error("Error during file cleanup of %s: %s", self._base_dir, exc)
            return 0

        for path in candidates:
            try:
                if path.stat().st_mtime >= cutoff:
                    continue
                path.unlink()
            except OSError as exc:
                logger.warning("Failed to delete old file %s: %s", path, exc)
                continue
            removed += 1
            logger.info("Deleted old file: %s", path)

        logger.info(
            "Cleanup completed: removed %s files older than %s days",
            removed,
            self._retention_days,
        )
        return removed


__all__ = [
    "ALLOWED_EXTENSIONS",
    "FileStore",
    "FileTooLargeError",
    "StorageError",
    "UnsupportedFileTypeError",
    "file_extension",
]
