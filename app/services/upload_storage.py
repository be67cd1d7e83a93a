"""Local storage of uploaded source videos."""

import os
import random
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from ..core.config import Settings
from ..core.logging import get_logger

logger = get_logger("services.upload_storage")

CHUNK_SIZE = 1024 * 1024


class AsyncReadable(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


class InvalidFilenameError(ValueError):
    """Filename is empty or points outside the uploads directory."""

    pass


class UploadTooLargeError(Exception):
    """Upload exceeds the configured size limit."""

    pass


def validate_filename(filename: str) -> str:
    """Reject names with path separators or parent references."""
    if (
        not filename
        or filename in (".", "..")
        or "/" in filename
        or "\\" in filename
        or "\x00" in filename
    ):
        raise InvalidFilenameError(f"Invalid filename: {filename!r}")
    return filename


class UploadStorage:
    """Uploads directory: saving, listing and deleting source files."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.uploads_dir = settings.storage.uploads_path
        self.max_size_bytes = settings.media.max_upload_size_bytes

    def ensure_dirs(self) -> None:
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        self.settings.storage.processed_path.mkdir(parents=True, exist_ok=True)

    def path_for(self, filename: str) -> Path:
        return self.uploads_dir / validate_filename(filename)

    def exists(self, filename: str) -> bool:
        return self.path_for(filename).is_file()

    def url_for(self, filename: str) -> str:
        return self.settings.get_public_url(filename)

    @staticmethod
    def generate_filename(original_name: str | None, fieldname: str = "video") -> str:
        """Unique stored name: {field}-{epoch_ms}-{random}{ext}."""
        ext = os.path.splitext(original_name or "")[1].lower()
        unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
        return f"{fieldname}-{unique_suffix}{ext}"

    async def save(self, source: AsyncReadable, original_name: str | None) -> tuple[str, int]:
        """
        Stream an upload to disk, enforcing the size limit.

        Returns:
            (stored filename, size in bytes)
        """
        self.ensure_dirs()
        filename = self.generate_filename(original_name)
        path = self.uploads_dir / filename
        size = 0

        try:
            with open(path, "wb") as out:
                while chunk := await source.read(CHUNK_SIZE):
                    size += len(chunk)
                    if size > self.max_size_bytes:
                        raise UploadTooLargeError(
                            f"Upload exceeds {self.settings.media.max_upload_size_mb}MB limit"
                        )
                    out.write(chunk)
        except BaseException:
            path.unlink(missing_ok=True)
            raise

        logger.info("Upload stored", filename=filename, original_name=original_name, size=size)
        return filename, size

    def list_files(self) -> list[dict[str, Any]]:
        """Regular files in the uploads directory, newest first."""
        if not self.uploads_dir.exists():
            return []

        files = []
        for entry in self.uploads_dir.iterdir():
            if not entry.is_file():
                continue
            stats = entry.stat()
            files.append({
                "filename": entry.name,
                "size": stats.st_size,
                "upload_date": datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc),
                "url": self.url_for(entry.name),
            })

        files.sort(key=lambda f: f["upload_date"], reverse=True)
        return files

    def delete(self, filename: str) -> bool:
        """Delete an uploaded source file. Returns False if it does not exist."""
        path = self.path_for(filename)
        if not path.is_file():
            return False
        path.unlink()
        logger.info("Upload deleted", filename=filename)
        return True
