"""
Analysis record persistence for Crosspost Media.

One JSON side file per uploaded video, stored next to its renditions:

    {processed_dir}/{filename}_analysis.json   original metadata + per-variant results
    {processed_dir}/{filename}_error.json      file-level failure, if any

Records are rewritten atomically after every variant so status polls from
any process observe the latest merged state.
"""

import json
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from ..core.config import StorageConfig
from ..core.logging import get_logger
from ..media.formats import CameraFormat
from ..media.platforms import PlatformVariantConfig
from ..media.probe import VideoMetadata
from .upload_storage import validate_filename

logger = get_logger("services.analysis_store")

PLATFORM_CONFIG_NOT_FOUND = "Platform configuration not found"


class FileStatus(str, Enum):
    """Status reported to polling clients."""

    ANALYZING = "analyzing"
    ANALYZED = "analyzed"
    COMPLETED = "completed"  # at least one processed entry, not necessarily all requested
    FAILED = "failed"


class AnalysisStoreError(Exception):
    """An analysis record exists but cannot be read or written."""

    pass


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class RenditionResult:
    """Outcome of one platform variant render."""

    processed_at: str
    config: PlatformVariantConfig | None = None
    width: int | None = None
    height: int | None = None
    output_path: str | None = None
    url: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @classmethod
    def success(
        cls, width: int, height: int, output_path: str, url: str, config: PlatformVariantConfig
    ) -> "RenditionResult":
        return cls(
            processed_at=utc_now_iso(),
            config=config,
            width=width,
            height=height,
            output_path=output_path,
            url=url,
        )

    @classmethod
    def failure(cls, error: str, config: PlatformVariantConfig | None = None) -> "RenditionResult":
        return cls(processed_at=utc_now_iso(), config=config, error=error)

    def to_dict(self) -> dict[str, Any]:
        if self.succeeded:
            data = {
                "width": self.width,
                "height": self.height,
                "aspect_ratio": f"{self.width}:{self.height}",
                "output_path": self.output_path,
                "url": self.url,
            }
        else:
            data = {"error": self.error}
        if self.config is not None:
            data["config"] = self.config.to_dict()
        data["processed_at"] = self.processed_at
        return data


@dataclass
class AnalysisRecord:
    """Persisted classification and rendition outcomes for one upload."""

    filename: str
    metadata: VideoMetadata
    camera_format: CameraFormat
    processed: dict[str, dict[str, Any]] = field(default_factory=dict)
    analyzed: bool = True

    @property
    def original(self) -> dict[str, Any]:
        return {"metadata": self.metadata.to_dict(), "camera_format": CameraFormat(self.camera_format).value}

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "original": self.original,
            "analyzed": self.analyzed,
            "processed": self.processed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], filename: str) -> "AnalysisRecord":
        original = data["original"]
        return cls(
            filename=data.get("filename", filename),
            metadata=VideoMetadata.from_dict(original["metadata"]),
            camera_format=CameraFormat(original["camera_format"]),
            processed=dict(data.get("processed") or {}),
            analyzed=bool(data.get("analyzed", True)),
        )


class AnalysisStore:
    """File-backed store of analysis records, keyed by upload filename."""

    def __init__(self, storage: StorageConfig):
        self.processed_dir = storage.processed_path

    def analysis_path(self, filename: str) -> Path:
        return self.processed_dir / f"{validate_filename(filename)}_analysis.json"

    def error_path(self, filename: str) -> Path:
        return self.processed_dir / f"{validate_filename(filename)}_error.json"

    def load(self, filename: str) -> AnalysisRecord | None:
        """Load the record for a file, or None if it was never analyzed."""
        path = self.analysis_path(filename)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return AnalysisRecord.from_dict(data, filename)
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise AnalysisStoreError(f"Analysis record for {filename} is unreadable: {e}")

    def save(self, record: AnalysisRecord) -> None:
        self._write_json(self.analysis_path(record.filename), record.to_dict())

    def create(self, filename: str, metadata: VideoMetadata, camera_format: CameraFormat) -> AnalysisRecord:
        """Persist a fresh record with no processed entries."""
        record = AnalysisRecord(filename=filename, metadata=metadata, camera_format=camera_format)
        self.save(record)
        self.clear_failure(filename)
        logger.info("Analysis record created", filename=filename, camera_format=record.original["camera_format"])
        return record

    def merge_result(
        self, record: AnalysisRecord, platform_variant_id: str, result: RenditionResult
    ) -> AnalysisRecord:
        """
        Set one variant's result on the latest persisted record and save it.

        The record on disk is re-read first so entries written by an
        overlapping run for other variants survive; the same variant is
        overwritten, last writer wins.
        """
        try:
            current = self.load(record.filename) or record
        except AnalysisStoreError as e:
            logger.warning("Replacing unreadable analysis record", filename=record.filename, error=str(e))
            current = record

        current.processed[platform_variant_id] = result.to_dict()
        self.save(current)
        return current

    def write_failure(self, filename: str, error: str, platforms: list[str] | None = None) -> None:
        """Record a file-level failure."""
        self._write_json(
            self.error_path(filename),
            {"error": error, "platforms": platforms or [], "timestamp": utc_now_iso()},
        )

    def load_failure(self, filename: str) -> dict[str, Any] | None:
        path = self.error_path(filename)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            return {"error": f"Failure record for {filename} is unreadable: {e}"}

    def clear_failure(self, filename: str) -> None:
        try:
            self.error_path(filename).unlink()
        except FileNotFoundError:
            pass

    def get_status(self, filename: str) -> dict[str, Any]:
        """
        Build the status report polled by clients.

        "completed" means at least one variant has a result; callers check
        which requested variants are present.
        """
        try:
            record = self.load(filename)
        except AnalysisStoreError as e:
            return {
                "status": FileStatus.FAILED.value,
                "error": {"error": str(e)},
                "message": "Video analysis record could not be read",
            }

        if record is not None:
            if record.processed:
                return {
                    "status": FileStatus.COMPLETED.value,
                    "original": record.original,
                    "processed": record.processed,
                    "message": f"Processed for {len(record.processed)} platform(s)",
                }
            return {
                "status": FileStatus.ANALYZED.value,
                "original": record.original,
                "message": "Video analyzed, ready for platform processing",
            }

        failure = self.load_failure(filename)
        if failure is not None:
            return {
                "status": FileStatus.FAILED.value,
                "error": failure,
                "message": "Video processing failed",
            }

        return {"status": FileStatus.ANALYZING.value, "message": "Video is being analyzed"}

    def _write_json(self, path: Path, data: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp_file:
                json.dump(data, tmp_file, indent=2)
            os.replace(tmp_path, path)
        except OSError as e:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise AnalysisStoreError(f"Could not write {path.name}: {e}")
