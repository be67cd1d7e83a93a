"""
Video metadata probe for Crosspost Media.

Reads geometry, timing and codec facts from an uploaded file with ffprobe
(through ffmpeg-python). Inspection failures degrade to a fallback record
built from the file size; only a container without any video stream is
reported to the caller.
"""

import asyncio
import functools
import os
from dataclasses import asdict, dataclass
from fractions import Fraction
from typing import Any

import ffmpeg

from ..core.config import MediaConfig
from ..core.logging import get_logger

logger = get_logger("media.probe")

FALLBACK_WIDTH = 1920
FALLBACK_HEIGHT = 1080
FALLBACK_DURATION = 30.0
FALLBACK_FPS = 30.0


@dataclass(frozen=True)
class VideoMetadata:
    """Facts about an uploaded video, produced once per file."""

    width: int
    height: int
    duration: float
    aspect_ratio: float
    fps: float
    codec: str
    bitrate: int
    file_size: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VideoMetadata":
        width = int(data["width"])
        height = int(data["height"])
        return cls(
            width=width,
            height=height,
            duration=float(data.get("duration", 0.0)),
            aspect_ratio=float(data.get("aspect_ratio") or width / height),
            fps=float(data.get("fps", FALLBACK_FPS)),
            codec=str(data.get("codec", "unknown")),
            bitrate=int(data.get("bitrate", 0)),
            file_size=int(data.get("file_size", 0)),
        )

    @classmethod
    def fallback(cls, file_size: int) -> "VideoMetadata":
        """Plausible defaults used when the file cannot be inspected."""
        return cls(
            width=FALLBACK_WIDTH,
            height=FALLBACK_HEIGHT,
            duration=FALLBACK_DURATION,
            aspect_ratio=FALLBACK_WIDTH / FALLBACK_HEIGHT,
            fps=FALLBACK_FPS,
            codec="unknown",
            bitrate=0,
            file_size=file_size,
        )


class ProbeError(Exception):
    """Base exception for probe operations."""

    pass


class ProbeUnavailableError(ProbeError):
    """ffprobe is missing, timed out or could not read the container."""

    pass


class NoVideoStreamError(ProbeError):
    """The container is readable but holds no video stream."""

    pass


def parse_frame_rate(value: str | None, default: float = FALLBACK_FPS) -> float:
    """Parse an ffprobe rational such as '30000/1001'."""
    if not value:
        return default
    try:
        rate = float(Fraction(value))
    except (ValueError, ZeroDivisionError):
        return default
    return rate if rate > 0 else default


def _to_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def metadata_from_probe(probe: dict[str, Any]) -> VideoMetadata:
    """Build VideoMetadata from ffprobe JSON output."""
    video_stream = next(
        (stream for stream in probe.get("streams", []) if stream.get("codec_type") == "video"),
        None,
    )
    if video_stream is None:
        raise NoVideoStreamError("No video stream found")

    width = _to_int(video_stream.get("width"))
    height = _to_int(video_stream.get("height"))
    if width <= 0 or height <= 0:
        raise ProbeUnavailableError(f"Video stream has no usable dimensions: {width}x{height}")

    fmt = probe.get("format", {})
    return VideoMetadata(
        width=width,
        height=height,
        duration=_to_float(fmt.get("duration", video_stream.get("duration"))),
        aspect_ratio=width / height,
        fps=parse_frame_rate(video_stream.get("r_frame_rate")),
        codec=video_stream.get("codec_name") or "unknown",
        bitrate=_to_int(fmt.get("bit_rate")),
        file_size=_to_int(fmt.get("size")),
    )


class MetadataProbe:
    """Extracts VideoMetadata from files on disk."""

    def __init__(self, config: MediaConfig):
        self.ffprobe_binary = config.ffprobe_binary
        self.timeout_seconds = config.analysis_timeout

    async def probe(self, file_path: str) -> VideoMetadata:
        """
        Inspect a video file.

        Args:
            file_path: Path to the uploaded file

        Returns:
            Metadata of the first video stream, or fallback metadata when
            the file cannot be inspected

        Raises:
            NoVideoStreamError: the container holds no video stream
        """
        try:
            data = await self._run_ffprobe(file_path)
            metadata = metadata_from_probe(data)
        except ProbeUnavailableError as e:
            logger.warning("Probe unavailable, using fallback metadata", file_path=file_path, error=str(e))
            return VideoMetadata.fallback(self._file_size(file_path))

        logger.info(
            "Video probed",
            file_path=file_path,
            width=metadata.width,
            height=metadata.height,
            duration=metadata.duration,
            codec=metadata.codec,
        )
        return metadata

    async def _run_ffprobe(self, file_path: str) -> dict[str, Any]:
        """Run ffprobe off the event loop and return its parsed JSON."""
        loop = asyncio.get_running_loop()
        call = functools.partial(ffmpeg.probe, file_path, cmd=self.ffprobe_binary)
        try:
            return await asyncio.wait_for(loop.run_in_executor(None, call), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            raise ProbeUnavailableError(f"ffprobe timed out after {self.timeout_seconds}s")
        except ffmpeg.Error as e:
            stderr = e.stderr.decode("utf-8", errors="replace") if e.stderr else ""
            raise ProbeUnavailableError(f"ffprobe failed: {stderr.strip() or e}")
        except (OSError, ValueError) as e:
            # missing binary, unreadable file or malformed JSON
            raise ProbeUnavailableError(str(e))

    @staticmethod
    def _file_size(file_path: str) -> int:
        try:
            return os.path.getsize(file_path)
        except OSError:
            return 0
