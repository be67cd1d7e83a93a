"""Shared fixtures for Crosspost Media tests."""

import asyncio
import os

import pytest

from app.core.config import get_test_settings
from app.media.ffmpeg_wrapper import RenderError, RenditionOutput, plan_geometry
from app.media.probe import VideoMetadata
from app.observability.metrics import get_test_metrics


def make_metadata(width: int, height: int, duration: float = 30.0, **overrides) -> VideoMetadata:
    values = dict(
        width=width,
        height=height,
        duration=duration,
        aspect_ratio=width / height,
        fps=30.0,
        codec="h264",
        bitrate=2_000_000,
        file_size=1024,
    )
    values.update(overrides)
    return VideoMetadata(**values)


@pytest.fixture
def test_settings(tmp_path):
    """Settings rooted in a per-test uploads directory."""
    settings = get_test_settings(uploads_dir=str(tmp_path / "uploads"))
    settings.storage.uploads_path.mkdir(parents=True, exist_ok=True)
    settings.storage.processed_path.mkdir(parents=True, exist_ok=True)
    return settings


@pytest.fixture
def test_metrics():
    return get_test_metrics()


@pytest.fixture
def write_upload(test_settings):
    """Create a fake source file in the uploads directory."""

    def _write(filename: str = "video-1700000000000-42.mp4", content: bytes = b"\x00" * 64) -> str:
        path = test_settings.storage.uploads_path / filename
        path.write_bytes(content)
        return filename

    return _write


class FakeProbe:
    """MetadataProbe stand-in returning canned metadata per filename."""

    def __init__(self, default: VideoMetadata | None = None, by_name: dict | None = None, error=None):
        self.default = default or make_metadata(1920, 1080)
        self.by_name = by_name or {}
        self.error = error
        self.calls: list[str] = []

    async def probe(self, file_path: str) -> VideoMetadata:
        self.calls.append(file_path)
        if self.error is not None:
            raise self.error
        return self.by_name.get(os.path.basename(file_path), self.default)


class FakeEngine:
    """RenditionEngine stand-in that computes geometry and writes a stub file."""

    def __init__(self, fail_platforms=(), crash_platforms=(), delay: float = 0):
        self.fail_platforms = set(fail_platforms)
        self.crash_platforms = set(crash_platforms)
        self.delay = delay
        self.calls: list[tuple[str, str]] = []

    async def render(self, input_path, output_path, config, metadata) -> RenditionOutput:
        self.calls.append((config.platform_variant_id, config.transform.value))
        if self.delay:
            await asyncio.sleep(self.delay)
        if config.platform_variant_id in self.fail_platforms:
            raise RenderError("FFmpeg failed with exit code 1: broken pipe")
        if config.platform_variant_id in self.crash_platforms:
            raise ProcessLookupError("No such process")

        plan = plan_geometry(config, metadata)
        with open(output_path, "wb") as f:
            f.write(b"\x00" * 32)
        return RenditionOutput(plan.width, plan.height, output_path, 32, 0.0)
