"""
Unit tests for ffprobe-backed metadata extraction.
"""

from unittest.mock import patch

import ffmpeg
import pytest

from app.media.probe import (
    MetadataProbe,
    NoVideoStreamError,
    ProbeUnavailableError,
    VideoMetadata,
    metadata_from_probe,
    parse_frame_rate,
)

PORTRAIT_PROBE = {
    "streams": [
        {"codec_type": "audio", "codec_name": "aac"},
        {
            "codec_type": "video",
            "codec_name": "h264",
            "width": 1080,
            "height": 1920,
            "r_frame_rate": "30000/1001",
        },
    ],
    "format": {"duration": "30.5", "bit_rate": "4500000", "size": "17000000"},
}


class TestFrameRateParsing:
    """Test ffprobe rational parsing."""

    def test_ntsc_rate(self):
        """Test parsing of 30000/1001."""
        assert parse_frame_rate("30000/1001") == pytest.approx(29.97, abs=0.01)

    def test_integer_rate(self):
        """Test parsing of a whole frame rate."""
        assert parse_frame_rate("25/1") == 25.0

    @pytest.mark.parametrize("value", [None, "", "0/0", "abc", "0/1"])
    def test_invalid_rates_fall_back(self, value):
        """Test malformed frame rates."""
        assert parse_frame_rate(value) == 30.0


class TestMetadataFromProbe:
    """Test conversion of ffprobe JSON."""

    def test_first_video_stream_used(self):
        """Test that the first video stream is selected."""
        metadata = metadata_from_probe(PORTRAIT_PROBE)

        assert metadata.width == 1080
        assert metadata.height == 1920
        assert metadata.duration == 30.5
        assert metadata.aspect_ratio == pytest.approx(0.5625)
        assert metadata.codec == "h264"
        assert metadata.bitrate == 4500000
        assert metadata.file_size == 17000000

    def test_no_video_stream(self):
        """Test upload of a file without a video stream."""
        with pytest.raises(NoVideoStreamError, match="No video stream found"):
            metadata_from_probe({"streams": [{"codec_type": "audio"}], "format": {}})

    def test_zero_dimensions_unavailable(self):
        """Test a video stream without dimensions."""
        probe = {"streams": [{"codec_type": "video", "width": 0, "height": 0}], "format": {}}
        with pytest.raises(ProbeUnavailableError):
            metadata_from_probe(probe)

    def test_missing_format_fields_default(self):
        """Test defaults for missing duration and bitrate."""
        probe = {"streams": [{"codec_type": "video", "width": 640, "height": 480}]}
        metadata = metadata_from_probe(probe)

        assert metadata.duration == 0.0
        assert metadata.bitrate == 0
        assert metadata.codec == "unknown"
        assert metadata.fps == 30.0


class TestVideoMetadata:
    """Test the metadata record."""

    def test_fallback_values(self):
        """Test the fallback metadata values."""
        metadata = VideoMetadata.fallback(file_size=2048)

        assert (metadata.width, metadata.height) == (1920, 1080)
        assert metadata.duration == 30.0
        assert metadata.aspect_ratio == pytest.approx(16 / 9)
        assert metadata.fps == 30.0
        assert metadata.codec == "unknown"
        assert metadata.bitrate == 0
        assert metadata.file_size == 2048

    def test_dict_keys_are_snake_case(self):
        """Test serialized metadata keys."""
        data = metadata_from_probe(PORTRAIT_PROBE).to_dict()
        assert set(data) == {
            "width", "height", "duration", "aspect_ratio", "fps", "codec", "bitrate", "file_size",
        }
        assert VideoMetadata.from_dict(data) == metadata_from_probe(PORTRAIT_PROBE)


class TestMetadataProbe:
    """Test the async probe."""

    @pytest.fixture
    def probe(self, test_settings):
        return MetadataProbe(test_settings.media)

    @pytest.fixture
    def video_file(self, tmp_path):
        path = tmp_path / "clip.mp4"
        path.write_bytes(b"\x00" * 512)
        return str(path)

    @pytest.mark.asyncio
    async def test_probe_success(self, probe, video_file):
        """Test a successful probe."""
        with patch("app.media.probe.ffmpeg.probe", return_value=PORTRAIT_PROBE) as mock_probe:
            metadata = await probe.probe(video_file)

        mock_probe.assert_called_once_with(video_file, cmd="ffprobe")
        assert (metadata.width, metadata.height) == (1080, 1920)

    @pytest.mark.asyncio
    async def test_ffprobe_error_uses_fallback(self, probe, video_file):
        """Test fallback metadata when ffprobe fails."""
        error = ffmpeg.Error("ffprobe", b"", b"moov atom not found")
        with patch("app.media.probe.ffmpeg.probe", side_effect=error):
            metadata = await probe.probe(video_file)

        assert (metadata.width, metadata.height) == (1920, 1080)
        assert metadata.codec == "unknown"
        assert metadata.file_size == 512

    @pytest.mark.asyncio
    async def test_missing_binary_uses_fallback(self, probe, video_file):
        """Test fallback metadata when ffprobe is missing."""
        with patch("app.media.probe.ffmpeg.probe", side_effect=FileNotFoundError("ffprobe")):
            metadata = await probe.probe(video_file)

        assert metadata == VideoMetadata.fallback(512)

    @pytest.mark.asyncio
    async def test_no_video_stream_propagates(self, probe, video_file):
        """Test that a missing video stream is not masked by the fallback."""
        audio_only = {"streams": [{"codec_type": "audio"}], "format": {"duration": "12"}}
        with patch("app.media.probe.ffmpeg.probe", return_value=audio_only):
            with pytest.raises(NoVideoStreamError):
                await probe.probe(video_file)
