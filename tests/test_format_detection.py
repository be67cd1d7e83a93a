"""
Unit tests for camera format classification.

Tests:
- Every ratio band and its boundaries
- HD/SD split for 16:9 sources
- Band ordering (first match wins)
"""

import pytest

from app.media.formats import CameraFormat, HD_MIN_WIDTH, classify
from conftest import make_metadata


class TestLandscapeClassification:
    """Test 16:9 classification."""

    @pytest.mark.parametrize("width,height", [(1920, 1080), (3840, 2160), (2560, 1440)])
    def test_landscape_hd(self, width, height):
        """Test 1920x1080 classification."""
        assert classify(make_metadata(width, height)) is CameraFormat.LANDSCAPE_HD

    @pytest.mark.parametrize("width,height", [(1280, 720), (854, 480), (1918, 1080)])
    def test_landscape_sd(self, width, height):
        """Test 1280x720 classification."""
        assert classify(make_metadata(width, height)) is CameraFormat.LANDSCAPE_SD

    def test_hd_threshold_is_inclusive(self):
        """Test that width 1920 counts as HD."""
        assert classify(make_metadata(HD_MIN_WIDTH, 1080)) is CameraFormat.LANDSCAPE_HD
        assert classify(make_metadata(HD_MIN_WIDTH - 1, 1080)) is CameraFormat.LANDSCAPE_SD

    def test_near_sixteen_nine_within_tolerance(self):
        """Test ratios inside the 16:9 band."""
        # 1.85 is within 0.1 of 1.777
        metadata = make_metadata(1998, 1080)
        assert classify(metadata) is CameraFormat.LANDSCAPE_HD


class TestOtherFormats:
    """Test the remaining bands."""

    def test_portrait(self):
        """Test 9:16 classification."""
        assert classify(make_metadata(1080, 1920)) is CameraFormat.PORTRAIT

    def test_square(self):
        """Test 1:1 classification."""
        assert classify(make_metadata(1080, 1080)) is CameraFormat.SQUARE

    def test_standard(self):
        """Test 4:3 classification."""
        assert classify(make_metadata(640, 480)) is CameraFormat.STANDARD

    def test_ultrawide(self):
        """Test 21:9 classification."""
        assert classify(make_metadata(2560, 1080)) is CameraFormat.ULTRAWIDE

    def test_ultra_portrait(self):
        """Test very tall sources."""
        assert classify(make_metadata(1080, 2400)) is CameraFormat.ULTRA_PORTRAIT

    def test_custom(self):
        """Test ratios outside every band."""
        # 4:5 matches no band
        assert classify(make_metadata(1080, 1350)) is CameraFormat.CUSTOM

    def test_two_to_one_is_custom(self):
        """Test that 2:1 falls between bands."""
        # exactly 2.0 is not "wider than 2:1"
        assert classify(make_metadata(2000, 1000)) is CameraFormat.CUSTOM

    def test_ratio_field_drives_classification(self):
        """Test that the stored aspect ratio is used, not width/height."""
        metadata = make_metadata(1920, 1080, aspect_ratio=1.0)
        assert classify(metadata) is CameraFormat.SQUARE


class TestClassificationProperties:
    """Test totality and determinism."""

    @pytest.mark.parametrize("width,height", [
        (1, 1), (1, 10000), (10000, 1), (720, 1280), (1440, 1080), (1000, 1500),
    ])
    def test_total_and_deterministic(self, width, height):
        """Test that every ratio maps to exactly one format."""
        metadata = make_metadata(width, height)
        first = classify(metadata)
        assert isinstance(first, CameraFormat)
        assert classify(metadata) is first

    def test_format_values_are_wire_strings(self):
        """Test the serialized format names."""
        assert {f.value for f in CameraFormat} == {
            "portrait",
            "landscape_hd",
            "landscape_sd",
            "square",
            "standard",
            "ultrawide",
            "ultra_portrait",
            "custom",
        }
