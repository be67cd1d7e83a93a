"""
Unit tests for platform variant planning.
"""

import pytest

from app.media.formats import CameraFormat
from app.media.platforms import (
    PLATFORM_SPECS,
    PlatformVariantConfig,
    Transform,
    get_all_platform_variants,
    parse_aspect_ratio,
    plan_renditions,
)
from conftest import make_metadata


class TestPlatformSpecs:
    """Test the static variant table."""

    def test_all_variants_present(self):
        """Test that the table has all seven variants."""
        assert set(get_all_platform_variants()) == {
            "facebook",
            "instagram_feed",
            "instagram_reels",
            "tiktok",
            "youtube_regular",
            "youtube_shorts",
        }

    @pytest.mark.parametrize("variant_id,width,height,ratio", [
        ("facebook", 1920, 1080, "16:9"),
        ("instagram_feed", 1080, 1080, "1:1"),
        ("instagram_reels", 1080, 1920, "9:16"),
        ("tiktok", 1080, 1920, "9:16"),
        ("youtube_regular", 1920, 1080, "16:9"),
        ("youtube_shorts", 1080, 1920, "9:16"),
    ])
    def test_variant_geometry(self, variant_id, width, height, ratio):
        """Test per-variant bounds and ratios."""
        config = PLATFORM_SPECS[variant_id]
        assert config.platform_variant_id == variant_id
        assert (config.max_width, config.max_height) == (width, height)
        assert config.target_aspect_ratio == ratio
        assert config.allowed_formats == frozenset({"mp4"})
        assert config.transform is Transform.NONE

    def test_duration_limits(self):
        """Test per-variant duration limits."""
        assert PLATFORM_SPECS["facebook"].max_duration_seconds == 240
        assert PLATFORM_SPECS["instagram_reels"].max_duration_seconds == 90
        assert PLATFORM_SPECS["youtube_regular"].max_duration_seconds == 43200

    def test_parse_aspect_ratio(self):
        """Test ratio string parsing."""
        assert parse_aspect_ratio("16:9") == pytest.approx(16 / 9)
        assert parse_aspect_ratio("1:1") == 1.0

    @pytest.mark.parametrize("value", ["16x9", "0:1", "abc", "1:2:3"])
    def test_parse_aspect_ratio_invalid(self, value):
        """Test malformed ratio strings."""
        with pytest.raises(ValueError):
            parse_aspect_ratio(value)

    def test_to_dict_is_snake_case(self):
        """Test serialized config keys."""
        data = PLATFORM_SPECS["tiktok"].with_transform(Transform.ADD_PADDING, "black").to_dict()
        assert data["platform_variant_id"] == "tiktok"
        assert data["target_aspect_ratio"] == "9:16"
        assert data["allowed_formats"] == ["mp4"]
        assert data["transform"] == "addPadding"
        assert data["padding_color"] == "black"

    def test_with_transform_does_not_mutate_base(self):
        """Test that planning never changes the static table."""
        PLATFORM_SPECS["facebook"].with_transform(Transform.ADD_PADDING, "black")
        assert PLATFORM_SPECS["facebook"].transform is Transform.NONE
        assert PLATFORM_SPECS["facebook"].padding_color is None


class TestPlanRenditions:
    """Test per-format plans."""

    def test_portrait_plan(self):
        """Test transforms for portrait sources."""
        plan = plan_renditions(CameraFormat.PORTRAIT, make_metadata(1080, 1920))

        assert set(plan) == {"tiktok", "instagram_reels", "youtube_shorts", "instagram_feed", "facebook"}
        for variant_id in ("tiktok", "instagram_reels", "youtube_shorts"):
            assert plan[variant_id].transform is Transform.NONE
        assert plan["instagram_feed"].transform is Transform.CROP_TO_SQUARE
        assert plan["facebook"].transform is Transform.ADD_PADDING
        assert plan["facebook"].padding_color == "black"

    @pytest.mark.parametrize("camera_format", [CameraFormat.LANDSCAPE_HD, CameraFormat.LANDSCAPE_SD])
    def test_landscape_plan(self, camera_format):
        """Test transforms for landscape sources."""
        plan = plan_renditions(camera_format, make_metadata(1920, 1080))

        assert set(plan) == {"facebook", "youtube_regular", "instagram_feed", "tiktok", "instagram_reels"}
        assert plan["facebook"].transform is Transform.NONE
        assert plan["youtube_regular"].transform is Transform.NONE
        assert plan["instagram_feed"].transform is Transform.CROP_TO_SQUARE
        assert plan["tiktok"].transform is Transform.ADD_PADDING
        assert plan["instagram_reels"].padding_color == "black"

    def test_square_plan(self):
        """Test transforms for square sources."""
        plan = plan_renditions(CameraFormat.SQUARE, make_metadata(1080, 1080))

        assert set(plan) == {"instagram_feed", "facebook", "tiktok", "youtube_regular"}
        assert plan["instagram_feed"].transform is Transform.NONE
        for variant_id in ("facebook", "tiktok", "youtube_regular"):
            assert plan[variant_id].transform is Transform.ADD_PADDING

    @pytest.mark.parametrize("camera_format", [
        CameraFormat.STANDARD,
        CameraFormat.ULTRAWIDE,
        CameraFormat.ULTRA_PORTRAIT,
        CameraFormat.CUSTOM,
    ])
    def test_unplanned_formats_get_every_variant_untransformed(self, camera_format):
        """Test formats without a plan."""
        plan = plan_renditions(camera_format, make_metadata(640, 480))

        assert plan == PLATFORM_SPECS
        assert plan is not PLATFORM_SPECS

    def test_accepts_wire_string(self):
        """Test planning from a serialized format name."""
        plan = plan_renditions("portrait", make_metadata(1080, 1920))
        assert plan["facebook"].transform is Transform.ADD_PADDING

    def test_plan_entries_are_configs(self):
        plan = plan_renditions(CameraFormat.LANDSCAPE_HD, make_metadata(1920, 1080))
        assert all(isinstance(config, PlatformVariantConfig) for config in plan.values())
        assert all(config.platform_variant_id == key for key, config in plan.items())
