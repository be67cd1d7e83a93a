"""
Platform variant specifications and rendition planning.

PLATFORM_SPECS holds the static constraints of every platform variant.
plan_renditions() picks, per camera format, which variants are native fits
and which need a content transform (center crop or letterbox/pillarbox).
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from .formats import CameraFormat
from .probe import VideoMetadata

MB = 1024 * 1024
GB = 1024 * MB

DEFAULT_PADDING_COLOR = "black"


class Transform(str, Enum):
    """Geometry transform applied by the rendition engine."""

    NONE = "none"
    CROP_TO_SQUARE = "cropToSquare"
    ADD_PADDING = "addPadding"


@dataclass(frozen=True)
class PlatformVariantConfig:
    """Constraints and transform for one platform variant."""

    platform_variant_id: str
    max_width: int
    max_height: int
    target_aspect_ratio: str  # "W:H"
    max_file_size_bytes: int
    max_duration_seconds: int
    allowed_formats: frozenset[str] = field(default_factory=lambda: frozenset({"mp4"}))
    transform: Transform = Transform.NONE
    padding_color: str | None = None

    @property
    def target_ratio(self) -> float:
        return parse_aspect_ratio(self.target_aspect_ratio)

    def with_transform(self, transform: Transform, padding_color: str | None = None) -> "PlatformVariantConfig":
        return replace(self, transform=transform, padding_color=padding_color)

    def to_dict(self) -> dict[str, Any]:
        data = {
            "platform_variant_id": self.platform_variant_id,
            "max_width": self.max_width,
            "max_height": self.max_height,
            "target_aspect_ratio": self.target_aspect_ratio,
            "allowed_formats": sorted(self.allowed_formats),
            "max_file_size_bytes": self.max_file_size_bytes,
            "max_duration_seconds": self.max_duration_seconds,
            "transform": self.transform.value,
        }
        if self.padding_color is not None:
            data["padding_color"] = self.padding_color
        return data


def parse_aspect_ratio(value: str) -> float:
    """Parse a 'W:H' string into a float ratio."""
    try:
        width, height = (float(part) for part in value.split(":"))
    except ValueError:
        raise ValueError(f"Invalid aspect ratio: {value!r}")
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid aspect ratio: {value!r}")
    return width / height


# Platform-specific video requirements
PLATFORM_SPECS: dict[str, PlatformVariantConfig] = {
    "facebook": PlatformVariantConfig(
        platform_variant_id="facebook",
        max_width=1920,
        max_height=1080,
        target_aspect_ratio="16:9",
        max_file_size_bytes=4 * GB,
        max_duration_seconds=240,
    ),
    "instagram_feed": PlatformVariantConfig(
        platform_variant_id="instagram_feed",
        max_width=1080,
        max_height=1080,
        target_aspect_ratio="1:1",
        max_file_size_bytes=100 * MB,
        max_duration_seconds=60,
    ),
    "instagram_reels": PlatformVariantConfig(
        platform_variant_id="instagram_reels",
        max_width=1080,
        max_height=1920,
        target_aspect_ratio="9:16",
        max_file_size_bytes=100 * MB,
        max_duration_seconds=90,
    ),
    "tiktok": PlatformVariantConfig(
        platform_variant_id="tiktok",
        max_width=1080,
        max_height=1920,
        target_aspect_ratio="9:16",
        max_file_size_bytes=500 * MB,
        max_duration_seconds=180,
    ),
    "youtube_regular": PlatformVariantConfig(
        platform_variant_id="youtube_regular",
        max_width=1920,
        max_height=1080,
        target_aspect_ratio="16:9",
        max_file_size_bytes=256 * GB,
        max_duration_seconds=43200,
    ),
    "youtube_shorts": PlatformVariantConfig(
        platform_variant_id="youtube_shorts",
        max_width=1080,
        max_height=1920,
        target_aspect_ratio="9:16",
        max_file_size_bytes=15 * GB,
        max_duration_seconds=60,
    ),
}

# (native variants, cropped-to-square variants, padded variants) per camera format
_FORMAT_PLANS: dict[CameraFormat, tuple[tuple[str, ...], tuple[str, ...], tuple[str, ...]]] = {
    CameraFormat.PORTRAIT: (
        ("tiktok", "instagram_reels", "youtube_shorts"),
        ("instagram_feed",),
        ("facebook",),
    ),
    CameraFormat.LANDSCAPE_HD: (
        ("facebook", "youtube_regular"),
        ("instagram_feed",),
        ("tiktok", "instagram_reels"),
    ),
    CameraFormat.LANDSCAPE_SD: (
        ("facebook", "youtube_regular"),
        ("instagram_feed",),
        ("tiktok", "instagram_reels"),
    ),
    CameraFormat.SQUARE: (
        ("instagram_feed",),
        (),
        ("facebook", "tiktok", "youtube_regular"),
    ),
}


def plan_renditions(camera_format: CameraFormat, metadata: VideoMetadata) -> dict[str, PlatformVariantConfig]:
    """
    Build the platform variant table for an analyzed upload.

    Native-orientation variants keep their base config. Mismatched
    orientations are letterboxed/pillarboxed, except the square feed which
    is center-cropped. Formats without a dedicated plan get every variant
    untransformed and rely on scale-to-fit. The table depends on the
    camera format only; metadata is currently unused.
    """
    camera_format = CameraFormat(camera_format)
    plan = _FORMAT_PLANS.get(camera_format)

    if plan is None:
        return dict(PLATFORM_SPECS)

    native, cropped, padded = plan
    configs: dict[str, PlatformVariantConfig] = {}

    for variant_id in native:
        configs[variant_id] = PLATFORM_SPECS[variant_id]
    for variant_id in cropped:
        configs[variant_id] = PLATFORM_SPECS[variant_id].with_transform(Transform.CROP_TO_SQUARE)
    for variant_id in padded:
        configs[variant_id] = PLATFORM_SPECS[variant_id].with_transform(
            Transform.ADD_PADDING, padding_color=DEFAULT_PADDING_COLOR
        )

    return configs


def get_all_platform_variants() -> list[str]:
    """List every known platform variant identifier."""
    return list(PLATFORM_SPECS.keys())
