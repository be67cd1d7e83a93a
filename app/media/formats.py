"""Camera format classification from video geometry."""

from enum import Enum

from .probe import VideoMetadata

RATIO_TOLERANCE = 0.1
HD_MIN_WIDTH = 1920


class CameraFormat(str, Enum):
    """Canonical orientation/aspect-ratio buckets."""

    PORTRAIT = "portrait"  # 9:16, phone vertical
    LANDSCAPE_HD = "landscape_hd"  # 16:9, width >= 1920
    LANDSCAPE_SD = "landscape_sd"  # 16:9, width < 1920
    SQUARE = "square"  # 1:1
    STANDARD = "standard"  # 4:3
    ULTRAWIDE = "ultrawide"  # wider than 2:1
    ULTRA_PORTRAIT = "ultra_portrait"  # taller than 1:2
    CUSTOM = "custom"


def _near(ratio: float, target: float) -> bool:
    return abs(ratio - target) < RATIO_TOLERANCE


def classify(metadata: VideoMetadata) -> CameraFormat:
    """
    Map metadata to exactly one CameraFormat.

    Bands are tested in a fixed order and the first match wins:
    16:9, 9:16, 1:1, 4:3, ultrawide, ultra portrait, then custom.
    """
    ratio = metadata.aspect_ratio

    if _near(ratio, 16 / 9):
        if metadata.width >= HD_MIN_WIDTH:
            return CameraFormat.LANDSCAPE_HD
        return CameraFormat.LANDSCAPE_SD
    if _near(ratio, 9 / 16):
        return CameraFormat.PORTRAIT
    if _near(ratio, 1.0):
        return CameraFormat.SQUARE
    if _near(ratio, 4 / 3):
        return CameraFormat.STANDARD
    if ratio > 2:
        return CameraFormat.ULTRAWIDE
    if ratio < 0.5:
        return CameraFormat.ULTRA_PORTRAIT
    return CameraFormat.CUSTOM
