"""
Media processing module for Crosspost Media.

This module provides format detection and platform adaptation for videos:
- MetadataProbe: ffprobe-backed metadata extraction
- classify: camera format detection from probed dimensions
- plan_renditions: per-platform variant planning with crop/pad transforms
- RenditionEngine: FFmpeg transcoding of one variant
"""

from .probe import (
    MetadataProbe,
    VideoMetadata,
    ProbeError,
    ProbeUnavailableError,
    NoVideoStreamError,
)

from .formats import (
    CameraFormat,
    classify,
)

from .platforms import (
    PLATFORM_SPECS,
    PlatformVariantConfig,
    Transform,
    get_all_platform_variants,
    plan_renditions,
)

from .ffmpeg_wrapper import (
    RenditionEngine,
    RenditionOutput,
    RenditionPlan,
    RenderError,
    RenderTimeoutError,
    plan_geometry,
    rendition_filename,
)


__all__ = [
    # Probe
    "MetadataProbe",
    "VideoMetadata",
    "ProbeError",
    "ProbeUnavailableError",
    "NoVideoStreamError",
    # Formats
    "CameraFormat",
    "classify",
    # Platforms
    "PLATFORM_SPECS",
    "PlatformVariantConfig",
    "Transform",
    "get_all_platform_variants",
    "plan_renditions",
    # Renditions
    "RenditionEngine",
    "RenditionOutput",
    "RenditionPlan",
    "RenderError",
    "RenderTimeoutError",
    "plan_geometry",
    "rendition_filename",
]
