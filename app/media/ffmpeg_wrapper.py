"""
FFmpeg rendition engine for Crosspost Media.

This module turns a platform variant config into a concrete geometry plan
(center crop, letterbox/pillarbox or scale-to-fit), compiles the ffmpeg
command with ffmpeg-python and runs it as an asyncio subprocess with a
deadline. Timeouts are retried with exponential backoff.
"""

import asyncio
import os
import time
from dataclasses import dataclass, field
from typing import Any

import ffmpeg
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..core.config import MediaConfig
from ..core.logging import get_logger, performance_logger
from ..observability.metrics import MetricsCollector, metrics as default_metrics
from .platforms import DEFAULT_PADDING_COLOR, PlatformVariantConfig, Transform
from .probe import VideoMetadata

logger = get_logger("media.ffmpeg_wrapper")

# Fixed output encoding for every rendition
OUTPUT_FORMAT = "mp4"
OUTPUT_EXTENSION = "mp4"
VIDEO_CODEC = "libx264"
AUDIO_CODEC = "aac"
VIDEO_BITRATE = "2000k"
AUDIO_BITRATE = "128k"
OUTPUT_FPS = 30

STDERR_TAIL_CHARS = 1000


class RenderError(Exception):
    """Transcoder invocation failed for a platform variant."""

    pass


class RenderTimeoutError(RenderError):
    """Transcoder did not finish within the configured deadline."""

    pass


@dataclass
class FilterStep:
    """One ffmpeg video filter, e.g. FilterStep("scale", (1080, 1920))."""

    name: str
    args: tuple = ()
    kwargs: dict[str, Any] = field(default_factory=dict)


@dataclass
class RenditionPlan:
    """Target geometry and the filter chain that produces it."""

    width: int
    height: int
    transform: Transform
    filters: list[FilterStep]


@dataclass
class RenditionOutput:
    """Result of a successful render."""

    width: int
    height: int
    output_path: str
    file_size: int
    execution_time: float


def plan_geometry(config: PlatformVariantConfig, metadata: VideoMetadata) -> RenditionPlan:
    """
    Compute output dimensions and filters for a platform variant.

    cropToSquare: centered square of side min(w, h), scaled down to max_width.
    addPadding: a box with the target aspect ratio, fitted by width when the
        source is wider than the target and by height otherwise; the source
        is scaled inside it and the rest is padded.
    none: pass-through, or scale down preserving the source ratio when the
        source exceeds the variant bounds.
    """
    transform = Transform(config.transform)

    if transform is Transform.CROP_TO_SQUARE:
        size = min(metadata.width, metadata.height)
        target = min(size, config.max_width)
        return RenditionPlan(
            width=target,
            height=target,
            transform=transform,
            filters=[
                FilterStep("crop", (size, size, f"(iw-{size})/2", f"(ih-{size})/2")),
                FilterStep("scale", (target, target)),
            ],
        )

    target_ratio = config.target_ratio

    if transform is Transform.ADD_PADDING:
        if metadata.aspect_ratio > target_ratio:
            width = config.max_width
            height = round(width / target_ratio)
        else:
            height = config.max_height
            width = round(height * target_ratio)
        color = config.padding_color or DEFAULT_PADDING_COLOR
        return RenditionPlan(
            width=width,
            height=height,
            transform=transform,
            filters=[
                FilterStep("scale", (width, height), {"force_original_aspect_ratio": "decrease"}),
                FilterStep("pad", (width, height, "(ow-iw)/2", "(oh-ih)/2", color)),
            ],
        )

    if metadata.width > config.max_width or metadata.height > config.max_height:
        if metadata.aspect_ratio > target_ratio:
            width = config.max_width
            height = round(width / metadata.aspect_ratio)
        else:
            height = config.max_height
            width = round(height * metadata.aspect_ratio)
    else:
        width, height = metadata.width, metadata.height

    return RenditionPlan(
        width=width,
        height=height,
        transform=transform,
        filters=[FilterStep("scale", (width, height))],
    )


def rendition_filename(source_filename: str, platform_variant_id: str) -> str:
    """Deterministic rendition name: {base-name}_{variant}.mp4."""
    base_name = os.path.splitext(os.path.basename(source_filename))[0]
    return f"{base_name}_{platform_variant_id}.{OUTPUT_EXTENSION}"


async def _kill(process: asyncio.subprocess.Process) -> None:
    """Kill an ffmpeg child and reap it; it may already have exited."""
    try:
        process.kill()
    except ProcessLookupError:
        pass
    await process.wait()


def _discard_partial(output_path: str) -> None:
    try:
        os.remove(output_path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove partial rendition", output_path=output_path, error=str(e))


class RenditionEngine:
    """Runs ffmpeg to produce one platform rendition at a time."""

    def __init__(self, config: MediaConfig, metrics: MetricsCollector | None = None):
        self.ffmpeg_binary = config.ffmpeg_binary
        self.timeout_seconds = config.transcode_timeout
        self.max_attempts = config.render_max_attempts
        self.retry_wait = wait_exponential(multiplier=1, min=1, max=30)
        self.metrics = metrics or default_metrics
        logger.info(
            "RenditionEngine initialized",
            ffmpeg_binary=self.ffmpeg_binary,
            timeout_seconds=self.timeout_seconds,
            max_attempts=self.max_attempts,
        )

    def build_command(self, input_path: str, output_path: str, plan: RenditionPlan) -> list[str]:
        """Compile the ffmpeg argument list for a rendition plan."""
        source = ffmpeg.input(input_path)
        video = source.video
        for step in plan.filters:
            video = video.filter(step.name, *step.args, **step.kwargs)

        stream = ffmpeg.output(
            video,
            source["a?"],
            output_path,
            format=OUTPUT_FORMAT,
            vcodec=VIDEO_CODEC,
            acodec=AUDIO_CODEC,
            video_bitrate=VIDEO_BITRATE,
            audio_bitrate=AUDIO_BITRATE,
            r=OUTPUT_FPS,
        )
        return stream.overwrite_output().compile(cmd=self.ffmpeg_binary)

    async def render(
        self,
        input_path: str,
        output_path: str,
        config: PlatformVariantConfig,
        metadata: VideoMetadata,
    ) -> RenditionOutput:
        """
        Render one platform variant.

        Args:
            input_path: Source video
            output_path: Destination file
            config: Platform variant config, including its transform
            metadata: Metadata of the source video

        Returns:
            Output geometry and file facts

        Raises:
            RenderError: the transcoder could not produce the rendition
        """
        start_time = time.time()
        platform = config.platform_variant_id
        plan = plan_geometry(config, metadata)

        logger.info(
            "Starting rendition",
            platform=platform,
            input_path=input_path,
            output_path=output_path,
            transform=plan.transform.value,
            target=f"{plan.width}x{plan.height}",
        )

        try:
            file_size = await self._produce(input_path, output_path, plan, platform)
        except RenderError as e:
            execution_time = time.time() - start_time
            error_type = "timeout" if isinstance(e, RenderTimeoutError) else "transcode_error"
            self.metrics.track_media_processed(platform, plan.transform.value, False, execution_time)
            self.metrics.track_media_failed(platform, error_type)
            performance_logger.log_render_performance(platform, execution_time, False, error_type=error_type)
            raise
        except asyncio.CancelledError:
            logger.warning("Rendition cancelled", platform=platform, output_path=output_path)
            _discard_partial(output_path)
            raise

        execution_time = time.time() - start_time

        self.metrics.track_media_processed(platform, plan.transform.value, True, execution_time, file_size)
        performance_logger.log_render_performance(
            platform, execution_time, True, output_size=f"{plan.width}x{plan.height}", file_size=file_size
        )

        return RenditionOutput(
            width=plan.width,
            height=plan.height,
            output_path=output_path,
            file_size=file_size,
            execution_time=execution_time,
        )

    async def _produce(self, input_path: str, output_path: str, plan: RenditionPlan, platform: str) -> int:
        """Run ffmpeg for a plan and return the size of the written file."""
        if not os.path.exists(input_path):
            raise RenderError(f"Input file does not exist: {input_path}")

        try:
            output_dir = os.path.dirname(output_path)
            if output_dir:
                os.makedirs(output_dir, exist_ok=True)

            command = self.build_command(input_path, output_path, plan)
            await self._execute_with_retries(command, platform)

            if not os.path.exists(output_path):
                raise RenderError(f"Output file was not created: {output_path}")
            return os.path.getsize(output_path)
        except OSError as e:
            raise RenderError(f"Rendition I/O error: {e}") from e

    async def _execute_with_retries(self, command: list[str], platform: str) -> None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.retry_wait,
            retry=retry_if_exception_type(RenderTimeoutError),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                attempt_number = attempt.retry_state.attempt_number
                if attempt_number > 1:
                    logger.warning(f"Rendition attempt {attempt_number}/{self.max_attempts}", platform=platform)
                await self._execute(command)

    async def _execute(self, command: list[str]) -> None:
        """Run a single ffmpeg invocation."""
        logger.debug("Executing FFmpeg command", command=" ".join(command))

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise RenderError(f"Could not start ffmpeg: {e}")

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            await _kill(process)
            raise RenderTimeoutError(f"Rendition timed out after {self.timeout_seconds}s")
        except BaseException:
            # cancelled or failed while ffmpeg is still writing
            await _kill(process)
            raise

        if process.returncode != 0:
            stderr_str = stderr.decode("utf-8", errors="replace").strip() if stderr else ""
            raise RenderError(f"FFmpeg failed with exit code {process.returncode}: {stderr_str[-STDERR_TAIL_CHARS:]}")
