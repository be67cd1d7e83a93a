"""
Processing orchestration for Crosspost Media.

Coordinates probe -> classify -> plan -> render -> persist for one upload.
Processing requests are validated synchronously and the rendering work is
submitted to a BackgroundTaskRunner, so the HTTP request returns while the
run continues on the event loop. Variants of a run are rendered one at a
time and each result is persisted as soon as it is known.
"""

import asyncio
import time
import uuid
from collections.abc import Coroutine
from typing import Any

from ..core.config import Settings
from ..core.logging import audit_logger, get_logger, with_logging_context
from ..media.ffmpeg_wrapper import RenderError, RenditionEngine, rendition_filename
from ..media.formats import classify
from ..media.platforms import PlatformVariantConfig, plan_renditions
from ..media.probe import MetadataProbe, NoVideoStreamError
from ..observability.metrics import MetricsCollector, metrics as default_metrics
from .analysis_store import (
    PLATFORM_CONFIG_NOT_FOUND,
    AnalysisRecord,
    AnalysisStore,
    AnalysisStoreError,
    RenditionResult,
)
from .upload_storage import InvalidFilenameError, UploadStorage

logger = get_logger("services.processing")


class ProcessingRequestError(Exception):
    """A processing request was rejected before any work started."""

    pass


class InvalidRequestError(ProcessingRequestError):
    """Empty platform list or malformed filename."""

    pass


class FileNotFoundInStorageError(ProcessingRequestError):
    """The referenced upload does not exist."""

    pass


class BackgroundTaskRunner:
    """Owns detached asyncio tasks for processing runs."""

    def __init__(self, metrics: MetricsCollector | None = None):
        self.metrics = metrics or default_metrics
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    def submit(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
        """Schedule a coroutine on the running loop and return immediately."""
        if self._closed:
            coro.close()
            raise RuntimeError("Task runner is shut down")

        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        self.metrics.update_active_runs(1)
        task.add_done_callback(self._on_done)
        logger.debug("Background task submitted", task_name=name, active=len(self._tasks))
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        self.metrics.update_active_runs(-1)

        if task.cancelled():
            logger.warning("Background task cancelled", task_name=task.get_name())
            return

        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task failed",
                task_name=task.get_name(),
                error=str(exc),
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    async def wait_idle(self) -> None:
        """Wait until every submitted task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel all in-flight tasks and wait for them to unwind."""
        self._closed = True
        tasks = list(self._tasks)
        if tasks:
            logger.info("Cancelling background tasks", count=len(tasks))
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


class ProcessingOrchestrator:
    """Runs analysis and per-platform renditions for uploaded videos."""

    def __init__(
        self,
        settings: Settings,
        uploads: UploadStorage,
        store: AnalysisStore,
        probe: MetadataProbe,
        engine: RenditionEngine,
        runner: BackgroundTaskRunner,
        metrics: MetricsCollector | None = None,
    ):
        self.settings = settings
        self.uploads = uploads
        self.store = store
        self.probe = probe
        self.engine = engine
        self.runner = runner
        self.metrics = metrics or default_metrics
        self.processed_dir = settings.storage.processed_path

    async def analyze_upload(self, filename: str) -> AnalysisRecord:
        """
        Probe and classify an upload and persist its analysis record.

        Raises:
            NoVideoStreamError: the file has no video stream; a failure
                record is written before the error propagates
            AnalysisStoreError: the analysis record could not be written;
                a failure record is attempted before the error propagates
        """
        source_path = self.uploads.path_for(filename)

        try:
            metadata = await self.probe.probe(str(source_path))
        except NoVideoStreamError as e:
            self._record_failure(filename, str(e))
            audit_logger.log_analysis_failed(filename, str(e))
            raise

        camera_format = classify(metadata)
        try:
            record = self.store.create(filename, metadata, camera_format)
        except AnalysisStoreError as e:
            logger.error("Could not persist analysis record", filename=filename, error=str(e))
            audit_logger.log_analysis_failed(filename, str(e))
            self._record_failure(filename, str(e))
            raise

        self.metrics.track_upload_analyzed(camera_format.value)
        audit_logger.log_upload_analyzed(filename, camera_format.value, metadata.width, metadata.height)
        return record

    def request_processing(self, filename: str, platforms: list[str]) -> list[str]:
        """
        Validate a processing request and start it in the background.

        Returns:
            The platform variants accepted for processing

        Raises:
            InvalidRequestError: no platforms or a malformed filename
            FileNotFoundInStorageError: the upload does not exist
        """
        platforms = [p for p in dict.fromkeys(platforms or []) if isinstance(p, str) and p]
        if not platforms:
            raise InvalidRequestError("Please select at least one platform")

        try:
            exists = self.uploads.exists(filename)
        except InvalidFilenameError as e:
            raise InvalidRequestError(str(e))
        if not exists:
            raise FileNotFoundInStorageError("Video file not found")

        task_id = f"process_{uuid.uuid4().hex[:12]}"
        self.runner.submit(self._run(filename, platforms, task_id), name=f"process:{filename}:{task_id}")

        logger.info("Processing accepted", filename=filename, platforms=platforms, task_id=task_id)
        return platforms

    async def _run(self, filename: str, platforms: list[str], task_id: str) -> None:
        with with_logging_context(task_id=task_id):
            try:
                await self.process(filename, platforms)
            except (NoVideoStreamError, AnalysisStoreError, FileNotFoundInStorageError) as e:
                logger.error("Video processing failed", filename=filename, error=str(e))
                audit_logger.log_analysis_failed(filename, str(e), platforms=platforms)
                self._record_failure(filename, str(e), platforms)
            except Exception as e:
                logger.error("Video processing crashed", filename=filename, error=str(e), exc_info=True)
                audit_logger.log_analysis_failed(filename, str(e), platforms=platforms)
                self._record_failure(filename, str(e), platforms)

    def _record_failure(self, filename: str, error: str, platforms: list[str] | None = None) -> None:
        try:
            self.store.write_failure(filename, error, platforms)
        except AnalysisStoreError as e:
            logger.error("Could not write failure record", filename=filename, error=str(e))

    async def process(self, filename: str, platforms: list[str]) -> AnalysisRecord:
        """Render the requested variants sequentially, persisting after each."""
        start_time = time.time()
        record = await self._load_or_analyze(filename)
        configs = plan_renditions(record.camera_format, record.metadata)
        source_path = str(self.uploads.path_for(filename))

        logger.info(
            "Starting video processing",
            filename=filename,
            camera_format=record.original["camera_format"],
            platforms=platforms,
        )

        for platform in platforms:
            config = configs.get(platform)
            if config is None:
                logger.warning("No configuration found for platform", filename=filename, platform=platform)
                result = RenditionResult.failure(PLATFORM_CONFIG_NOT_FOUND)
            else:
                result = await self._render_variant(source_path, filename, platform, config, record)

            record = self.store.merge_result(record, platform, result)
            # let status polls run between variants
            await asyncio.sleep(0)

        success_count = sum(
            1 for p in platforms if p in record.processed and "error" not in record.processed[p]
        )
        logger.info(
            "Processing completed",
            filename=filename,
            successful=success_count,
            total=len(platforms),
            execution_time=round(time.time() - start_time, 3),
        )
        return record

    async def _load_or_analyze(self, filename: str) -> AnalysisRecord:
        record = self.store.load(filename)
        if record is not None:
            return record
        if not self.uploads.exists(filename):
            raise FileNotFoundInStorageError(f"Video file not found: {filename}")
        logger.info("No analysis record, analyzing before processing", filename=filename)
        return await self.analyze_upload(filename)

    async def _render_variant(
        self,
        source_path: str,
        filename: str,
        platform: str,
        config: PlatformVariantConfig,
        record: AnalysisRecord,
    ) -> RenditionResult:
        output_name = rendition_filename(filename, platform)
        output_path = self.processed_dir / output_name

        try:
            output = await self.engine.render(source_path, str(output_path), config, record.metadata)
        except RenderError as e:
            audit_logger.log_rendition_failed(filename, platform, str(e))
            return RenditionResult.failure(str(e), config)
        except Exception as e:
            logger.error("Unexpected rendition error", filename=filename, platform=platform, error=str(e), exc_info=True)
            self.metrics.track_media_failed(platform, "unexpected_error")
            audit_logger.log_rendition_failed(filename, platform, str(e))
            return RenditionResult.failure(str(e), config)

        url = self.settings.get_public_url(self.settings.storage.processed_subdir, output_name)
        audit_logger.log_rendition_completed(
            filename, platform, output.output_path, dimensions=f"{output.width}x{output.height}"
        )
        return RenditionResult.success(output.width, output.height, output.output_path, url, config)

    def recommended_platforms(self, filename: str) -> dict[str, Any]:
        """The planner table for an analyzed upload."""
        try:
            record = self.store.load(filename)
        except InvalidFilenameError as e:
            raise InvalidRequestError(str(e))
        except AnalysisStoreError as e:
            raise FileNotFoundInStorageError(str(e))
        if record is None:
            raise FileNotFoundInStorageError("Video analysis not found")

        configs = plan_renditions(record.camera_format, record.metadata)
        return {
            "camera_format": record.original["camera_format"],
            "platforms": {variant_id: config.to_dict() for variant_id, config in configs.items()},
        }
