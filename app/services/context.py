"""Service context constructed at application startup and passed to handlers."""

from dataclasses import dataclass

from ..core.config import Settings
from ..core.logging import get_logger
from ..media.ffmpeg_wrapper import RenditionEngine
from ..media.probe import MetadataProbe
from ..observability.metrics import MetricsCollector, metrics as default_metrics
from .analysis_store import AnalysisStore
from .processing import BackgroundTaskRunner, ProcessingOrchestrator
from .upload_storage import UploadStorage

logger = get_logger("services.context")


@dataclass
class AppContext:
    """Everything a request handler needs; owns the background task runner."""

    settings: Settings
    uploads: UploadStorage
    store: AnalysisStore
    probe: MetadataProbe
    engine: RenditionEngine
    runner: BackgroundTaskRunner
    orchestrator: ProcessingOrchestrator

    @classmethod
    def create(
        cls,
        settings: Settings,
        metrics: MetricsCollector | None = None,
        probe: MetadataProbe | None = None,
        engine: RenditionEngine | None = None,
    ) -> "AppContext":
        metrics = metrics or default_metrics
        uploads = UploadStorage(settings)
        store = AnalysisStore(settings.storage)
        probe = probe or MetadataProbe(settings.media)
        engine = engine or RenditionEngine(settings.media, metrics)
        runner = BackgroundTaskRunner(metrics)
        orchestrator = ProcessingOrchestrator(settings, uploads, store, probe, engine, runner, metrics)
        return cls(
            settings=settings,
            uploads=uploads,
            store=store,
            probe=probe,
            engine=engine,
            runner=runner,
            orchestrator=orchestrator,
        )

    def start(self) -> None:
        self.uploads.ensure_dirs()
        logger.info(
            "Service context started",
            uploads_dir=str(self.settings.storage.uploads_path),
            processed_dir=str(self.settings.storage.processed_path),
        )

    async def shutdown(self) -> None:
        """Cancel in-flight processing runs."""
        await self.runner.shutdown()
        logger.info("Service context shut down")
