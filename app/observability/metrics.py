"""
Prometheus metrics collection for Crosspost Media.

This module provides:
- Application metrics (requests, response times)
- Media metrics (uploads analyzed, renditions produced/failed, transcode time)
- A gauge of in-flight background processing runs
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)

from ..core.config import settings


class MetricsCollector:
    """Central metrics collector for the application."""

    def __init__(self, registry: CollectorRegistry | None = None):
        """Initialize metrics collector."""
        self.registry = registry or CollectorRegistry()
        self._setup_metrics()

    def _setup_metrics(self):
        """Initialize all application metrics."""

        # Application info
        self.app_info = Info(
            'crosspost_media_info',
            'Application information',
            registry=self.registry
        )
        self.app_info.info({
            'version': settings.app.version,
            'environment': settings.app.environment,
            'name': settings.app.app_name
        })

        # HTTP request metrics
        self.http_requests_total = Counter(
            'crosspost_media_http_requests_total',
            'Total HTTP requests',
            ['method', 'endpoint', 'status_code'],
            registry=self.registry
        )

        self.http_request_duration = Histogram(
            'crosspost_media_http_request_duration_seconds',
            'HTTP request duration in seconds',
            ['method', 'endpoint'],
            buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=self.registry
        )

        # Upload analysis metrics
        self.uploads_analyzed_total = Counter(
            'crosspost_media_uploads_analyzed_total',
            'Total uploads analyzed',
            ['camera_format'],
            registry=self.registry
        )

        # Rendition metrics
        self.media_processed_total = Counter(
            'crosspost_media_renditions_total',
            'Total renditions attempted',
            ['platform', 'success'],
            registry=self.registry
        )

        self.media_processing_duration = Histogram(
            'crosspost_media_rendition_duration_seconds',
            'Rendition transcode duration in seconds',
            ['platform', 'transform'],
            buckets=[1, 5, 10, 30, 60, 180, 300, 600, 1800],
            registry=self.registry
        )

        self.media_file_size = Histogram(
            'crosspost_media_rendition_file_size_bytes',
            'Rendition output file sizes in bytes',
            ['platform'],
            buckets=[1024, 10240, 102400, 1048576, 10485760, 104857600, 524288000],
            registry=self.registry
        )

        self.media_failed_total = Counter(
            'crosspost_media_rendition_failures_total',
            'Total failed renditions by error type',
            ['platform', 'error_type'],
            registry=self.registry
        )

        # Background processing runs
        self.active_processing_runs = Gauge(
            'crosspost_media_active_processing_runs',
            'Number of in-flight background processing runs',
            registry=self.registry
        )

    def track_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Track HTTP request metrics."""
        self.http_requests_total.labels(
            method=method, endpoint=endpoint, status_code=str(status_code)
        ).inc()

        self.http_request_duration.labels(
            method=method, endpoint=endpoint
        ).observe(duration)

    def track_upload_analyzed(self, camera_format: str):
        """Track a classified upload."""
        self.uploads_analyzed_total.labels(camera_format=camera_format).inc()

    def track_media_processed(self, platform: str, transform: str, success: bool,
                              duration: float, file_size: int = 0):
        """Track a rendition attempt."""
        success_str = "success" if success else "failure"

        self.media_processed_total.labels(platform=platform, success=success_str).inc()

        self.media_processing_duration.labels(
            platform=platform, transform=transform
        ).observe(duration)

        if file_size > 0:
            self.media_file_size.labels(platform=platform).observe(file_size)

    def track_media_failed(self, platform: str, error_type: str):
        """Track a failed rendition by error type."""
        self.media_failed_total.labels(platform=platform, error_type=error_type).inc()

    def update_active_runs(self, delta: int):
        """Adjust the in-flight processing runs gauge."""
        self.active_processing_runs.inc(delta)

    def get_metrics(self) -> bytes:
        """Get metrics in Prometheus format."""
        return generate_latest(self.registry)


# Global metrics collector
metrics = MetricsCollector()


def get_metrics_response():
    """Get metrics in format suitable for HTTP response."""
    return metrics.get_metrics(), {"Content-Type": CONTENT_TYPE_LATEST}


def get_test_metrics() -> MetricsCollector:
    """Get metrics collector configured for testing."""
    return MetricsCollector(CollectorRegistry())
