"""
Structured logging configuration for Crosspost Media.

This module provides:
- structlog event logging, rendered as JSON or console lines
- A stdlib bridge so uvicorn and library records share the same format
- Loguru sinks for stdout and, in production, a rotated error file
- request_id / task_id context carried by every entry
- Audit events for uploads and renditions, timing events for transcoder runs
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

import structlog
from loguru import logger
from structlog.types import FilteringBoundLogger

from .config import AppConfig, settings

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
task_id_ctx: ContextVar[str | None] = ContextVar("task_id", default=None)

REDACTED = "[REDACTED]"
SENSITIVE_MARKERS = ("password", "secret", "token", "api_key", "jwt", "auth")

_NOISY_LOGGERS = ("asyncio", "httpx", "multipart", "watchfiles")


def add_context_fields(logger, method_name, event_dict):
    """Attach request/task ids and application identity."""
    if request_id := request_id_ctx.get():
        event_dict["request_id"] = request_id
    if task_id := task_id_ctx.get():
        event_dict["task_id"] = task_id
    event_dict.setdefault("app", settings.app.app_name)
    event_dict.setdefault("environment", settings.app.environment)
    return event_dict


def add_timestamps(logger, method_name, event_dict):
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def _is_sensitive(key: Any) -> bool:
    lowered = str(key).lower()
    return any(marker in lowered for marker in SENSITIVE_MARKERS)


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: REDACTED if _is_sensitive(k) else _redact(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_redact(item) for item in value]
    return value


def redact_sensitive(logger, method_name, event_dict):
    """Mask values whose key looks like a credential."""
    return _redact(event_dict)


# Shared by structlog loggers and foreign (stdlib) records
_SHARED_PROCESSORS = [
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    add_context_fields,
    add_timestamps,
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
    redact_sensitive,
]


def _renderer(app_config: AppConfig):
    if app_config.log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def setup_structlog():
    """Configure structlog to hand events to the stdlib handler for rendering."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            *_SHARED_PROCESSORS,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def setup_stdlib_logging(app_config: AppConfig):
    """Route stdlib records (uvicorn, libraries) through one stdout handler."""
    level = getattr(logging, app_config.log_level)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(app_config),
            ],
            foreign_pre_chain=_SHARED_PROCESSORS,
        )
    )

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    access_logger = logging.getLogger("uvicorn.access")
    access_logger.handlers = []
    access_logger.propagate = True

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_loguru(app_config: AppConfig):
    """Configure loguru sinks; production also keeps a rotated error file."""
    logger.remove()
    if app_config.log_format == "json":
        logger.add(sys.stdout, level=app_config.log_level, serialize=True, backtrace=True, diagnose=False)
    else:
        logger.add(
            sys.stdout,
            level=app_config.log_level,
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}",
            colorize=False,
        )

    if app_config.is_production:
        logger.add(
            "logs/crosspost-media-errors.log",
            level="ERROR",
            rotation="10 MB",
            retention="14 days",
            compression="gz",
            serialize=True,
            diagnose=False,
        )


class LoggingContextManager:
    """Context manager for setting logging context."""

    def __init__(self, request_id: str | None = None, task_id: str | None = None):
        self.request_id = request_id or request_id_ctx.get() or str(uuid.uuid4())
        self.task_id = task_id
        self._tokens = []

    def __enter__(self):
        self._tokens.append(request_id_ctx.set(self.request_id))
        if self.task_id:
            self._tokens.append(task_id_ctx.set(self.task_id))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for token in reversed(self._tokens):
            token.var.reset(token)
        self._tokens.clear()


class AuditLogger:
    """Structured audit logging for upload and rendition events."""

    def __init__(self):
        self.logger = structlog.get_logger("audit")

    def log_upload_analyzed(self, filename: str, camera_format: str, width: int, height: int, **kwargs):
        """Log completed upload analysis."""
        self.logger.info(
            "upload_analyzed",
            filename=filename,
            camera_format=camera_format,
            dimensions=f"{width}x{height}",
            action="analyze_upload",
            **kwargs,
        )

    def log_analysis_failed(self, filename: str, error: str, **kwargs):
        """Log a file-level analysis failure."""
        self.logger.error(
            "analysis_failed",
            filename=filename,
            error=error,
            action="analyze_upload",
            status="failed",
            **kwargs,
        )

    def log_rendition_completed(self, filename: str, platform: str, output_path: str, **kwargs):
        """Log a successful platform rendition."""
        self.logger.info(
            "rendition_completed",
            filename=filename,
            platform=platform,
            output_path=output_path,
            action="render",
            **kwargs,
        )

    def log_rendition_failed(self, filename: str, platform: str, error: str, **kwargs):
        """Log a failed platform rendition."""
        self.logger.error(
            "rendition_failed",
            filename=filename,
            platform=platform,
            error=error,
            action="render",
            status="failed",
            **kwargs,
        )


class PerformanceLogger:
    """Performance monitoring logging."""

    def __init__(self):
        self.logger = structlog.get_logger("performance")

    def log_render_performance(self, platform: str, execution_time: float, success: bool, **kwargs):
        """Log transcoder run performance."""
        self.logger.info(
            "render_performance",
            platform=platform,
            execution_time_seconds=round(execution_time, 3),
            success=success,
            metric_type="render_performance",
            **kwargs,
        )


def setup_logging(app_config: AppConfig | None = None):
    """Initialize all logging systems."""
    app_config = app_config or settings.app
    setup_structlog()
    setup_stdlib_logging(app_config)
    setup_loguru(app_config)


# Global logger instances
audit_logger = AuditLogger()
performance_logger = PerformanceLogger()


def get_logger(name: str = None) -> FilteringBoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def with_logging_context(request_id: str = None, task_id: str = None) -> LoggingContextManager:
    """Create logging context manager."""
    return LoggingContextManager(request_id, task_id)


def create_request_id() -> str:
    """Generate unique request ID."""
    return str(uuid.uuid4())
