"""
API routes for Crosspost Media.

This module provides:
- Health check endpoint
- Readiness probe
- Pydantic response schemas
"""

import shutil
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..core.logging import get_logger
from ..services.context import AppContext
from .deps import get_context

router = APIRouter()
logger = get_logger("api")


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str = Field(description="Application status")
    timestamp: datetime = Field(description="Response timestamp")
    version: str = Field(description="Application version")
    environment: str = Field(description="Environment name")
    services: dict[str, str] = Field(description="Service health status")
    active_processing_runs: int = Field(description="In-flight background processing runs")


class ReadyResponse(BaseModel):
    """Readiness check response schema."""

    ready: bool = Field(description="Application readiness status")
    timestamp: datetime = Field(description="Response timestamp")
    checks: dict[str, bool] = Field(description="Individual readiness checks")


def _binary_available(binary: str) -> bool:
    return shutil.which(binary) is not None


@router.get("/ready", response_model=ReadyResponse, tags=["Health"])
async def readiness_check(context: AppContext = Depends(get_context)):
    """
    Readiness probe endpoint.

    The uploads directory must be writable; ffmpeg is required to render.
    ffprobe is not, since analysis falls back to default metadata.
    """
    checks = {
        "storage": context.settings.storage.uploads_path.is_dir(),
        "ffmpeg": _binary_available(context.settings.media.ffmpeg_binary),
    }
    return ReadyResponse(ready=all(checks.values()), timestamp=datetime.now(), checks=checks)


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(context: AppContext = Depends(get_context)):
    """
    Health check endpoint.

    Returns application health status including external tool availability.
    """
    settings = context.settings
    services = {
        "storage": "healthy" if settings.storage.uploads_path.is_dir() else "unhealthy",
        "ffmpeg": "healthy" if _binary_available(settings.media.ffmpeg_binary) else "unavailable",
        "ffprobe": "healthy" if _binary_available(settings.media.ffprobe_binary) else "unavailable",
    }
    overall_status = "healthy" if all(s == "healthy" for s in services.values()) else "degraded"

    logger.info("Health check completed", status=overall_status, services=services)

    return HealthResponse(
        status=overall_status,
        timestamp=datetime.now(),
        version=settings.app.version,
        environment=settings.app.environment,
        services=services,
        active_processing_runs=context.runner.active_count,
    )
