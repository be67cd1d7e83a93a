"""
FastAPI dependency providers for Crosspost Media.

This module provides:
- Configuration access
- The service context created at application startup
- Orchestrator and storage shortcuts for route handlers
"""

from fastapi import Depends, HTTPException, Request, status

from ..core.config import Settings
from ..core.logging import get_logger
from ..services.analysis_store import AnalysisStore
from ..services.context import AppContext
from ..services.processing import ProcessingOrchestrator
from ..services.upload_storage import UploadStorage

logger = get_logger("api.deps")


def get_context(request: Request) -> AppContext:
    """
    Get the service context attached to the application.

    Returns:
        AppContext instance
    """
    context = getattr(request.app.state, "context", None)
    if context is None:
        logger.error("Service context requested before application startup")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up",
        )
    return context


def get_settings(context: AppContext = Depends(get_context)) -> Settings:
    return context.settings


def get_orchestrator(context: AppContext = Depends(get_context)) -> ProcessingOrchestrator:
    return context.orchestrator


def get_upload_storage(context: AppContext = Depends(get_context)) -> UploadStorage:
    return context.uploads


def get_analysis_store(context: AppContext = Depends(get_context)) -> AnalysisStore:
    return context.store
