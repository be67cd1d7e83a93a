"""
Upload and processing API for Crosspost Media.

This module provides:
- Video upload with synchronous analysis
- Upload listing and deletion
- Platform recommendations for an analyzed upload
- Processing requests (answered immediately, rendered in the background)
- Status polling
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from pydantic import BaseModel, Field

from ..core.config import Settings
from ..core.logging import get_logger
from ..media.probe import NoVideoStreamError
from ..services.analysis_store import AnalysisStore, AnalysisStoreError
from ..services.processing import (
    FileNotFoundInStorageError,
    InvalidRequestError,
    ProcessingOrchestrator,
)
from ..services.upload_storage import InvalidFilenameError, UploadStorage, UploadTooLargeError
from .deps import get_analysis_store, get_orchestrator, get_settings, get_upload_storage

router = APIRouter(prefix="/upload", tags=["Upload"])
logger = get_logger("api.upload")


class UploadedFileInfo(BaseModel):
    """Stored upload with its analysis."""

    filename: str = Field(description="Stored filename, used as the key for processing")
    original_name: str | None = Field(default=None, description="Client-side filename")
    mimetype: str | None = Field(default=None, description="Upload content type")
    size: int = Field(description="Size in bytes")
    url: str = Field(description="Public URL of the source video")
    metadata: dict[str, Any] = Field(description="Probed video metadata")
    camera_format: str = Field(description="Detected camera format")


class UploadResponse(BaseModel):
    success: bool
    message: str
    file: UploadedFileInfo


class FileListEntry(BaseModel):
    filename: str
    size: int
    upload_date: datetime
    url: str


class FileListResponse(BaseModel):
    files: list[FileListEntry]


class DeleteResponse(BaseModel):
    success: bool
    message: str


class ProcessRequest(BaseModel):
    """Processing request schema."""

    platforms: list[str] = Field(default_factory=list, description="Platform variant identifiers")


class ProcessResponse(BaseModel):
    """Immediate acknowledgement of a processing request."""

    success: bool = True
    accepted: bool = True
    message: str
    platforms: list[str]
    status: str = "processing"


class PlatformRecommendationsResponse(BaseModel):
    camera_format: str
    platforms: dict[str, dict[str, Any]]


@router.post("/video", response_model=UploadResponse)
async def upload_video(
    video: UploadFile = File(..., description="Video file"),
    settings: Settings = Depends(get_settings),
    uploads: UploadStorage = Depends(get_upload_storage),
    orchestrator: ProcessingOrchestrator = Depends(get_orchestrator),
):
    """
    Upload a video and analyze it.

    The file is probed and classified before the response is sent; the
    analysis record written here is what processing requests build on.
    """
    if video.content_type not in settings.media.allowed_mimetypes:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="Invalid file type. Only video files are allowed.",
        )

    try:
        filename, size = await uploads.save(video, video.filename)
    except UploadTooLargeError as e:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(e))
    finally:
        await video.close()

    try:
        record = await orchestrator.analyze_upload(filename)
    except NoVideoStreamError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except AnalysisStoreError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Video was stored but its analysis could not be saved",
        )

    logger.info(
        "Video uploaded and analyzed",
        filename=filename,
        camera_format=record.original["camera_format"],
        dimensions=f"{record.metadata.width}x{record.metadata.height}",
        duration=record.metadata.duration,
    )

    return UploadResponse(
        success=True,
        message="Video uploaded and analyzed successfully",
        file=UploadedFileInfo(
            filename=filename,
            original_name=video.filename,
            mimetype=video.content_type,
            size=size,
            url=uploads.url_for(filename),
            metadata=record.original["metadata"],
            camera_format=record.original["camera_format"],
        ),
    )


@router.get("/files", response_model=FileListResponse)
async def list_files(uploads: UploadStorage = Depends(get_upload_storage)):
    """List uploaded videos, newest first."""
    return FileListResponse(files=[FileListEntry(**entry) for entry in uploads.list_files()])


@router.delete("/files/{filename}", response_model=DeleteResponse)
async def delete_file(filename: str, uploads: UploadStorage = Depends(get_upload_storage)):
    """Delete an uploaded source video."""
    try:
        deleted = uploads.delete(filename)
    except InvalidFilenameError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")

    return DeleteResponse(success=True, message="File deleted successfully")


@router.get("/video/{filename}/platforms", response_model=PlatformRecommendationsResponse)
async def platform_recommendations(
    filename: str,
    orchestrator: ProcessingOrchestrator = Depends(get_orchestrator),
):
    """Platform variants and transforms planned for an analyzed upload."""
    try:
        return orchestrator.recommended_platforms(filename)
    except InvalidRequestError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except FileNotFoundInStorageError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/video/{filename}/process", response_model=ProcessResponse)
async def process_video(
    filename: str,
    request: ProcessRequest,
    orchestrator: ProcessingOrchestrator = Depends(get_orchestrator),
):
    """
    Start processing an upload for the selected platform variants.

    Responds immediately; poll the status endpoint for results.
    """
    try:
        platforms = orchestrator.request_processing(filename, request.platforms)
    except InvalidRequestError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except FileNotFoundInStorageError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return ProcessResponse(
        message=f"Starting processing for {len(platforms)} platform(s)",
        platforms=platforms,
    )


@router.get("/video/{filename}/status")
async def processing_status(filename: str, store: AnalysisStore = Depends(get_analysis_store)):
    """
    Processing status and results.

    status is one of analyzing, analyzed, completed (at least one variant
    has a result) or failed.
    """
    try:
        return store.get_status(filename)
    except InvalidFilenameError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
