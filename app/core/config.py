"""
Configuration management for Crosspost Media.

This module provides:
- Pydantic Settings for environment variable loading
- Structured configuration classes for the API, media processing and storage
- Validation and type safety for configuration values
- Default values and environment-specific overrides
"""

import os
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MediaConfig(BaseSettings):
    """Media processing configuration."""
    model_config = SettingsConfigDict(
        env_prefix="MEDIA_",
        case_sensitive=False,
        extra="ignore"
    )

    # FFmpeg settings
    ffmpeg_binary: str = Field(default="ffmpeg")
    ffprobe_binary: str = Field(default="ffprobe")

    # Processing timeouts (seconds)
    analysis_timeout: int = Field(default=60)
    transcode_timeout: int = Field(default=1800)  # 30 minutes

    # Only transcoder timeouts are retried
    render_max_attempts: int = Field(default=2, ge=1)

    # Upload limits
    max_upload_size_mb: int = Field(default=100, validation_alias="MAX_FILE_SIZE_MB")
    allowed_mimetypes: list[str] = Field(
        default=[
            "video/mp4",
            "video/avi",
            "video/mov",
            "video/quicktime",
            "video/wmv",
            "video/x-ms-wmv",
            "video/flv",
            "video/x-flv",
            "video/webm",
        ]
    )

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024


class StorageConfig(BaseSettings):
    """Local storage layout for uploads, renditions and analysis records."""
    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        case_sensitive=False,
        extra="ignore"
    )

    uploads_dir: str = Field(default="uploads")
    processed_subdir: str = Field(default="processed")
    public_url_prefix: str = Field(default="/uploads")

    @field_validator('public_url_prefix')
    @classmethod
    def validate_url_prefix(cls, v: str) -> str:
        if not v.startswith('/'):
            raise ValueError('Public URL prefix must start with /')
        return v.rstrip('/') or '/'

    @property
    def uploads_path(self) -> Path:
        return Path(self.uploads_dir)

    @property
    def processed_path(self) -> Path:
        return self.uploads_path / self.processed_subdir


class AppConfig(BaseSettings):
    """Main application configuration."""
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # App metadata
    app_name: str = Field(default="Crosspost Media", validation_alias="APP_NAME")
    version: str = Field(default="1.0.0", validation_alias="APP_VERSION")
    environment: str = Field(default="development", validation_alias="ENVIRONMENT")
    debug: bool = Field(default=True, validation_alias="DEBUG")

    # API settings
    api_host: str = Field(default="0.0.0.0", validation_alias="API_HOST")
    api_port: int = Field(default=8000, validation_alias="API_PORT")
    api_workers: int = Field(default=1, validation_alias="API_WORKERS")
    cors_origins: list[str] = Field(default=[], validation_alias="CORS_ORIGINS")

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", validation_alias="LOG_FORMAT")

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = ['development', 'testing', 'staging', 'production']
        if v not in allowed:
            raise ValueError(f'Environment must be one of: {allowed}')
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in allowed:
            raise ValueError(f'Log level must be one of: {allowed}')
        return v.upper()

    @property
    def is_development(self) -> bool:
        return self.environment == 'development'

    @property
    def is_production(self) -> bool:
        return self.environment == 'production'


class Settings:
    """Main settings container with all configuration sections."""

    def __init__(self):
        self.app = AppConfig()
        self.media = MediaConfig()
        self.storage = StorageConfig()

    def get_public_url(self, *parts: str) -> str:
        """Build the public URL for a stored file, e.g. /uploads/processed/a.mp4."""
        prefix = self.storage.public_url_prefix.rstrip('/')
        return '/'.join([prefix, *parts])


# Global settings instance
settings = Settings()


def get_test_settings(uploads_dir: str | None = None) -> Settings:
    """Get test-specific settings with overrides."""

    os.environ.update({
        'ENVIRONMENT': 'testing',
        'DEBUG': 'true',
        'LOG_FORMAT': 'console',
    })

    test_settings = Settings()
    if uploads_dir is not None:
        test_settings.storage = StorageConfig(uploads_dir=uploads_dir)
    return test_settings
